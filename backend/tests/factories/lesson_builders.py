"""
Builders that write rows straight through the store.

They bypass every engine rule on purpose, so tests can set up past lessons,
full lessons or terminal statuses directly.
"""

from datetime import datetime
from itertools import count
from typing import Iterable, Optional

from lesson_service.core.enums import LessonFormat, LessonStatus
from lesson_service.models import Enrollment, Lesson, Tutor
from lesson_service.repositories.scheduling_store import SchedulingStore

_seq = count(1)


def create_tutor(
    store: SchedulingStore, user_id: Optional[str] = None, full_name: str = "Tina Tutor"
) -> Tutor:
    user_id = user_id or f"tutor-{next(_seq)}"
    with store.transaction() as uow:
        tutor = uow.tutors.get_by_user_id(user_id)
        if tutor is None:
            tutor = uow.tutors.insert(
                Tutor(user_id=user_id, full_name=full_name, email=f"{user_id}@example.com")
            )
    return tutor


def create_lesson(
    store: SchedulingStore,
    tutor: Tutor,
    appointed: datetime,
    *,
    status: LessonStatus = LessonStatus.CREATED,
    tutees: Iterable[str] = (),
    subject_name: str = "Math",
    grade: str = "10",
    level: str = "A",
    description: str = "Algebra basics",
    format: LessonFormat = LessonFormat.ONLINE,
    summary: Optional[str] = None,
) -> Lesson:
    with store.transaction() as uow:
        lesson = uow.lessons.insert(
            Lesson(
                tutor_id=tutor.id,
                subject_name=subject_name,
                grade=grade,
                level=level,
                description=description,
                appointed_date_time=appointed,
                format=format.value,
                location_or_link="https://meet.example.com/abc",
                status=status.value,
                summary=summary,
            )
        )
        for tutee_user_id in tutees:
            uow.enrollments.insert(
                Enrollment(
                    lesson_id=lesson.id,
                    tutee_user_id=tutee_user_id,
                    tutee_full_name=f"Tutee {tutee_user_id}",
                    tutee_email=f"{tutee_user_id}@example.com",
                )
            )
        uow.lessons.reload_enrollments(lesson)
        lesson.tutor  # noqa: B018  load before the session closes
    return lesson


def load_lesson(store: SchedulingStore, lesson_id: str) -> Optional[Lesson]:
    with store.read() as uow:
        return uow.lessons.get_by_id(lesson_id)


def load_enrollment(
    store: SchedulingStore, lesson_id: str, tutee_user_id: str
) -> Optional[Enrollment]:
    with store.read() as uow:
        return uow.enrollments.get_for_tutee(lesson_id, tutee_user_id)
