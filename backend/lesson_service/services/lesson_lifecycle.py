# backend/lesson_service/services/lesson_lifecycle.py
"""
Lesson lifecycle for the lesson service.

Handles creating, editing, canceling, reporting and judging lessons:
- Tutor open-lesson limit and overlap checks under the tutor row lock
- Status state machine guard as an explicit step of every mutation
- Read-only listings for tutors, tutees and admins

Every mutation runs in exactly one store transaction and is all-or-nothing.
Caller-owned preconditions (ownership, lead time, lesson has ended) live in
LessonService.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Mapping, Optional, Union

from ..core.capacity_policy import (
    LESSON_DURATION,
    MAX_OPEN_LESSONS_PER_TUTOR,
    REVIEW_WINDOW,
    tutor_has_reached_limit,
)
from ..core.enums import (
    LessonFormat,
    LessonStatus,
    TuteeLessonCategory,
    TutorLessonCategory,
)
from ..core.exceptions import (
    ConflictException,
    DuplicateEntryException,
    ErrorCode,
    InvalidStatusUpdateException,
    StorageException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc
from ..models.lesson import Lesson
from ..models.tutor import Tutor
from ..repositories.scheduling_store import UnitOfWork
from .base import BaseService
from .overlap_detector import OverlapDetector


@dataclass
class LessonCancellation:
    """A canceled lesson and the tutees whose enrollments were dropped."""

    lesson: Lesson
    affected_tutee_ids: List[str] = field(default_factory=list)


class LessonLifecycle(BaseService):
    """
    Service for lesson state changes and lesson listings.

    Mutations lock before they read: the tutor row for create, the lesson
    row for everything else.
    """

    # Tutor rows

    def get_or_create_tutor(
        self, user_id: str, full_name: str, email: Optional[str] = None
    ) -> Tutor:
        """
        Return the tutor row of ``user_id``, creating it on first use.

        A concurrent insert that wins the unique race is re-read.
        """
        try:
            with self.transaction("get_or_create_tutor") as uow:
                tutor = uow.tutors.get_by_user_id(user_id)
                if tutor is None:
                    tutor = uow.tutors.insert(Tutor(user_id=user_id, full_name=full_name, email=email))
                    self.log_operation("tutor_created", tutor_id=tutor.id, user_id=user_id)
                return tutor
        except StorageException as exc:
            if not isinstance(exc.__cause__, DuplicateEntryException):
                raise
            self.logger.info("Tutor for user %s created concurrently, re-reading", user_id)
            with self.read("get_or_create_tutor") as uow:
                tutor = uow.tutors.get_by_user_id(user_id)
            if tutor is None:
                raise
            return tutor

    # Mutations

    @BaseService.measure_operation("create_lesson")
    def create_lesson(
        self,
        *,
        tutor_user_id: str,
        tutor_full_name: str,
        tutor_email: Optional[str],
        subject_name: str,
        grade: str,
        level: str,
        description: str,
        appointed_date_time: datetime,
        format: Union[LessonFormat, str],
        location_or_link: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> Lesson:
        """
        Create an open lesson for a tutor.

        Returns:
            The new lesson with status ``created``

        Raises:
            ConflictException: LESSON_LIMIT_REACHED or OVERLAPPING_LESSON
            StorageException: If the store fails
        """
        origin = self.origin("create_lesson")
        appointed = ensure_utc(appointed_date_time)
        self.get_or_create_tutor(tutor_user_id, tutor_full_name, tutor_email)

        with self.transaction(
            "create_lesson", lock_timeout_ms=timeout_ms, statement_timeout_ms=timeout_ms
        ) as uow:
            tutor = uow.tutors.get_by_user_id(tutor_user_id, for_update=True)
            now = self.now()

            open_count = uow.lessons.count_open_future_for_tutor(tutor.id, now)
            if tutor_has_reached_limit(open_count):
                raise ConflictException(
                    f"Tutor already has {MAX_OPEN_LESSONS_PER_TUTOR} open lessons",
                    code=ErrorCode.LESSON_LIMIT_REACHED,
                    details={"open_lessons": open_count, "limit": MAX_OPEN_LESSONS_PER_TUTOR},
                    origin=origin,
                )

            OverlapDetector(uow.lessons).ensure_no_overlap(tutor.id, appointed, origin=origin)

            lesson = uow.lessons.insert(
                Lesson(
                    tutor=tutor,
                    subject_name=subject_name,
                    grade=grade,
                    level=level,
                    description=description,
                    appointed_date_time=appointed,
                    format=LessonFormat(format).value,
                    location_or_link=location_or_link,
                    status=LessonStatus.CREATED.value,
                    enrollments=[],
                )
            )

        self.log_operation(
            "create_lesson",
            lesson_id=lesson.id,
            tutor_id=lesson.tutor_id,
            appointed_date_time=appointed.isoformat(),
        )
        return lesson

    @BaseService.measure_operation("cancel_lesson")
    def cancel_lesson(
        self, lesson_id: str, *, timeout_ms: Optional[int] = None
    ) -> LessonCancellation:
        """
        Cancel an open lesson and drop all of its enrollments.

        Storage failures surface as CANCEL_ERROR after a full rollback.
        """

        def _cancel(uow: UnitOfWork, lesson: Lesson) -> LessonCancellation:
            self._guard_transition(lesson, LessonStatus.CANCELED, "cancel_lesson")
            affected = list(lesson.enrolled_tutee_ids)
            uow.lessons.update(lesson, status=LessonStatus.CANCELED.value)
            uow.enrollments.delete_for_lesson(lesson)
            return LessonCancellation(lesson=lesson, affected_tutee_ids=affected)

        result = self.with_locked_lesson(
            "cancel_lesson",
            lesson_id,
            _cancel,
            error_code=ErrorCode.CANCEL_ERROR,
            timeout_ms=timeout_ms,
        )
        self.log_operation(
            "cancel_lesson", lesson_id=lesson_id, affected_tutees=len(result.affected_tutee_ids)
        )
        return result

    @BaseService.measure_operation("edit_lesson")
    def edit_lesson(
        self,
        lesson_id: str,
        *,
        description: Optional[str] = None,
        format: Optional[Union[LessonFormat, str]] = None,
        location_or_link: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> Lesson:
        """Apply the non-None fields to an open lesson."""

        def _edit(uow: UnitOfWork, lesson: Lesson) -> Lesson:
            if lesson.status_enum is not LessonStatus.CREATED:
                raise InvalidStatusUpdateException(lesson.status, origin=self.origin("edit_lesson"))

            changes = {}
            if description is not None:
                changes["description"] = description
            if format is not None:
                changes["format"] = LessonFormat(format).value
            if location_or_link is not None:
                changes["location_or_link"] = location_or_link
            if changes:
                uow.lessons.update(lesson, **changes)
            return lesson

        return self.with_locked_lesson("edit_lesson", lesson_id, _edit, timeout_ms=timeout_ms)

    @BaseService.measure_operation("upload_lesson_report")
    def upload_lesson_report(
        self,
        lesson_id: str,
        summary: str,
        tutees_presence: Mapping[str, bool],
        *,
        timeout_ms: Optional[int] = None,
    ) -> Lesson:
        """
        Record the tutor's summary and each enrolled tutee's presence.

        ``tutees_presence`` must name every enrolled tutee and nobody else.
        The lesson becomes ``completed`` when anyone attended, otherwise
        ``unattended``.

        Raises:
            InvalidStatusUpdateException: If the lesson is not open
            ValidationException: INVALID_TUTEE or MISSING_PRESENCE_INFO
        """
        origin = self.origin("upload_lesson_report")

        def _report(uow: UnitOfWork, lesson: Lesson) -> Lesson:
            self._guard_transition(lesson, LessonStatus.COMPLETED, "upload_lesson_report")

            enrolled = {e.tutee_user_id: e for e in lesson.enrollments}
            unknown = [tutee for tutee in tutees_presence if tutee not in enrolled]
            if unknown:
                raise ValidationException(
                    f"Tutee {unknown[0]} is not enrolled in this lesson",
                    code=ErrorCode.INVALID_TUTEE,
                    details={"tutee_user_ids": unknown},
                    origin=origin,
                )
            missing = [tutee for tutee in enrolled if tutee not in tutees_presence]
            if missing:
                raise ValidationException(
                    f"Presence information missing for tutee {missing[0]}",
                    code=ErrorCode.MISSING_PRESENCE_INFO,
                    details={"tutee_user_ids": missing},
                    origin=origin,
                )

            anyone_present = any(bool(present) for present in tutees_presence.values())
            target = LessonStatus.COMPLETED if anyone_present else LessonStatus.UNATTENDED
            for tutee_user_id, enrollment in enrolled.items():
                uow.enrollments.update(enrollment, presence=bool(tutees_presence[tutee_user_id]))
            uow.lessons.update(lesson, summary=summary, status=target.value)
            return lesson

        lesson = self.with_locked_lesson(
            "upload_lesson_report", lesson_id, _report, timeout_ms=timeout_ms
        )
        self.log_operation("upload_lesson_report", lesson_id=lesson_id, status=lesson.status)
        return lesson

    @BaseService.measure_operation("update_lesson_verdict")
    def update_lesson_verdict(
        self, lesson_id: str, is_approved: bool, *, timeout_ms: Optional[int] = None
    ) -> Lesson:
        """Admin verdict on a reported lesson: ``approved`` or ``notapproved``."""
        target = LessonStatus.APPROVED if is_approved else LessonStatus.NOTAPPROVED

        def _verdict(uow: UnitOfWork, lesson: Lesson) -> Lesson:
            self._guard_transition(lesson, target, "update_lesson_verdict")
            return uow.lessons.update(lesson, status=target.value)

        lesson = self.with_locked_lesson(
            "update_lesson_verdict", lesson_id, _verdict, timeout_ms=timeout_ms
        )
        self.log_operation("update_lesson_verdict", lesson_id=lesson_id, status=lesson.status)
        return lesson

    # Listings

    def get_lessons_of_tutor(
        self, tutor_user_id: str, category: Union[TutorLessonCategory, str]
    ) -> List[Lesson]:
        """
        List a tutor's open lessons.

        ``upcoming``: not yet started, soonest first.
        ``summaryPending``: ended more than an hour ago, still awaiting a
        report, with at least one enrolled tutee.
        """
        parsed = self._parse_category(TutorLessonCategory, category, "get_lessons_of_tutor")
        now = self.now()
        with self.read("get_lessons_of_tutor") as uow:
            if parsed is TutorLessonCategory.UPCOMING:
                return uow.lessons.find_upcoming_for_tutor(tutor_user_id, now)
            return uow.lessons.find_summary_pending_for_tutor(tutor_user_id, now - LESSON_DURATION)

    def get_lessons_of_tutee(
        self, tutee_user_id: str, category: Union[TuteeLessonCategory, str]
    ) -> List[Lesson]:
        parsed = self._parse_category(TuteeLessonCategory, category, "get_lessons_of_tutee")
        now = self.now()
        with self.read("get_lessons_of_tutee") as uow:
            if parsed is TuteeLessonCategory.UPCOMING:
                return uow.lessons.find_upcoming_for_tutee(tutee_user_id, now)
            return uow.lessons.find_review_pending_for_tutee(
                tutee_user_id, now - REVIEW_WINDOW, now - LESSON_DURATION
            )

    def search_available_lessons(
        self,
        subject: Optional[str] = None,
        grade: Optional[str] = None,
        level: Optional[str] = None,
        tutee_user_id: Optional[str] = None,
    ) -> List[Lesson]:
        with self.read("search_available_lessons") as uow:
            return uow.lessons.search_available(
                self.now(),
                subject=subject,
                grade=grade,
                level=level,
                exclude_tutee_user_id=tutee_user_id,
            )

    def get_verdict_pending_lessons(self) -> List[Lesson]:
        with self.read("get_verdict_pending_lessons") as uow:
            return uow.lessons.find_verdict_pending()

    def get_amount_of_approved_lessons(self, tutor_user_id: str) -> int:
        with self.read("get_amount_of_approved_lessons") as uow:
            return uow.lessons.count_by_status_for_tutor(tutor_user_id, LessonStatus.APPROVED)

    # Helpers

    def _guard_transition(self, lesson: Lesson, target: LessonStatus, operation: str) -> None:
        if not lesson.status_enum.can_transition_to(target):
            raise InvalidStatusUpdateException(
                lesson.status, target.value, origin=self.origin(operation)
            )

    def _parse_category(self, enum_cls, category, operation: str):
        try:
            return enum_cls(category)
        except ValueError:
            raise ValidationException(
                f"Invalid lesson category: {category}",
                code=ErrorCode.INVALID_LESSON_CATEGORY,
                details={"allowed": [c.value for c in enum_cls]},
                origin=self.origin(operation),
            ) from None
