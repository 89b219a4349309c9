# backend/lesson_service/services/lesson_service.py
"""
LessonService: the operations callers use.

Resolves the lesson, applies the caller-owned preconditions (ownership,
status, lead time, lesson has ended), delegates to LessonLifecycle or
EnrollmentCoordinator, and publishes notification events once the engine's
transaction has committed.

The preconditions are a fast path over a plain read. Everything that must
hold under concurrency is re-checked by the engine under lock.
"""

from typing import List, Optional, Union

from ..core.capacity_policy import (
    MIN_CHANGE_LEAD_TIME,
    has_lesson_ended,
    hours_until,
    lesson_end,
    meets_change_lead_time,
)
from ..core.enums import LessonStatus, TuteeLessonCategory, TutorLessonCategory
from ..core.exceptions import (
    ConflictException,
    ErrorCode,
    ForbiddenException,
    InsufficientNoticeException,
    InvalidStatusUpdateException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import Clock
from ..events.lesson_events import LessonCanceledByTutor, TuteeWithdrew
from ..events.publisher import EventHook, EventPublisher
from ..models.enrollment import Enrollment
from ..models.lesson import Lesson
from ..repositories.scheduling_store import SchedulingStore
from ..schemas.lesson import (
    CallerIdentity,
    LessonCreate,
    LessonReport,
    LessonUpdate,
    LessonVerdict,
    ReviewCreate,
)
from .base import BaseService
from .enrollment_coordinator import EnrollmentCoordinator
from .lesson_lifecycle import LessonCancellation, LessonLifecycle

_LEAD_TIME_HOURS = int(MIN_CHANGE_LEAD_TIME.total_seconds() // 3600)


class LessonService(BaseService):
    """
    Entry point for tutor, tutee and admin lesson operations.

    Every mutating operation takes an optional ``timeout_ms`` that bounds lock
    waits and statements of its transaction; None keeps the store settings.
    """

    def __init__(
        self,
        store: SchedulingStore,
        *,
        hook: Optional[EventHook] = None,
        clock: Optional[Clock] = None,
        lifecycle: Optional[LessonLifecycle] = None,
        coordinator: Optional[EnrollmentCoordinator] = None,
        publisher: Optional[EventPublisher] = None,
    ):
        super().__init__(store, clock)
        self.lifecycle = lifecycle or LessonLifecycle(store, self.clock)
        self.coordinator = coordinator or EnrollmentCoordinator(store, self.clock)
        self.publisher = publisher or EventPublisher(hook)

    # Tutor operations

    def create_lesson(
        self,
        tutor: CallerIdentity,
        lesson_fields: LessonCreate,
        *,
        timeout_ms: Optional[int] = None,
    ) -> Lesson:
        return self.lifecycle.create_lesson(
            tutor_user_id=tutor.user_id,
            tutor_full_name=tutor.full_name,
            tutor_email=tutor.email,
            subject_name=lesson_fields.subject_name,
            grade=lesson_fields.grade,
            level=lesson_fields.level,
            description=lesson_fields.description,
            appointed_date_time=lesson_fields.appointed_date_time,
            format=lesson_fields.format,
            location_or_link=lesson_fields.location_or_link,
            timeout_ms=timeout_ms,
        )

    def cancel_lesson(
        self, lesson_id: str, tutor_user_id: str, *, timeout_ms: Optional[int] = None
    ) -> LessonCancellation:
        """
        Cancel an owned, open lesson more than 3 hours ahead.

        Enrolled tutees are notified after commit.
        """
        operation = "cancel_lesson"
        lesson = self._get_lesson(lesson_id, operation)
        self._ensure_owner(lesson, tutor_user_id, operation)
        if lesson.status_enum is not LessonStatus.CREATED:
            raise InvalidStatusUpdateException(
                lesson.status, LessonStatus.CANCELED.value, origin=self.origin(operation)
            )
        self._ensure_lead_time(lesson, operation)

        result = self.lifecycle.cancel_lesson(lesson_id, timeout_ms=timeout_ms)

        if result.affected_tutee_ids:
            self.publisher.publish(
                LessonCanceledByTutor(
                    lesson_id=result.lesson.id,
                    tutee_user_ids=list(result.affected_tutee_ids),
                    subject=result.lesson.subject_name,
                    appointed_date_time=result.lesson.appointed_date_time,
                )
            )
        return result

    def edit_lesson(
        self,
        lesson_id: str,
        tutor_user_id: str,
        update: LessonUpdate,
        *,
        timeout_ms: Optional[int] = None,
    ) -> Lesson:
        lesson = self._get_lesson(lesson_id, "edit_lesson")
        self._ensure_owner(lesson, tutor_user_id, "edit_lesson")
        return self.lifecycle.edit_lesson(
            lesson_id,
            description=update.description,
            format=update.format,
            location_or_link=update.location_or_link,
            timeout_ms=timeout_ms,
        )

    def upload_lesson_report(
        self,
        lesson_id: str,
        tutor_user_id: str,
        report: LessonReport,
        *,
        timeout_ms: Optional[int] = None,
    ) -> Lesson:
        operation = "upload_lesson_report"
        lesson = self._get_lesson(lesson_id, operation)
        self._ensure_owner(lesson, tutor_user_id, operation)
        if not has_lesson_ended(lesson.appointed_date_time, self.now()):
            raise ValidationException(
                "Cannot report on a lesson that has not ended yet",
                code=ErrorCode.LESSON_NOT_OCCURRED,
                details={"ends_at": lesson_end(lesson.appointed_date_time).isoformat()},
                origin=self.origin(operation),
            )
        return self.lifecycle.upload_lesson_report(
            lesson_id, report.summary, report.presence_by_tutee(), timeout_ms=timeout_ms
        )

    def get_lessons_of_tutor(
        self, tutor_user_id: str, category: Union[TutorLessonCategory, str]
    ) -> List[Lesson]:
        return self.lifecycle.get_lessons_of_tutor(tutor_user_id, category)

    def get_amount_of_approved_lessons(self, tutor_user_id: str) -> int:
        return self.lifecycle.get_amount_of_approved_lessons(tutor_user_id)

    # Tutee operations

    def search_available_lessons(
        self,
        subject: Optional[str] = None,
        grade: Optional[str] = None,
        level: Optional[str] = None,
        tutee_user_id: Optional[str] = None,
    ) -> List[Lesson]:
        return self.lifecycle.search_available_lessons(subject, grade, level, tutee_user_id)

    def get_lessons_of_tutee(
        self, tutee_user_id: str, category: Union[TuteeLessonCategory, str]
    ) -> List[Lesson]:
        return self.lifecycle.get_lessons_of_tutee(tutee_user_id, category)

    def enroll_to_lesson(
        self, lesson_id: str, tutee: CallerIdentity, *, timeout_ms: Optional[int] = None
    ) -> Enrollment:
        lesson = self.coordinator.enroll(
            lesson_id, tutee.user_id, tutee.full_name, tutee.email, timeout_ms=timeout_ms
        )
        return next(e for e in lesson.enrollments if e.tutee_user_id == tutee.user_id)

    def withdraw_from_lesson(
        self, lesson_id: str, tutee_user_id: str, *, timeout_ms: Optional[int] = None
    ) -> Lesson:
        """
        Withdraw from an open lesson more than 3 hours ahead.

        The tutor is notified after commit.
        """
        operation = "withdraw_from_lesson"
        lesson = self._get_lesson(lesson_id, operation)
        if tutee_user_id not in lesson.enrolled_tutee_ids:
            raise NotFoundException(
                "You are not enrolled in this lesson",
                code=ErrorCode.NOT_ENROLLED,
                origin=self.origin(operation),
            )
        if lesson.status_enum is not LessonStatus.CREATED:
            raise ConflictException(
                "Lesson is no longer open",
                code=ErrorCode.LESSON_NOT_OPEN,
                details={"status": lesson.status},
                origin=self.origin(operation),
            )
        self._ensure_lead_time(lesson, operation)

        updated = self.coordinator.withdraw(lesson_id, tutee_user_id, timeout_ms=timeout_ms)

        self.publisher.publish(
            TuteeWithdrew(
                lesson_id=updated.id,
                tutor_user_id=updated.tutor.user_id,
                tutee_user_id=tutee_user_id,
                subject=updated.subject_name,
                appointed_date_time=updated.appointed_date_time,
            )
        )
        return updated

    def add_review(
        self,
        lesson_id: str,
        tutee_user_id: str,
        review: ReviewCreate,
        *,
        timeout_ms: Optional[int] = None,
    ) -> Enrollment:
        return self.coordinator.add_review(
            lesson_id,
            tutee_user_id,
            clarity=review.clarity,
            understanding=review.understanding,
            focus=review.focus,
            helpful=review.helpful,
            timeout_ms=timeout_ms,
        )

    # Admin operations

    def get_verdict_pending_lessons(self) -> List[Lesson]:
        return self.lifecycle.get_verdict_pending_lessons()

    def update_lesson_verdict(
        self, verdict: LessonVerdict, *, timeout_ms: Optional[int] = None
    ) -> Lesson:
        return self.lifecycle.update_lesson_verdict(
            verdict.lesson_id, verdict.is_approved, timeout_ms=timeout_ms
        )

    # Preconditions

    def _get_lesson(self, lesson_id: str, operation: str) -> Lesson:
        with self.read(operation) as uow:
            lesson = uow.lessons.get_by_id(lesson_id)
            if lesson is not None:
                # Relationships must be loaded before the session closes
                _ = lesson.tutor, lesson.enrollments
        if lesson is None:
            raise NotFoundException("Lesson not found", origin=self.origin(operation))
        return lesson

    def _ensure_owner(self, lesson: Lesson, tutor_user_id: str, operation: str) -> None:
        if lesson.tutor.user_id != tutor_user_id:
            raise ForbiddenException(
                "You are not the tutor of this lesson", origin=self.origin(operation)
            )

    def _ensure_lead_time(self, lesson: Lesson, operation: str) -> None:
        now = self.now()
        if not meets_change_lead_time(lesson.appointed_date_time, now):
            raise InsufficientNoticeException(
                _LEAD_TIME_HOURS,
                hours_until(lesson.appointed_date_time, now),
                origin=self.origin(operation),
            )
