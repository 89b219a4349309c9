# backend/lesson_service/services/enrollment_coordinator.py
"""
Enrollment coordination for the lesson service.

Enroll, withdraw and review run in a single transaction each, with the
lesson row locked first and, for enroll, the tutee scope locked second.
That ordering is the same everywhere, so two operations never wait on each
other's locks in opposite order.
"""

from typing import Optional

from ..core.capacity_policy import (
    MAX_SIGNEDUP_LESSONS_PER_TUTEE,
    MAX_TUTEES_PER_LESSON,
    is_within_review_window,
    lesson_is_full,
    review_window,
    tutee_has_reached_limit,
)
from ..core.enums import LessonStatus
from ..core.exceptions import (
    ConflictException,
    DuplicateEntryException,
    ErrorCode,
    InvalidStatusUpdateException,
    NotFoundException,
    ValidationException,
)
from ..models.enrollment import Enrollment
from ..models.lesson import Lesson
from ..repositories.scheduling_store import UnitOfWork
from .base import BaseService


class EnrollmentCoordinator(BaseService):
    """Service for tutee enrollments and reviews."""

    @BaseService.measure_operation("enroll")
    def enroll(
        self,
        lesson_id: str,
        tutee_user_id: str,
        tutee_full_name: str,
        tutee_email: Optional[str] = None,
        *,
        timeout_ms: Optional[int] = None,
    ) -> Lesson:
        """
        Enroll a tutee into an open lesson.

        Checks run in a fixed order once the locks are held: lesson still
        open, tutee limit, lesson capacity, duplicate enrollment.

        Returns:
            The lesson with its refreshed enrollment list

        Raises:
            NotFoundException: If the lesson does not exist
            ConflictException: LESSON_NOT_OPEN, TUTEE_LIMIT_REACHED,
                LESSON_FULL or ALREADY_SIGNED_UP
        """
        origin = self.origin("enroll")

        def _enroll(uow: UnitOfWork, lesson: Lesson) -> Lesson:
            now = self.now()
            if lesson.status_enum is not LessonStatus.CREATED or lesson.appointed_date_time <= now:
                raise ConflictException(
                    "Lesson is no longer open for enrollment",
                    code=ErrorCode.LESSON_NOT_OPEN,
                    details={"status": lesson.status},
                    origin=origin,
                )

            uow.enrollments.lock_tutee_scope(tutee_user_id)
            signed_up = uow.enrollments.count_open_future_for_tutee(tutee_user_id, now)
            if tutee_has_reached_limit(signed_up):
                raise ConflictException(
                    f"Tutee is already signed up for {MAX_SIGNEDUP_LESSONS_PER_TUTEE} lessons",
                    code=ErrorCode.TUTEE_LIMIT_REACHED,
                    details={"signed_up": signed_up, "limit": MAX_SIGNEDUP_LESSONS_PER_TUTEE},
                    origin=origin,
                )

            enrolled = uow.enrollments.count_for_lesson(lesson.id)
            if lesson_is_full(enrolled):
                raise ConflictException(
                    "Lesson is full",
                    code=ErrorCode.LESSON_FULL,
                    details={"enrolled": enrolled, "limit": MAX_TUTEES_PER_LESSON},
                    origin=origin,
                )

            if uow.enrollments.get_for_tutee(lesson.id, tutee_user_id) is not None:
                raise self._already_signed_up(origin)

            try:
                uow.enrollments.insert(
                    Enrollment(
                        lesson_id=lesson.id,
                        tutee_user_id=tutee_user_id,
                        tutee_full_name=tutee_full_name,
                        tutee_email=tutee_email,
                    )
                )
            except DuplicateEntryException as exc:
                raise self._already_signed_up(origin) from exc

            uow.lessons.reload_enrollments(lesson)
            return lesson

        lesson = self.with_locked_lesson("enroll", lesson_id, _enroll, timeout_ms=timeout_ms)
        self.log_operation("enroll", lesson_id=lesson_id, tutee_user_id=tutee_user_id)
        return lesson

    @BaseService.measure_operation("withdraw")
    def withdraw(
        self, lesson_id: str, tutee_user_id: str, *, timeout_ms: Optional[int] = None
    ) -> Lesson:
        """Remove a tutee's enrollment; returns the lesson with the remaining enrollments."""
        origin = self.origin("withdraw")

        def _withdraw(uow: UnitOfWork, lesson: Lesson) -> Lesson:
            enrollment = uow.enrollments.get_for_tutee(lesson.id, tutee_user_id, for_update=True)
            if enrollment is None:
                raise NotFoundException(
                    "You are not enrolled in this lesson", code=ErrorCode.NOT_ENROLLED, origin=origin
                )
            uow.enrollments.delete(enrollment)
            uow.lessons.reload_enrollments(lesson)
            return lesson

        lesson = self.with_locked_lesson("withdraw", lesson_id, _withdraw, timeout_ms=timeout_ms)
        self.log_operation("withdraw", lesson_id=lesson_id, tutee_user_id=tutee_user_id)
        return lesson

    @BaseService.measure_operation("add_review")
    def add_review(
        self,
        lesson_id: str,
        tutee_user_id: str,
        *,
        clarity: int,
        understanding: int,
        focus: int,
        helpful: int,
        timeout_ms: Optional[int] = None,
    ) -> Enrollment:
        """
        Store a tutee's ratings on their own enrollment.

        Raises:
            NotFoundException: NOT_FOUND or NOT_ENROLLED
            ConflictException: REVIEW_EXISTS
            ValidationException: REVIEW_WINDOW_CLOSED
            InvalidStatusUpdateException: If the lesson is no longer ``created``
        """
        origin = self.origin("add_review")

        with self.transaction(
            "add_review", lock_timeout_ms=timeout_ms, statement_timeout_ms=timeout_ms
        ) as uow:
            lesson = uow.lessons.get_by_id(lesson_id)
            if lesson is None:
                raise NotFoundException("Lesson not found", origin=origin)

            enrollment = uow.enrollments.get_for_tutee(lesson_id, tutee_user_id, for_update=True)
            if enrollment is None:
                raise NotFoundException(
                    "You are not enrolled in this lesson", code=ErrorCode.NOT_ENROLLED, origin=origin
                )
            if enrollment.has_review:
                raise ConflictException(
                    "Review already submitted for this lesson",
                    code=ErrorCode.REVIEW_EXISTS,
                    origin=origin,
                )

            now = self.now()
            if not is_within_review_window(lesson.appointed_date_time, now):
                opens, closes = review_window(lesson.appointed_date_time)
                raise ValidationException(
                    "Lesson can only be reviewed between its end and 7 days after it",
                    code=ErrorCode.REVIEW_WINDOW_CLOSED,
                    details={"opens_at": opens.isoformat(), "closes_at": closes.isoformat()},
                    origin=origin,
                )
            if lesson.status_enum is not LessonStatus.CREATED:
                raise InvalidStatusUpdateException(lesson.status, origin=origin)

            uow.enrollments.update(
                enrollment,
                clarity=clarity,
                understanding=understanding,
                focus=focus,
                helpful=helpful,
            )

        self.log_operation("add_review", lesson_id=lesson_id, tutee_user_id=tutee_user_id)
        return enrollment

    @staticmethod
    def _already_signed_up(origin: str) -> ConflictException:
        return ConflictException(
            "Tutee is already signed up for this lesson",
            code=ErrorCode.ALREADY_SIGNED_UP,
            origin=origin,
        )
