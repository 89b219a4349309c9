# backend/lesson_service/repositories/enrollment_repository.py
"""Enrollment data access, including the per-tutee scope lock."""

from datetime import datetime
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import LessonStatus
from ..core.exceptions import RepositoryException
from ..models.enrollment import Enrollment
from ..models.lesson import Lesson
from .base_repository import BaseRepository

TUTEE_LOCK_SCOPE = "tutee-enrollments"


class EnrollmentRepository(BaseRepository[Enrollment]):
    def __init__(self, db: Session):
        super().__init__(db, Enrollment)

    def lock_tutee_scope(self, tutee_user_id: str) -> None:
        """
        Serialise enrollment changes of one tutee until the transaction ends.

        PostgreSQL takes a transaction-scoped advisory lock keyed on the tutee.
        SQLite transactions already start with BEGIN IMMEDIATE and hold the
        database write lock, so nothing more is needed there.
        """
        if self.dialect_name != "postgresql":
            return
        try:
            self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:scope), hashtext(:key))"),
                {"scope": TUTEE_LOCK_SCOPE, "key": tutee_user_id},
            )
        except SQLAlchemyError as e:
            self.logger.error("Error locking enrollments of tutee %s: %s", tutee_user_id, e)
            raise RepositoryException(f"Failed to lock tutee scope: {e}") from e

    def get_for_tutee(
        self, lesson_id: str, tutee_user_id: str, *, for_update: bool = False
    ) -> Optional[Enrollment]:
        ident = (lesson_id, tutee_user_id)
        return self.lock_and_load(ident) if for_update else self.get_by_id(ident)

    def count_for_lesson(self, lesson_id: str) -> int:
        return self.count(Enrollment.lesson_id == lesson_id)

    def count_open_future_for_tutee(self, tutee_user_id: str, now: datetime) -> int:
        """Enrollments of ``tutee_user_id`` on open lessons appointed at or after ``now``."""
        try:
            return (
                self._query()
                .join(Lesson, Lesson.id == Enrollment.lesson_id)
                .filter(
                    Enrollment.tutee_user_id == tutee_user_id,
                    Lesson.status == LessonStatus.CREATED.value,
                    Lesson.appointed_date_time >= now,
                )
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error("Error counting enrollments of tutee %s: %s", tutee_user_id, e)
            raise RepositoryException(f"Failed to count records: {e}") from e

    def delete_for_lesson(self, lesson: Lesson) -> int:
        """Drop every enrollment of ``lesson`` through the delete-orphan cascade."""
        removed = len(lesson.enrollments)
        try:
            lesson.enrollments.clear()
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error("Error deleting enrollments of lesson %s: %s", lesson.id, e)
            raise RepositoryException(f"Failed to delete enrollments: {e}") from e
        return removed
