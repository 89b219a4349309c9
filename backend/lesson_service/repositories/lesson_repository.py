# backend/lesson_service/repositories/lesson_repository.py
"""
Lesson data access.

Counting and overlap queries are run inside the caller's transaction after
the relevant locks have been taken; listings run without locks.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, exists, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.capacity_policy import MAX_TUTEES_PER_LESSON
from ..core.enums import VERDICT_PENDING_STATUSES, LessonStatus
from ..core.exceptions import RepositoryException
from ..models.enrollment import Enrollment
from ..models.lesson import Lesson
from ..models.tutor import Tutor
from .base_repository import BaseRepository

_CREATED = LessonStatus.CREATED.value


class LessonRepository(BaseRepository[Lesson]):
    def __init__(self, db: Session):
        super().__init__(db, Lesson)

    def lock_and_load(self, ident: str) -> Optional[Lesson]:
        """Lock the lesson row only; enrollments are loaded but not locked."""
        try:
            return (
                self._query()
                .filter(Lesson.id == ident)
                .with_for_update(of=Lesson)
                .populate_existing()
                .one_or_none()
            )
        except SQLAlchemyError as e:
            self.logger.error("Error locking lesson %s: %s", ident, e)
            raise RepositoryException(f"Failed to lock Lesson: {e}") from e

    def reload_enrollments(self, lesson: Lesson) -> None:
        """Re-read ``lesson.enrollments`` after rows were added or removed in this transaction."""
        try:
            self.db.expire(lesson, ["enrollments"])
            lesson.enrollments  # noqa: B018  triggers the load
        except SQLAlchemyError as e:
            self.logger.error("Error reloading enrollments of lesson %s: %s", lesson.id, e)
            raise RepositoryException(f"Failed to reload enrollments: {e}") from e

    # Counting under lock

    def count_open_future_for_tutor(self, tutor_id: str, now: datetime) -> int:
        return self.count(
            Lesson.tutor_id == tutor_id,
            Lesson.status == _CREATED,
            Lesson.appointed_date_time >= now,
        )

    def find_open_in_window(self, tutor_id: str, start: datetime, end: datetime) -> List[Lesson]:
        """Open lessons of ``tutor_id`` with time in ``[start, end]``."""
        return self.find_many(
            Lesson.tutor_id == tutor_id,
            Lesson.status == _CREATED,
            Lesson.appointed_date_time >= start,
            Lesson.appointed_date_time <= end,
            order_by=(Lesson.appointed_date_time,),
        )

    # Tutor listings

    def find_upcoming_for_tutor(self, tutor_user_id: str, now: datetime) -> List[Lesson]:
        return self.find_many(
            Lesson.tutor_id == self._tutor_id_subquery(tutor_user_id),
            Lesson.status == _CREATED,
            Lesson.appointed_date_time >= now,
            order_by=(Lesson.appointed_date_time,),
        )

    def find_summary_pending_for_tutor(self, tutor_user_id: str, cutoff: datetime) -> List[Lesson]:
        """Open lessons that ended before ``cutoff`` and have at least one enrollment."""
        return self.find_many(
            Lesson.tutor_id == self._tutor_id_subquery(tutor_user_id),
            Lesson.status == _CREATED,
            Lesson.appointed_date_time < cutoff,
            exists().where(Enrollment.lesson_id == Lesson.id),
            order_by=(Lesson.appointed_date_time,),
        )

    def count_by_status_for_tutor(self, tutor_user_id: str, status: LessonStatus) -> int:
        return self.count(
            Lesson.tutor_id == self._tutor_id_subquery(tutor_user_id),
            Lesson.status == status.value,
        )

    # Tutee listings

    def find_upcoming_for_tutee(self, tutee_user_id: str, now: datetime) -> List[Lesson]:
        return self._find_enrolled(
            tutee_user_id,
            Lesson.status == _CREATED,
            Lesson.appointed_date_time >= now,
        )

    def find_review_pending_for_tutee(
        self, tutee_user_id: str, start: datetime, end: datetime
    ) -> List[Lesson]:
        return self._find_enrolled(
            tutee_user_id,
            Lesson.status == _CREATED,
            Lesson.appointed_date_time >= start,
            Lesson.appointed_date_time <= end,
        )

    def search_available(
        self,
        now: datetime,
        *,
        subject: Optional[str] = None,
        grade: Optional[str] = None,
        level: Optional[str] = None,
        exclude_tutee_user_id: Optional[str] = None,
    ) -> List[Lesson]:
        """
        Open future lessons that still have a free seat.

        ``None`` filters are ignored. Lessons the given tutee is already
        enrolled in are left out.
        """
        enrolled_count = (
            select(func.count())
            .select_from(Enrollment)
            .where(Enrollment.lesson_id == Lesson.id)
            .scalar_subquery()
        )
        criteria = [
            Lesson.status == _CREATED,
            Lesson.appointed_date_time > now,
            enrolled_count < MAX_TUTEES_PER_LESSON,
        ]
        if subject is not None:
            criteria.append(Lesson.subject_name == subject)
        if grade is not None:
            criteria.append(Lesson.grade == grade)
        if level is not None:
            criteria.append(Lesson.level == level)
        if exclude_tutee_user_id is not None:
            criteria.append(
                ~exists().where(
                    and_(
                        Enrollment.lesson_id == Lesson.id,
                        Enrollment.tutee_user_id == exclude_tutee_user_id,
                    )
                )
            )
        return self.find_many(*criteria, order_by=(Lesson.appointed_date_time,))

    # Admin listings

    def find_verdict_pending(self) -> List[Lesson]:
        return self.find_many(
            Lesson.status.in_([s.value for s in VERDICT_PENDING_STATUSES]),
            order_by=(Lesson.appointed_date_time,),
        )

    # Helpers

    @staticmethod
    def _tutor_id_subquery(tutor_user_id: str):
        return select(Tutor.id).where(Tutor.user_id == tutor_user_id).scalar_subquery()

    def _find_enrolled(self, tutee_user_id: str, *criteria) -> List[Lesson]:
        try:
            return (
                self._query()
                .join(Enrollment, Enrollment.lesson_id == Lesson.id)
                .filter(Enrollment.tutee_user_id == tutee_user_id, *criteria)
                .order_by(Lesson.appointed_date_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error("Error listing lessons of tutee %s: %s", tutee_user_id, e)
            raise RepositoryException(f"Failed to find records: {e}") from e
