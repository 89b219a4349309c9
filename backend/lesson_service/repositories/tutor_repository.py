# backend/lesson_service/repositories/tutor_repository.py
"""Tutor data access."""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.tutor import Tutor
from .base_repository import BaseRepository


class TutorRepository(BaseRepository[Tutor]):
    def __init__(self, db: Session):
        super().__init__(db, Tutor)

    def get_by_user_id(self, user_id: str, *, for_update: bool = False) -> Optional[Tutor]:
        """
        Find the tutor row of an external user.

        With ``for_update`` the row lock guards the tutor's set of open lessons
        until the transaction ends.
        """
        try:
            query = self._query().filter(Tutor.user_id == user_id)
            if for_update:
                query = query.with_for_update().populate_existing()
            return query.one_or_none()
        except SQLAlchemyError as e:
            self.logger.error("Error getting tutor for user %s: %s", user_id, e)
            raise RepositoryException(f"Failed to retrieve tutor: {e}") from e
