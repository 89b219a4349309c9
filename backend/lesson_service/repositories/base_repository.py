# backend/lesson_service/repositories/base_repository.py
"""
Base Repository Pattern for the lesson service.

Provides the foundation for all repository classes with:
- Locked and unlocked primary-key reads
- insert / update / delete that flush but never commit
- count and find_many helpers over arbitrary filter criteria

Transactions belong to the SchedulingStore unit of work. Repositories only
translate SQLAlchemy failures into RepositoryException and never roll back
themselves; the owning transaction does that once for the whole operation.
"""

from abc import ABC, abstractmethod
import logging
from typing import Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import DuplicateEntryException, RepositoryException
from ..database.session_utils import get_dialect_name

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class IRepository(ABC, Generic[T]):
    """
    Abstract repository interface defining core data access methods.

    All repositories must implement these methods to ensure consistency
    across the store.
    """

    @abstractmethod
    def get_by_id(self, ident: Any) -> Optional[T]:
        """Retrieve an entity by its primary key, or None."""

    @abstractmethod
    def lock_and_load(self, ident: Any) -> Optional[T]:
        """
        Retrieve an entity by its primary key under a row write lock.

        The lock is held until the surrounding transaction ends. Identity-map
        state is overwritten with what was read under the lock.
        """

    @abstractmethod
    def insert(self, entity: T) -> T:
        """
        Add a new entity and flush it.

        Raises:
            DuplicateEntryException: On a primary/unique key collision
            RepositoryException: If the insert fails otherwise
        """

    @abstractmethod
    def update(self, entity: T, **fields: Any) -> T:
        """Apply ``fields`` to ``entity`` and flush."""

    @abstractmethod
    def delete(self, entity: T) -> None:
        """Delete ``entity`` and flush."""

    @abstractmethod
    def count(self, *criteria: Any) -> int:
        """Count entities matching the SQLAlchemy filter ``criteria``."""

    @abstractmethod
    def find_many(self, *criteria: Any, order_by: Sequence[Any] = ()) -> List[T]:
        """Return every entity matching ``criteria`` in ``order_by`` order."""


class BaseRepository(IRepository[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session (owned by the unit of work)
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    def _query(self) -> Query:
        return self.db.query(self.model)

    def get_by_id(self, ident: Any) -> Optional[T]:
        try:
            return self.db.get(self.model, ident)
        except SQLAlchemyError as e:
            self.logger.error("Error getting %s by id %s: %s", self.model.__name__, ident, e)
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {e}") from e

    def lock_and_load(self, ident: Any) -> Optional[T]:
        try:
            return self.db.get(
                self.model, ident, with_for_update=True, populate_existing=True
            )
        except SQLAlchemyError as e:
            self.logger.error("Error locking %s %s: %s", self.model.__name__, ident, e)
            raise RepositoryException(f"Failed to lock {self.model.__name__}: {e}") from e

    def insert(self, entity: T) -> T:
        """
        Add a new entity.

        Note: Does NOT commit - transaction management is handled by the store.
        """
        try:
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.warning("Integrity error creating %s: %s", self.model.__name__, exc.orig)
            raise DuplicateEntryException(f"Integrity constraint violated: {exc.orig}") from exc
        except SQLAlchemyError as e:
            self.logger.error("Error creating %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to create {self.model.__name__}: {e}") from e

    def update(self, entity: T, **fields: Any) -> T:
        """Only updates provided fields, preserves others."""
        try:
            for key, value in fields.items():
                if not hasattr(entity, key):
                    raise AttributeError(f"{self.model.__name__} has no attribute '{key}'")
                setattr(entity, key, value)
            self.db.flush()
            return entity
        except SQLAlchemyError as e:
            self.logger.error("Error updating %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to update {self.model.__name__}: {e}") from e

    def delete(self, entity: T) -> None:
        try:
            self.db.delete(entity)
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error("Error deleting %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to delete {self.model.__name__}: {e}") from e

    def count(self, *criteria: Any) -> int:
        try:
            return self._query().filter(*criteria).count()
        except SQLAlchemyError as e:
            self.logger.error("Error counting %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to count records: {e}") from e

    def find_many(self, *criteria: Any, order_by: Sequence[Any] = ()) -> List[T]:
        try:
            return self._query().filter(*criteria).order_by(*order_by).all()
        except SQLAlchemyError as e:
            self.logger.error("Error finding %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to find records: {e}") from e
