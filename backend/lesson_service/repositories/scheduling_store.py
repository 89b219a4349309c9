# backend/lesson_service/repositories/scheduling_store.py
"""
SchedulingStore: the unit of work over tutors, lessons and enrollments.

Each ``transaction()`` opens its own session, so one store can be shared by
every thread of the process. Nothing in-process serialises callers; all
mutual exclusion comes from row locks taken inside the transaction.
"""

from contextlib import contextmanager
import logging
from typing import Iterator, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..core.config import Settings, settings as default_settings
from ..database.engines import create_store_engine
from ..database.session_utils import get_dialect_name
from ..database.sessions import make_session_factory
from .factory import RepositoryFactory

logger = logging.getLogger(__name__)


class UnitOfWork:
    """One open store transaction and the repositories bound to it."""

    def __init__(self, session: Session):
        self.session = session
        self.tutors = RepositoryFactory.create_tutor_repository(session)
        self.lessons = RepositoryFactory.create_lesson_repository(session)
        self.enrollments = RepositoryFactory.create_enrollment_repository(session)

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.session)

    def apply_timeouts(self, lock_timeout_ms: int, statement_timeout_ms: int) -> None:
        """Bound lock waits and statements for the rest of this transaction (PostgreSQL only)."""
        if self.dialect_name != "postgresql":
            return
        if lock_timeout_ms:
            self.session.execute(text(f"SET LOCAL lock_timeout = '{int(lock_timeout_ms)}ms'"))
        if statement_timeout_ms:
            self.session.execute(
                text(f"SET LOCAL statement_timeout = '{int(statement_timeout_ms)}ms'")
            )


class SchedulingStore:
    """
    Transactional persistence for the lesson service.

    Built once at process start from settings (or an explicit engine) and
    injected into the services.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        config: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.config = config or default_settings

    @classmethod
    def from_engine(cls, engine: Engine, *, config: Optional[Settings] = None) -> "SchedulingStore":
        return cls(make_session_factory(engine), config=config)

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "SchedulingStore":
        cfg = config or default_settings
        return cls.from_engine(create_store_engine(config=cfg), config=cfg)

    @contextmanager
    def transaction(
        self,
        *,
        lock_timeout_ms: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
    ) -> Iterator[UnitOfWork]:
        """
        Run the block in one transaction.

        Commits when the block exits normally; any exception rolls the whole
        transaction back before it propagates. Timeouts default to settings.
        """
        session = self.session_factory()
        uow = UnitOfWork(session)
        try:
            uow.apply_timeouts(
                self.config.lock_timeout_ms if lock_timeout_ms is None else lock_timeout_ms,
                self.config.statement_timeout_ms
                if statement_timeout_ms is None
                else statement_timeout_ms,
            )
            yield uow
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def read(self) -> Iterator[UnitOfWork]:
        """
        Unlocked read-only access; nothing is committed.

        Closing (not rolling back) ends the transaction without expiring the
        loaded rows, so results stay readable once detached.
        """
        session = self.session_factory()
        try:
            yield UnitOfWork(session)
        finally:
            session.close()
