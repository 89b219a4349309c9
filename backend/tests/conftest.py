# backend/tests/conftest.py
"""
Shared fixtures for the lesson service test suite.

Every test gets its own SQLite file database (so threads in race tests see
the same data) unless TEST_DATABASE_URL points at a PostgreSQL test
database, in which case tables are created and dropped around each test.
"""

from typing import Iterator
from unittest.mock import Mock

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from lesson_service.core.config import settings
from lesson_service.database import Base, create_store_engine, init_db
from lesson_service.repositories.scheduling_store import SchedulingStore
from lesson_service.services.enrollment_coordinator import EnrollmentCoordinator
from lesson_service.services.lesson_lifecycle import LessonLifecycle
from lesson_service.services.lesson_service import LessonService
from tests.helpers.clock import FROZEN_NOW, FrozenClock


def _test_database_url(tmp_path) -> str:
    if settings.test_database_url:
        return settings.test_database_url
    return f"sqlite:///{tmp_path / 'lessons_test.db'}"


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(FROZEN_NOW)


@pytest.fixture
def engine(tmp_path) -> Iterator[Engine]:
    url = _test_database_url(tmp_path)
    test_engine = create_store_engine(url, config=settings, pool_name="TEST")
    init_db(test_engine)

    yield test_engine

    if test_engine.dialect.name != "sqlite":
        Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def store(engine: Engine) -> SchedulingStore:
    return SchedulingStore.from_engine(engine, config=settings)


@pytest.fixture
def db(store: SchedulingStore) -> Iterator[Session]:
    """A plain session for asserting on committed state."""
    session = store.session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def hook() -> Mock:
    return Mock(name="event_hook")


@pytest.fixture
def lifecycle(store: SchedulingStore, clock: FrozenClock) -> LessonLifecycle:
    return LessonLifecycle(store, clock)


@pytest.fixture
def coordinator(store: SchedulingStore, clock: FrozenClock) -> EnrollmentCoordinator:
    return EnrollmentCoordinator(store, clock)


@pytest.fixture
def lesson_service(store: SchedulingStore, clock: FrozenClock, hook: Mock) -> LessonService:
    return LessonService(store, hook=hook, clock=clock)
