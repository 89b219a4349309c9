"""Repositories and the SchedulingStore unit of work."""

from .base_repository import BaseRepository, IRepository
from .enrollment_repository import EnrollmentRepository
from .factory import RepositoryFactory
from .lesson_repository import LessonRepository
from .scheduling_store import SchedulingStore, UnitOfWork
from .tutor_repository import TutorRepository

__all__ = [
    "BaseRepository",
    "EnrollmentRepository",
    "IRepository",
    "LessonRepository",
    "RepositoryFactory",
    "SchedulingStore",
    "TutorRepository",
    "UnitOfWork",
]
