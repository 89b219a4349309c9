# backend/lesson_service/repositories/factory.py
"""
Repository Factory for the lesson service.

Centralizes creation of repository instances so the unit of work and tests
build them the same way.
"""

from sqlalchemy.orm import Session

from .enrollment_repository import EnrollmentRepository
from .lesson_repository import LessonRepository
from .tutor_repository import TutorRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_tutor_repository(db: Session) -> TutorRepository:
        return TutorRepository(db)

    @staticmethod
    def create_lesson_repository(db: Session) -> LessonRepository:
        return LessonRepository(db)

    @staticmethod
    def create_enrollment_repository(db: Session) -> EnrollmentRepository:
        return EnrollmentRepository(db)
