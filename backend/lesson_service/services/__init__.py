"""Service layer for the lesson service."""

from .base import BaseService
from .enrollment_coordinator import EnrollmentCoordinator
from .lesson_lifecycle import LessonCancellation, LessonLifecycle
from .lesson_service import LessonService
from .overlap_detector import OverlapDetector

__all__ = [
    "BaseService",
    "EnrollmentCoordinator",
    "LessonCancellation",
    "LessonLifecycle",
    "LessonService",
    "OverlapDetector",
]
