"""Pydantic request and response models."""

from .lesson import (
    CallerIdentity,
    EnrollmentResponse,
    LessonCreate,
    LessonReport,
    LessonResponse,
    LessonUpdate,
    LessonVerdict,
    PresenceEntry,
    ReviewCreate,
)

__all__ = [
    "CallerIdentity",
    "EnrollmentResponse",
    "LessonCreate",
    "LessonReport",
    "LessonResponse",
    "LessonUpdate",
    "LessonVerdict",
    "PresenceEntry",
    "ReviewCreate",
]
