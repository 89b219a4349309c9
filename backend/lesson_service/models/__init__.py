"""SQLAlchemy models for the lesson service."""

from .enrollment import RATING_COLUMNS, Enrollment
from .lesson import Lesson
from .tutor import Tutor
from .types import UTCDateTime

__all__ = ["Enrollment", "Lesson", "RATING_COLUMNS", "Tutor", "UTCDateTime"]
