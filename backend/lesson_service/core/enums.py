# backend/lesson_service/core/enums.py
"""
Core enums for the lesson service.

This module contains enumeration types used throughout the engine for type
safety and consistency. All enums inherit from (str, Enum) so values compare
equal to the plain strings stored in the database.
"""

from enum import Enum
from typing import FrozenSet, Mapping


class RoleName(str, Enum):
    """
    Roles carried by the identity collaborator.

    The engine never authenticates; it only reads the role supplied upstream.
    """

    ADMIN = "admin"
    TUTOR = "tutor"
    TUTEE = "tutee"


class LessonStatus(str, Enum):
    """Lesson lifecycle statuses."""

    CREATED = "created"  # Initial - open for enrollment
    CANCELED = "canceled"  # Tutor canceled before the appointed time
    COMPLETED = "completed"  # Report uploaded, at least one tutee present
    UNATTENDED = "unattended"  # Report uploaded, nobody showed up
    APPROVED = "approved"  # Admin verdict
    NOTAPPROVED = "notapproved"  # Admin verdict

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: "LessonStatus") -> bool:
        """Return True when ``self -> target`` is an allowed lifecycle step."""
        return target in ALLOWED_TRANSITIONS.get(self, frozenset())


TERMINAL_STATUSES: FrozenSet[LessonStatus] = frozenset(
    {LessonStatus.CANCELED, LessonStatus.APPROVED, LessonStatus.NOTAPPROVED}
)

VERDICT_PENDING_STATUSES: FrozenSet[LessonStatus] = frozenset(
    {LessonStatus.COMPLETED, LessonStatus.UNATTENDED}
)

ALLOWED_TRANSITIONS: Mapping[LessonStatus, FrozenSet[LessonStatus]] = {
    LessonStatus.CREATED: frozenset(
        {LessonStatus.CANCELED, LessonStatus.COMPLETED, LessonStatus.UNATTENDED}
    ),
    LessonStatus.COMPLETED: frozenset({LessonStatus.APPROVED, LessonStatus.NOTAPPROVED}),
    LessonStatus.UNATTENDED: frozenset({LessonStatus.APPROVED, LessonStatus.NOTAPPROVED}),
}


class LessonFormat(str, Enum):
    """Where the lesson takes place."""

    ONLINE = "online"
    IN_PERSON = "in-person"


class TutorLessonCategory(str, Enum):
    """Listing categories for a tutor's own lessons."""

    UPCOMING = "upcoming"
    SUMMARY_PENDING = "summaryPending"


class TuteeLessonCategory(str, Enum):
    """Listing categories for a tutee's enrolled lessons."""

    UPCOMING = "upcoming"
    REVIEW_PENDING = "reviewPending"
