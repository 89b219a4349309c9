# backend/lesson_service/services/overlap_detector.py
"""
Overlap detection for a tutor's open lessons.

A tutor may not hold two ``created`` lessons whose appointed times are within
one hour of each other (both bounds inclusive). The detector reads through
the caller's unit of work, so it sees exactly what the caller's locks protect.
"""

import logging
from datetime import datetime
from typing import List, Optional

from ..core.capacity_policy import OVERLAP_WINDOW, overlap_bounds
from ..core.exceptions import ConflictException, ErrorCode
from ..core.timezone_utils import ensure_utc
from ..models.lesson import Lesson
from ..repositories.lesson_repository import LessonRepository

logger = logging.getLogger(__name__)


class OverlapDetector:
    """Finds open lessons of a tutor that clash with a candidate time."""

    def __init__(self, lessons: LessonRepository):
        self.lessons = lessons

    def find_conflicts(self, tutor_id: str, candidate: datetime) -> List[Lesson]:
        start, end = overlap_bounds(ensure_utc(candidate))
        return self.lessons.find_open_in_window(tutor_id, start, end)

    def ensure_no_overlap(
        self, tutor_id: str, candidate: datetime, *, origin: Optional[str] = None
    ) -> None:
        """
        Raise OVERLAPPING_LESSON when ``candidate`` clashes with an open lesson.

        Raises:
            ConflictException: With the clashing lesson ids in ``details``
        """
        conflicts = self.find_conflicts(tutor_id, candidate)
        if not conflicts:
            return

        logger.info(
            "Overlap for tutor %s at %s with %d lesson(s)", tutor_id, candidate, len(conflicts)
        )
        window_minutes = int(OVERLAP_WINDOW.total_seconds() // 60)
        raise ConflictException(
            f"Tutor already has a lesson within {window_minutes} minutes of this time",
            code=ErrorCode.OVERLAPPING_LESSON,
            details={
                "conflicting_lesson_ids": [lesson.id for lesson in conflicts],
                "requested_time": ensure_utc(candidate).isoformat(),
            },
            origin=origin,
        )
