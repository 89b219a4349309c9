"""Capacity and timing rules for lessons, tutors and tutees."""

from __future__ import annotations

from datetime import datetime, timedelta

MAX_TUTEES_PER_LESSON = 2
MAX_OPEN_LESSONS_PER_TUTOR = 6
MAX_SIGNEDUP_LESSONS_PER_TUTEE = 3

MIN_CHANGE_LEAD_TIME = timedelta(hours=3)
LESSON_DURATION = timedelta(hours=1)
OVERLAP_WINDOW = timedelta(hours=1)
REVIEW_WINDOW = timedelta(days=7)
SCHEDULING_HORIZON = timedelta(days=14)


def lesson_end(appointed: datetime) -> datetime:
    """Appointed end of a lesson (report and review open from here)."""

    return appointed + LESSON_DURATION


def tutor_has_reached_limit(open_lesson_count: int) -> bool:
    return open_lesson_count >= MAX_OPEN_LESSONS_PER_TUTOR


def tutee_has_reached_limit(signed_up_count: int) -> bool:
    return signed_up_count >= MAX_SIGNEDUP_LESSONS_PER_TUTEE


def lesson_is_full(enrolled_count: int) -> bool:
    return enrolled_count >= MAX_TUTEES_PER_LESSON


def hours_until(appointed: datetime, now: datetime) -> float:
    return (appointed - now).total_seconds() / 3600


def meets_change_lead_time(appointed: datetime, now: datetime) -> bool:
    """Return True while cancel/withdraw are still allowed (strictly more than 3h ahead)."""

    return appointed - now > MIN_CHANGE_LEAD_TIME


def has_lesson_ended(appointed: datetime, now: datetime) -> bool:
    return now >= lesson_end(appointed)


def overlap_bounds(candidate: datetime) -> tuple[datetime, datetime]:
    """Inclusive window around ``candidate`` in which the tutor may not hold another open lesson."""

    return candidate - OVERLAP_WINDOW, candidate + OVERLAP_WINDOW


def review_window(appointed: datetime) -> tuple[datetime, datetime]:
    """Inclusive window in which a tutee may review: from the appointed end up to 7 days after."""

    return lesson_end(appointed), appointed + REVIEW_WINDOW


def is_within_review_window(appointed: datetime, now: datetime) -> bool:
    opens, closes = review_window(appointed)
    return opens <= now <= closes


def is_within_scheduling_horizon(appointed: datetime, now: datetime) -> bool:
    """Used by the validation collaborator; the engine does not re-check it."""

    return now < appointed <= now + SCHEDULING_HORIZON


__all__ = [
    "MAX_TUTEES_PER_LESSON",
    "MAX_OPEN_LESSONS_PER_TUTOR",
    "MAX_SIGNEDUP_LESSONS_PER_TUTEE",
    "MIN_CHANGE_LEAD_TIME",
    "LESSON_DURATION",
    "OVERLAP_WINDOW",
    "REVIEW_WINDOW",
    "SCHEDULING_HORIZON",
    "lesson_end",
    "tutor_has_reached_limit",
    "tutee_has_reached_limit",
    "lesson_is_full",
    "hours_until",
    "meets_change_lead_time",
    "has_lesson_ended",
    "overlap_bounds",
    "review_window",
    "is_within_review_window",
    "is_within_scheduling_horizon",
]
