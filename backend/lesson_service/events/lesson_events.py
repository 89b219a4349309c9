"""Lesson domain events."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List


@dataclass
class LessonCanceledByTutor:
    """Fired after a tutor cancels a lesson; every affected tutee is notified."""

    event_name: ClassVar[str] = "notifyStudentsOnLessonCancellation"

    lesson_id: str
    tutee_user_ids: List[str] = field(default_factory=list)
    subject: str = ""
    appointed_date_time: datetime | None = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TuteeWithdrew:
    """Fired after a tutee withdraws from a lesson; the tutor is notified."""

    event_name: ClassVar[str] = "notifyMentorOnStudentCancellation"

    lesson_id: str
    tutor_user_id: str
    tutee_user_id: str
    subject: str = ""
    appointed_date_time: datetime | None = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
