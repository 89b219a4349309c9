# backend/lesson_service/models/lesson.py
"""
Lesson model.

A lesson is a one-hour slot offered by a tutor. It is never physically
deleted: cancellation only flips its status and drops its enrollments.
"""

from typing import List

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from ..core.enums import LessonFormat, LessonStatus
from ..core.timezone_utils import utcnow
from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in LessonStatus)
_FORMAT_VALUES = ", ".join(f"'{f.value}'" for f in LessonFormat)


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    tutor_id = Column(String(26), ForeignKey("tutors.id"), nullable=False)

    subject_name = Column(String(100), nullable=False)
    grade = Column(String(20), nullable=False)
    level = Column(String(20), nullable=False)
    description = Column(Text, nullable=False, default="")
    appointed_date_time = Column(UTCDateTime(), nullable=False)
    format = Column(String(20), nullable=False, default=LessonFormat.ONLINE.value)
    location_or_link = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=LessonStatus.CREATED.value)
    summary = Column(Text, nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=utcnow)

    tutor = relationship("Tutor", lazy="selectin")
    enrollments = relationship(
        "Enrollment",
        back_populates="lesson",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="Enrollment.created_at",
    )

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_lessons_status"),
        CheckConstraint(f"format IN ({_FORMAT_VALUES})", name="ck_lessons_format"),
        Index("ix_lessons_tutor_status_time", "tutor_id", "status", "appointed_date_time"),
        Index("ix_lessons_status_time", "status", "appointed_date_time"),
    )

    @property
    def status_enum(self) -> LessonStatus:
        return LessonStatus(self.status)

    @property
    def enrolled_tutee_ids(self) -> List[str]:
        return [e.tutee_user_id for e in self.enrollments]

    def __repr__(self) -> str:
        return (
            f"<Lesson {self.id} tutor={self.tutor_id} {self.subject_name} "
            f"at={self.appointed_date_time} status={self.status}>"
        )
