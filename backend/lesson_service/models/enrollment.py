# backend/lesson_service/models/enrollment.py
"""
Enrollment model.

One row per (lesson, tutee). Presence is written by the tutor's report and
the four rating columns by the tutee's review; all of them start out null.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..core.timezone_utils import utcnow
from ..database import Base
from .types import UTCDateTime

RATING_COLUMNS = ("clarity", "understanding", "focus", "helpful")


class Enrollment(Base):
    __tablename__ = "enrollments"

    lesson_id = Column(
        String(26), ForeignKey("lessons.id", ondelete="CASCADE"), primary_key=True
    )
    tutee_user_id = Column(String(64), primary_key=True, index=True)
    tutee_full_name = Column(String(255), nullable=False)
    tutee_email = Column(String(255), nullable=True)

    presence = Column(Boolean, nullable=True)
    clarity = Column(Integer, nullable=True)
    understanding = Column(Integer, nullable=True)
    focus = Column(Integer, nullable=True)
    helpful = Column(Integer, nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    lesson = relationship("Lesson", back_populates="enrollments")

    __table_args__ = tuple(
        CheckConstraint(
            f"{column} IS NULL OR ({column} >= 1 AND {column} <= 5)",
            name=f"ck_enrollments_{column}_range",
        )
        for column in RATING_COLUMNS
    )

    @property
    def has_review(self) -> bool:
        return all(getattr(self, column) is not None for column in RATING_COLUMNS)

    def __repr__(self) -> str:
        return f"<Enrollment lesson={self.lesson_id} tutee={self.tutee_user_id}>"
