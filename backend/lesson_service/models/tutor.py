# backend/lesson_service/models/tutor.py
"""
Tutor model.

A tutor row is created lazily the first time a user creates a lesson and is
never deleted by the lesson service. Its row lock scopes the tutor's set of
open lessons.
"""

from sqlalchemy import Column, String

from ..core.timezone_utils import utcnow
from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime


class Tutor(Base):
    __tablename__ = "tutors"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Tutor {self.id} user={self.user_id}>"
