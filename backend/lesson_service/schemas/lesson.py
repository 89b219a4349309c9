# backend/lesson_service/schemas/lesson.py
"""
Lesson schemas for the lesson service.

Request models carry what the transport edge has already validated; the
engine trusts their shapes and only enforces the rules that need the store.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from ..core.enums import LessonFormat, RoleName
from ..core.timezone_utils import ensure_utc
from .base import StandardizedModel, StrictRequestModel


class CallerIdentity(StrictRequestModel):
    """Identity handed over by the authentication collaborator."""

    user_id: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    role: RoleName


class LessonCreate(StrictRequestModel):
    subject_name: str = Field(..., min_length=1, max_length=20)
    grade: str = Field(..., min_length=1, max_length=10)
    level: str = Field(..., min_length=1, max_length=10)
    description: str = Field(..., min_length=1, max_length=100)
    appointed_date_time: datetime = Field(..., description="Lesson start; naive values are UTC")
    format: LessonFormat
    location_or_link: Optional[str] = Field(None, max_length=140)

    @field_validator("appointed_date_time")
    @classmethod
    def normalize_to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class LessonUpdate(StrictRequestModel):
    """Partial edit; ``None`` leaves a field unchanged."""

    description: Optional[str] = Field(None, max_length=100)
    format: Optional[LessonFormat] = None
    location_or_link: Optional[str] = Field(None, max_length=140)


class PresenceEntry(StrictRequestModel):
    tutee_user_id: str = Field(..., min_length=1)
    presence: bool


class LessonReport(StrictRequestModel):
    summary: str = Field(..., min_length=1, max_length=1000)
    tutees_presence: List[PresenceEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def no_duplicate_tutees(self) -> "LessonReport":
        ids = [entry.tutee_user_id for entry in self.tutees_presence]
        if len(ids) != len(set(ids)):
            raise ValueError("Each tutee may appear only once in tutees_presence")
        return self

    def presence_by_tutee(self) -> Dict[str, bool]:
        return {entry.tutee_user_id: entry.presence for entry in self.tutees_presence}


class ReviewCreate(StrictRequestModel):
    clarity: int = Field(..., ge=1, le=5)
    understanding: int = Field(..., ge=1, le=5)
    focus: int = Field(..., ge=1, le=5)
    helpful: int = Field(..., ge=1, le=5)


class LessonVerdict(StrictRequestModel):
    lesson_id: str = Field(..., min_length=1)
    is_approved: bool


class EnrollmentResponse(StandardizedModel):
    lesson_id: str
    tutee_user_id: str
    tutee_full_name: str
    tutee_email: Optional[str] = None
    presence: Optional[bool] = None
    clarity: Optional[int] = None
    understanding: Optional[int] = None
    focus: Optional[int] = None
    helpful: Optional[int] = None


class LessonResponse(StandardizedModel):
    id: str
    tutor_id: str
    subject_name: str
    grade: str
    level: str
    description: str
    appointed_date_time: datetime
    format: LessonFormat
    location_or_link: Optional[str] = None
    status: str
    summary: Optional[str] = None
    enrollments: List[EnrollmentResponse] = Field(default_factory=list)
