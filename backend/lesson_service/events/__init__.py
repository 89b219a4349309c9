"""Lesson domain events and their publisher."""

from .lesson_events import LessonCanceledByTutor, TuteeWithdrew
from .publisher import Event, EventHook, EventPublisher

__all__ = ["Event", "EventHook", "EventPublisher", "LessonCanceledByTutor", "TuteeWithdrew"]
