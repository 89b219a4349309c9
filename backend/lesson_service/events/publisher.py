"""Event publisher - hands committed lesson events to the notification hook."""
from datetime import datetime
import logging
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    event_name: str

    def to_dict(self) -> Dict[str, Any]:
        ...


class EventHook(Protocol):
    """Callback supplied by the messaging collaborator."""

    def __call__(self, event_name: str, payload: Dict[str, Any]) -> None:
        ...


class EventPublisher:
    """
    Publishes domain events to the configured hook.

    Only call ``publish`` after the originating transaction has committed.
    A failing hook is logged and never changes the outcome of the operation.
    """

    def __init__(self, hook: Optional[EventHook] = None):
        self.hook = hook

    def publish(self, event: Event) -> bool:
        """Return True when the hook accepted the event."""
        if self.hook is None:
            logger.debug("No event hook configured, dropping %s", event.event_name)
            return False

        payload = event.to_dict()

        # Convert datetime objects to ISO strings for the wire
        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()

        try:
            self.hook(event.event_name, payload)
        except Exception as exc:
            logger.error(
                "Event hook failed for %s: %s",
                event.event_name,
                exc,
                exc_info=True,
                extra={"event_name": event.event_name, "lesson_id": payload.get("lesson_id")},
            )
            return False

        logger.info("Published %s for lesson %s", event.event_name, payload.get("lesson_id"))
        return True
