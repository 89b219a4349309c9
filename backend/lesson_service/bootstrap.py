# backend/lesson_service/bootstrap.py
"""Process start-up: logging, store and service wiring."""

import logging
from typing import Optional

from .core.config import Settings, settings as default_settings
from .core.logging_config import setup_logging
from .core.timezone_utils import Clock
from .database.engines import create_store_engine, init_db
from .events.publisher import EventHook
from .repositories.scheduling_store import SchedulingStore
from .services.lesson_service import LessonService

logger = logging.getLogger(__name__)


def build_lesson_service(
    *,
    config: Optional[Settings] = None,
    url: Optional[str] = None,
    hook: Optional[EventHook] = None,
    clock: Optional[Clock] = None,
    create_tables: bool = True,
) -> LessonService:
    """
    Configure logging, build the store from settings and return the service.

    ``url`` overrides the configured database URL.
    """
    cfg = config or default_settings
    setup_logging(cfg)

    engine = create_store_engine(url, config=cfg)
    if create_tables:
        init_db(engine)

    store = SchedulingStore.from_engine(engine, config=cfg)
    logger.info("Lesson service ready (environment=%s)", cfg.environment)
    return LessonService(store, hook=hook, clock=clock)
