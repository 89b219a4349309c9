"""
Declarative base and store wiring shared across the lesson service.

Engines are never created on import: callers build one from settings with
``create_store_engine`` and hand it to ``make_session_factory``.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeMeta, declarative_base

Base: DeclarativeMeta = declarative_base()

from .engines import create_store_engine, init_db  # noqa: E402
from .session_utils import get_dialect_name  # noqa: E402
from .sessions import make_session_factory  # noqa: E402

__all__ = [
    "Base",
    "create_store_engine",
    "get_dialect_name",
    "init_db",
    "make_session_factory",
]
