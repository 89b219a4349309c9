"""Dialect lookup for code that must behave differently on PostgreSQL and SQLite."""

from __future__ import annotations

from sqlalchemy.orm import Session


def get_dialect_name(session: Session) -> str:
    """Name of the dialect the session is bound to (``sqlite``, ``postgresql``)."""
    return session.get_bind().dialect.name
