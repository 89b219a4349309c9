"""Session factories for the scheduling store."""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker


def make_session_factory(engine: Engine) -> sessionmaker:
    """
    Return a session factory bound to ``engine``.

    ``expire_on_commit`` is off so lessons returned from a committed
    transaction stay readable by the caller.
    """
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


__all__ = ["make_session_factory"]
