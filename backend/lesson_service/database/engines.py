"""Engine factory for the scheduling store."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url

from ..core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def _add_sqlite_events(engine: Engine) -> None:
    """
    Make every SQLite transaction take the database write lock up front.

    pysqlite defers BEGIN until the first DML statement, which lets two
    transactions read the same counts before either writes. Issuing
    ``BEGIN IMMEDIATE`` ourselves gives SQLite the same serialisation the
    row locks give PostgreSQL.
    """

    @event.listens_for(engine, "connect")  # type: ignore[untyped-decorator]
    def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")  # type: ignore[untyped-decorator]
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _add_pool_events(engine: Engine, pool_name: str) -> None:
    @event.listens_for(engine, "connect")  # type: ignore[untyped-decorator]
    def _on_connect(_dbapi_connection: Any, _connection_record: Any) -> None:
        logger.debug("[%s] Database connection established", pool_name)

    @event.listens_for(engine, "invalidate")  # type: ignore[untyped-decorator]
    def _on_invalidate(_dbapi_connection: Any, _connection_record: Any, exception: Any) -> None:
        logger.warning(
            "[%s] Connection invalidated",
            pool_name,
            extra={
                "event": "db_connection_invalidated",
                "exception": str(exception) if exception else "unknown",
            },
        )


def create_store_engine(
    url: Optional[str] = None,
    *,
    config: Optional[Settings] = None,
    pool_name: str = "STORE",
) -> Engine:
    """
    Build the engine for the scheduling store.

    ``url`` overrides ``config.get_database_url()``. SQLite engines get a busy
    timeout and ``BEGIN IMMEDIATE`` transactions; server databases get a
    pre-pinged connection pool sized from settings.
    """
    cfg = config or default_settings
    db_url = url or cfg.get_database_url()

    if _is_sqlite(db_url):
        engine = create_engine(
            db_url,
            echo=cfg.sql_echo,
            future=True,
            connect_args={
                "check_same_thread": False,
                "timeout": cfg.sqlite_busy_timeout_s,
            },
        )
        _add_sqlite_events(engine)
    else:
        engine = create_engine(
            db_url,
            echo=cfg.sql_echo,
            pool_size=cfg.db_pool_size,
            max_overflow=cfg.db_max_overflow,
            pool_timeout=cfg.db_pool_timeout,
            pool_pre_ping=True,
            pool_use_lifo=True,
            future=True,
        )

    _add_pool_events(engine, pool_name)
    logger.info("[%s] Engine created for %s", pool_name, engine.url.render_as_string(hide_password=True))
    return engine


def init_db(engine: Engine) -> None:
    """Create all lesson service tables (idempotent)."""
    from .. import models  # noqa: F401  registers mappers on Base.metadata
    from . import Base

    Base.metadata.create_all(bind=engine)
