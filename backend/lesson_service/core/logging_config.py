"""Process-wide logging configuration."""

import logging
from typing import Optional

from .config import Settings, settings as default_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: Optional[Settings] = None) -> None:
    """Configure root logging once; later calls only adjust the level."""
    cfg = config or default_settings

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=cfg.log_level, format=LOG_FORMAT)
    root.setLevel(cfg.log_level)

    # SQL statements are only logged when sql_echo is on
    if not cfg.sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
