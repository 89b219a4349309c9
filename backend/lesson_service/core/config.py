# backend/lesson_service/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).resolve().parents[2] / ".env"  # backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


PRODUCTION_DATABASE_INDICATORS = ("prod", "production", "supabase.com", "render.com")


class Settings(BaseSettings):
    environment: str = Field(default="development", description="development | test | production")

    # Store
    database_url: str = Field(
        default="sqlite:///./lessons.db",
        description="SQLAlchemy URL of the scheduling store",
    )
    test_database_url: Optional[str] = Field(
        default=None,
        description="Optional PostgreSQL URL used by the integration suite instead of SQLite",
    )
    sql_echo: bool = False
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=10, ge=0)
    db_pool_timeout: int = Field(default=30, ge=1, description="Seconds to wait for a pooled connection")

    # Transaction deadlines (PostgreSQL SET LOCAL); 0 disables
    lock_timeout_ms: int = Field(default=5000, ge=0)
    statement_timeout_ms: int = Field(default=0, ge=0)
    sqlite_busy_timeout_s: float = Field(default=30.0, gt=0)

    # Logging
    log_level: str = "INFO"
    slow_operation_threshold_s: float = Field(
        default=1.0,
        gt=0,
        description="Operations slower than this are logged as warnings",
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("test_database_url")
    @classmethod
    def validate_test_database(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Ensure the test database is not a production database."""
        if not v:
            return None

        lowered = v.lower()
        for indicator in PRODUCTION_DATABASE_INDICATORS:
            if indicator in lowered:
                raise ValueError(
                    f"Test database URL contains production indicator '{indicator}'. "
                    f"Tests must not use production databases!"
                )

        if "test" not in lowered:
            logger.warning(
                "Test database URL doesn't contain 'test' in its name. "
                "Consider using a clearly named test database."
            )
        return v

    def get_database_url(self) -> str:
        """Get the appropriate database URL based on context."""
        if is_running_tests() and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
