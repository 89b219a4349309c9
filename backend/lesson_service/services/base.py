# backend/lesson_service/services/base.py
"""
Base Service Pattern for the lesson service.

Provides common functionality for all service classes including:
- Transaction management over the SchedulingStore
- Logging
- Error translation
- Performance monitoring
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError

from ..core.config import settings
from ..core.exceptions import (
    DomainException,
    ErrorCode,
    NotFoundException,
    RepositoryException,
    StorageException,
)
from ..core.timezone_utils import Clock, utcnow
from ..models.lesson import Lesson
from ..repositories.scheduling_store import SchedulingStore, UnitOfWork

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
R = TypeVar("R")


class BaseService:
    """
    Base class for all service layer components.

    Services hold no per-request state: every operation opens its own store
    transaction, so one instance can be shared across threads.
    """

    def __init__(self, store: SchedulingStore, clock: Optional[Clock] = None):
        """
        Initialize base service.

        Args:
            store: Unit-of-work factory for the scheduling store
            clock: Returns the current aware UTC time; injectable for tests
        """
        self.store = store
        self.clock: Clock = clock or utcnow
        self.logger = logging.getLogger(self.__class__.__name__)

    def now(self):
        return self.clock()

    def origin(self, operation: str) -> str:
        return f"{self.__class__.__name__}:{operation}"

    @contextmanager
    def transaction(
        self,
        operation: str,
        *,
        error_code: ErrorCode = ErrorCode.STORAGE_ERROR,
        lock_timeout_ms: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
    ) -> Iterator[UnitOfWork]:
        """
        Context manager for store transactions.

        Domain errors raised in the block propagate unchanged once the
        transaction has been rolled back. Storage failures are re-raised as
        ``StorageException`` carrying ``error_code`` with the cause chained.

        Usage:
            with self.transaction("enroll") as uow:
                lesson = uow.lessons.lock_and_load(lesson_id)
        """
        try:
            with self.store.transaction(
                lock_timeout_ms=lock_timeout_ms, statement_timeout_ms=statement_timeout_ms
            ) as uow:
                yield uow
            self.logger.debug("Transaction committed successfully: %s", operation)
        except DomainException:
            raise
        except (RepositoryException, SQLAlchemyError) as e:
            self.logger.error("Transaction failed in %s: %s", operation, e)
            raise StorageException(
                f"Database operation failed: {e}",
                code=error_code,
                origin=self.origin(operation),
            ) from e

    @contextmanager
    def read(self, operation: str) -> Iterator[UnitOfWork]:
        """Unlocked reads; storage failures surface as STORAGE_ERROR."""
        try:
            with self.store.read() as uow:
                yield uow
        except DomainException:
            raise
        except (RepositoryException, SQLAlchemyError) as e:
            self.logger.error("Read failed in %s: %s", operation, e)
            raise StorageException(
                f"Database operation failed: {e}", origin=self.origin(operation)
            ) from e

    def with_locked_lesson(
        self,
        operation: str,
        lesson_id: str,
        fn: Callable[[UnitOfWork, Lesson], R],
        *,
        error_code: ErrorCode = ErrorCode.STORAGE_ERROR,
        timeout_ms: Optional[int] = None,
    ) -> R:
        """
        Open a transaction, load the lesson under write lock and run ``fn``.

        Commits when ``fn`` returns, rolls back when it raises. ``timeout_ms``
        bounds both lock waits and statements; None keeps the store defaults.
        """
        with self.transaction(
            operation,
            error_code=error_code,
            lock_timeout_ms=timeout_ms,
            statement_timeout_ms=timeout_ms,
        ) as uow:
            lesson = uow.lessons.lock_and_load(lesson_id)
            if lesson is None:
                raise NotFoundException("Lesson not found", origin=self.origin(operation))
            return fn(uow, lesson)

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("create_lesson")
            def create_lesson(self, data):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                start_time = time.perf_counter()
                success = False
                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                finally:
                    elapsed = time.perf_counter() - start_time
                    self._record_metric(operation_name, elapsed, success)
                    if elapsed > settings.slow_operation_threshold_s:
                        self.logger.warning(
                            "Slow operation detected: %s took %.2fs", operation_name, elapsed
                        )

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log an operation with context.

        Args:
            operation: Operation name
            **context: Additional context to log
        """
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def _record_metric(self, operation: str, elapsed: float, success: bool) -> None:
        metrics: Dict[str, Dict[str, Any]] = self.__dict__.setdefault("_metrics", {})
        data = metrics.setdefault(
            operation,
            {"count": 0, "success_count": 0, "failure_count": 0, "total_time": 0.0, "max_time": 0.0},
        )
        data["count"] += 1
        data["total_time"] += elapsed
        data["max_time"] = max(data["max_time"], elapsed)
        data["success_count" if success else "failure_count"] += 1

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get performance metrics for this service instance.

        Returns:
            Dictionary with metrics for each measured operation
        """
        result = {}
        for operation, data in self.__dict__.get("_metrics", {}).items():
            count = data["count"]
            result[operation] = {
                **data,
                "avg_time": data["total_time"] / count if count else 0.0,
                "success_rate": data["success_count"] / count if count else 0.0,
            }
        return result
