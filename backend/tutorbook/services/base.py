# backend/tutorbook/services/base.py
"""
Base class for the scheduling services.

Every service owns one Session and one Clock. Writes go through
``transaction()``, which decides how a database failure is reported:

- IntegrityError and StaleDataError are re-raised untouched; the reschedule
  flow turns them into SlotUnavailable and ConcurrentModification.
- An unreachable datastore becomes ServiceUnavailableException (503).
- Any other SQLAlchemy failure becomes ServiceException (500).
- Domain exceptions pass through after the rollback.
"""

from contextlib import contextmanager
from datetime import datetime
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.exceptions import RepositoryException, ServiceException, ServiceUnavailableException
from ..core.timezone_utils import Clock, utc_now
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Operations slower than this are logged at WARNING
SLOW_OPERATION_SECONDS = 1.0


def is_store_unavailable(exc: BaseException) -> bool:
    """Whether ``exc`` (or anything in its cause chain) means the database is unreachable."""
    current: Optional[BaseException] = exc
    while current is not None:
        if isinstance(current, OperationalError):
            return True
        if isinstance(current, DBAPIError) and current.connection_invalidated:
            return True
        current = current.__cause__
    return False


class BaseService:
    """Session, clock and transaction handling shared by all services."""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        """
        Args:
            db: Session used for every read and write of this service
            clock: Returns the current UTC-aware instant; tests pass a frozen one
        """
        self.db = db
        self.clock: Clock = clock or utc_now
        self.logger = logging.getLogger(self.__class__.__name__)

    def now(self) -> datetime:
        return self.clock()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Run the block as one transaction and commit it.

        Usage:
            with self.transaction():
                self.booking_repository.create(...)
        """
        try:
            yield self.db
            self.db.commit()
        except (IntegrityError, StaleDataError):
            self.db.rollback()
            raise
        except (SQLAlchemyError, RepositoryException) as e:
            self.db.rollback()
            if is_store_unavailable(e):
                self.logger.error("Datastore unavailable: %s", e)
                raise ServiceUnavailableException(details={"error": type(e).__name__}) from e
            if isinstance(e, RepositoryException):
                raise
            self.logger.error("Transaction failed: %s", e)
            raise ServiceException(f"Database operation failed: {e}") from e
        except BaseException:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method and report it to Prometheus.

        Usage:
            @BaseService.measure_operation("reschedule")
            def reschedule(self, ...):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                start_time = time.perf_counter()
                error_type = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - start_time
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            "Slow operation detected: %s took %.2fs", operation_name, elapsed
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="error" if error_type else "success",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """Structured INFO line for a state-changing operation."""
        self.logger.info(operation, extra={"event": operation, **context})
