"""
Engine, session scope and declarative base for tutorbook.

API requests, the Celery sweep and the launchers all open sessions through
``session_scope``; it commits on success and rolls back on any exception.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import logging
import random
import time
from typing import Any, Callable, Iterator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from ..core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def build_engine(db_url: str) -> Engine:
    """Create the engine for ``db_url``; pool tuning applies to server databases only."""
    if _is_sqlite(db_url):
        sqlite_engine = create_engine(
            db_url, connect_args={"check_same_thread": False, "timeout": 15}, future=True
        )

        @event.listens_for(sqlite_engine, "connect")
        def _sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
            # The sweep and API writes share one file in development
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=15000")
            cursor.close()

        return sqlite_engine

    return create_engine(
        db_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
        future=True,
        connect_args={"connect_timeout": 5, "application_name": "tutorbook"},
    )


engine: Engine = build_engine(settings.get_database_url())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


@contextmanager
def session_scope(factory: Callable[[], Session] = SessionLocal) -> Iterator[Session]:
    """One unit of work: commit on success, roll back on error, always close."""
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# Workers and scripts
get_db_session = session_scope


def init_schema(bind: Engine | None = None) -> None:
    """Create every tutorbook table that does not exist yet."""
    from .. import models  # noqa: F401  (register mappers)

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Schema ready", extra={"event": "schema_init"})


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff for read queries that may hit a dropped connection or a busy SQLite file."""

    max_attempts: int = 3
    base_delay: float = 0.1
    jitter: float = 0.05
    retryable: tuple[str, ...] = (
        "server closed the connection",
        "ssl connection has been closed unexpectedly",
        "database is locked",
    )

    def should_retry(self, exc: OperationalError, attempt: int) -> bool:
        if attempt >= self.max_attempts:
            return False
        message = str(exc).lower()
        return any(snippet in message for snippet in self.retryable)

    def delay(self, attempt: int) -> float:
        return self.base_delay * (2 ** (attempt - 1)) + random.uniform(0, self.jitter * attempt)


DEFAULT_RETRY_POLICY = RetryPolicy()


def with_db_retry(
    op_name: str, func: Callable[[], T], *, policy: RetryPolicy = DEFAULT_RETRY_POLICY
) -> T:
    """Run ``func``, retrying transient OperationalErrors according to ``policy``."""
    attempt = 1
    while True:
        try:
            return func()
        except OperationalError as exc:
            if not policy.should_retry(exc, attempt):
                raise
            delay = policy.delay(attempt)
            logger.warning(
                "Transient DB failure during %s, retrying in %.2fs",
                op_name,
                delay,
                extra={"event": "db_retry", "op": op_name, "attempt": attempt},
            )
            time.sleep(delay)
            attempt += 1


__all__ = [
    "Base",
    "DEFAULT_RETRY_POLICY",
    "RetryPolicy",
    "SessionLocal",
    "build_engine",
    "engine",
    "get_db_session",
    "init_schema",
    "session_scope",
    "with_db_retry",
]
