"""
Dialect-aware helpers for sessions.

Row locks and statement timeouts exist on PostgreSQL only; on SQLite the
helpers degrade to no-ops so the same service code runs in tests.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Name of the dialect the session is bound to, or ``default`` when unbound."""
    bind = session.get_bind()
    if bind is None:
        return default
    return bind.dialect.name or default


def supports_row_locks(session: Session) -> bool:
    """True when ``SELECT ... FOR UPDATE`` takes a real lock."""
    return get_dialect_name(session) == "postgresql"


def set_local_statement_timeout(session: Session, timeout_ms: int) -> bool:
    """
    Bound every statement of the current transaction to ``timeout_ms``.

    Returns False without touching the session on dialects lacking SET LOCAL.
    """
    if not supports_row_locks(session):
        return False
    session.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
    logger.debug("Applied local statement timeout", extra={"timeout_ms": timeout_ms})
    return True
