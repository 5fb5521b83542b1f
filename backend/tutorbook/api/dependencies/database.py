# backend/tutorbook/api/dependencies/database.py
"""
Request-scoped database session.

Routes depend on this function rather than on ``session_scope`` directly so
tests can override a single dependency.
"""

from typing import Generator

from sqlalchemy.orm import Session

from ...database import session_scope


def get_db() -> Generator[Session, None, None]:
    with session_scope() as db:
        yield db
