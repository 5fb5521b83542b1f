# backend/tutorbook/repositories/base_repository.py
"""
Shared data access for the scheduling repositories.

Repositories never commit. ``create`` flushes so generated ids and unique
constraint violations surface inside the caller's transaction. Driver
failures are split in two:

- OperationalError (lost connection, lock timeout) propagates untouched so
  the service layer can map it to ServiceUnavailableException.
- Anything else from SQLAlchemy is wrapped in RepositoryException with the
  original error chained as ``__cause__``.
"""

from contextlib import contextmanager
import logging
from typing import Any, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..database.session_utils import supports_row_locks

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Generic repository bound to one mapped model.

    Attributes:
        db: Session owned by the calling service
        model: Mapped class this repository reads and writes
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def _wrapped(self, action: str) -> Iterator[None]:
        try:
            yield
        except OperationalError:
            raise
        except SQLAlchemyError as exc:
            self.logger.error("%s %s failed: %s", action, self.model.__name__, exc)
            raise RepositoryException(f"Failed to {action} {self.model.__name__}: {exc}") from exc

    def get_by_id(self, id: str, *, for_update: bool = False) -> Optional[T]:
        """
        Load one row by primary key.

        Args:
            id: Primary key (ULID string)
            for_update: Hold a row lock until the surrounding transaction ends
        """
        with self._wrapped("load"):
            query = self.db.query(self.model).filter(self.model.id == id)
            if for_update:
                query = self._lock(query)
            return query.first()

    def create(self, **kwargs: Any) -> T:
        """Add a row and flush it; the caller commits."""
        with self._wrapped("create"):
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity

    def _lock(self, query: Query) -> Query:
        """SELECT ... FOR UPDATE where the dialect honours it; SQLite serializes writers itself."""
        if supports_row_locks(self.db):
            # A row read before the lock was granted may be stale in the identity map
            return query.with_for_update().populate_existing()
        return query

    def _execute_query(self, query: Query) -> List[T]:
        with self._wrapped("query"):
            return query.all()
