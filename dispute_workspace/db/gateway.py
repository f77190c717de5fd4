"""
Persistence Gateway
===================

Thin, explicit transaction handle over a SQLAlchemy session.

Every repository call receives a `Transaction`; nothing looks up a "current"
session implicitly. Row locks are requested with `LockMode.FOR_UPDATE` and
are held until the enclosing transaction commits or rolls back.
"""

import enum
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generator, Iterable, List, Optional, TypeVar

from sqlalchemy.orm import Session, selectinload

from .session import new_session

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LockMode(str, enum.Enum):
    """Row lock requested by a read"""
    NONE = "none"
    FOR_UPDATE = "for_update"


class Transaction:
    """
    One unit of work against the database.

    `where` arguments are equality predicates ({column: value}); `exclude`
    arguments are inequality predicates. Writes flush immediately so that
    constraint violations surface inside the transaction that caused them.
    """

    def __init__(self, session: Session):
        self.session = session

    def _query(self, model, where: Dict[str, Any], exclude: Optional[Dict[str, Any]] = None):
        query = self.session.query(model).filter_by(**where)
        for column, value in (exclude or {}).items():
            query = query.filter(getattr(model, column) != value)
        return query

    def find(
        self,
        model,
        where: Dict[str, Any],
        exclude: Optional[Dict[str, Any]] = None,
        lock: LockMode = LockMode.NONE,
    ):
        """Return the first matching row or None."""
        query = self._query(model, where, exclude)
        if lock == LockMode.FOR_UPDATE:
            # Rendered as FOR UPDATE OF <table> on PostgreSQL, dropped on SQLite
            query = query.with_for_update(of=model)
        return query.first()

    def find_all(
        self,
        model,
        where: Dict[str, Any],
        order: Optional[Iterable[str]] = None,
        include: Optional[Iterable[str]] = None,
    ) -> List[Any]:
        """
        Return every matching row.

        order: column names, prefixed with "-" for descending
        include: relationship names to eager-load
        """
        query = self._query(model, where)
        for name in include or ():
            query = query.options(selectinload(getattr(model, name)))
        for name in order or ():
            if name.startswith("-"):
                query = query.order_by(getattr(model, name[1:]).desc())
            else:
                query = query.order_by(getattr(model, name).asc())
        return query.all()

    def create(self, model, fields: Dict[str, Any]):
        row = model(**fields)
        self.session.add(row)
        self.session.flush()
        return row

    def update(self, model, where: Dict[str, Any], fields: Dict[str, Any]):
        """Apply fields to the matching row; None when nothing matches."""
        row = self._query(model, where).first()
        if row is None:
            return None
        for name, value in fields.items():
            setattr(row, name, value)
        self.session.flush()
        return row

    def destroy(self, model, where: Dict[str, Any]) -> int:
        """Delete matching rows through the ORM so relationship cascades run."""
        rows = self._query(model, where).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)


class PersistenceGateway:
    """
    Opens transactions.

    Usage:
        gateway = PersistenceGateway()
        with gateway.transaction() as tx:
            tx.find(DisputeCase, {"id": case_id})
    """

    def __init__(self, session_factory: Callable[[], Session] = None):
        self._session_factory = session_factory or new_session

    @contextmanager
    def transaction(self) -> Generator[Transaction, None, None]:
        session = self._session_factory()
        try:
            yield Transaction(session)
            session.commit()
        except Exception as e:
            session.rollback()
            logger.debug(f"Transaction rolled back: {type(e).__name__}")
            raise
        finally:
            session.close()

    def with_transaction(self, fn: Callable[[Transaction], T]) -> T:
        with self.transaction() as tx:
            return fn(tx)
