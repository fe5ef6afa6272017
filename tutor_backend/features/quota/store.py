"""
tutor_backend/features/quota/store.py

Append-only usage event stores backing the quota ledger.

Both implementations expose the same interface:
- count(user_id, action, start, end): events for one key in [start, end]
- append(user_id, action, occurred_at): record one consumed unit
- append_if_below(user_id, action, start, end, occurred_at, limit): count and
  append as one atomic step for the key; returns (used, appended)

Stores never update or delete events.
"""

import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Tuple

from sqlalchemy import select, insert, func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from tutor_backend.core.clock import to_utc
from tutor_backend.core.database import get_db_session, get_session_factory, usage_events
from tutor_backend.core.errors import StorageUnavailableError
from tutor_backend.models.usage_event import UsageEvent


class EventStore(Protocol):
    def count(self, user_id: str, action: str, start: datetime, end: datetime) -> int:
        ...

    def append(self, user_id: str, action: str, occurred_at: datetime) -> UsageEvent:
        ...

    def append_if_below(
        self,
        user_id: str,
        action: str,
        start: datetime,
        end: datetime,
        occurred_at: datetime,
        limit: int,
    ) -> Tuple[int, bool]:
        ...


class KeyedLocks:
    """Reference-counted lock per key; idle entries are dropped."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, str], List] = {}

    @contextmanager
    def hold(self, key: Tuple[str, str]):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class InMemoryEventStore:
    """
    Process-local event store.

    Used in development and tests; the SQL store is the durable option.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._key_locks = KeyedLocks()
        self._events: Dict[Tuple[str, str], List[datetime]] = defaultdict(list)

    def count(self, user_id: str, action: str, start: datetime, end: datetime) -> int:
        start, end = to_utc(start), to_utc(end)
        with self._lock:
            return sum(1 for ts in self._events.get((user_id, action), ()) if start <= ts <= end)

    def append(self, user_id: str, action: str, occurred_at: datetime) -> UsageEvent:
        occurred_at = to_utc(occurred_at)
        with self._lock:
            self._events[(user_id, action)].append(occurred_at)
        return UsageEvent(user_id=user_id, action=action, occurred_at=occurred_at)

    def append_if_below(self, user_id, action, start, end, occurred_at, limit):
        with self._key_locks.hold((user_id, action)):
            used = self.count(user_id, action, start, end)
            if used >= limit:
                return used, False
            self.append(user_id, action, occurred_at)
            return used, True

    def events(self, user_id: Optional[str] = None, action: Optional[str] = None) -> List[UsageEvent]:
        """Snapshot of stored events, oldest first (copies, not references)."""
        with self._lock:
            items = [(key, list(stamps)) for key, stamps in self._events.items()]
        result = [
            UsageEvent(user_id=uid, action=act, occurred_at=ts)
            for (uid, act), stamps in items
            if (user_id is None or uid == user_id) and (action is None or act == action)
            for ts in stamps
        ]
        return sorted(result, key=lambda e: e.occurred_at)

    def total(self) -> int:
        with self._lock:
            return sum(len(stamps) for stamps in self._events.values())


class SqlEventStore:
    """
    SQLAlchemy-backed event store over the usage_events table.

    Each call runs in its own session; database errors surface as
    StorageUnavailableError and are never retried here.

    append_if_below serialises a key across every process sharing the
    database: Postgres takes a transaction-scoped advisory lock on the key,
    SQLite engines from build_engine start each transaction with
    BEGIN IMMEDIATE.
    """

    LOCKING_DIALECTS = ("postgresql", "sqlite")

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def _factory(self):
        return self._session_factory or get_session_factory()

    def _count_in(self, session: Session, user_id: str, action: str, start: datetime, end: datetime) -> int:
        query = (
            select(func.count())
            .select_from(usage_events)
            .where(usage_events.c.user_id == user_id)
            .where(usage_events.c.action == action)
            .where(usage_events.c.occurred_at >= to_utc(start))
            .where(usage_events.c.occurred_at <= to_utc(end))
        )
        return int(session.execute(query).scalar() or 0)

    def _insert_in(self, session: Session, user_id: str, action: str, occurred_at: datetime) -> None:
        session.execute(
            insert(usage_events).values(
                user_id=user_id,
                action=action,
                occurred_at=occurred_at,
            )
        )

    def _lock_key(self, session: Session, user_id: str, action: str) -> None:
        if session.get_bind().dialect.name == "postgresql":
            session.execute(select(func.pg_advisory_xact_lock(func.hashtext(f"{user_id}\x1f{action}"))))

    def count(self, user_id: str, action: str, start: datetime, end: datetime) -> int:
        try:
            with get_db_session(self._factory()) as session:
                return self._count_in(session, user_id, action, start, end)
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"usage count failed: {e.__class__.__name__}") from e

    def append(self, user_id: str, action: str, occurred_at: datetime) -> UsageEvent:
        occurred_at = to_utc(occurred_at)
        try:
            with get_db_session(self._factory()) as session:
                self._insert_in(session, user_id, action, occurred_at)
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"usage append failed: {e.__class__.__name__}") from e
        return UsageEvent(user_id=user_id, action=action, occurred_at=occurred_at)

    def append_if_below(self, user_id, action, start, end, occurred_at, limit):
        occurred_at = to_utc(occurred_at)
        try:
            with get_db_session(self._factory()) as session:
                self._lock_key(session, user_id, action)
                used = self._count_in(session, user_id, action, start, end)
                if used >= limit:
                    return used, False
                self._insert_in(session, user_id, action, occurred_at)
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"usage consume failed: {e.__class__.__name__}") from e
        return used, True

    def events(self, user_id: Optional[str] = None, action: Optional[str] = None) -> List[UsageEvent]:
        """Stored events, ordered by occurred_at then id."""
        query = select(usage_events)
        if user_id is not None:
            query = query.where(usage_events.c.user_id == user_id)
        if action is not None:
            query = query.where(usage_events.c.action == action)
        query = query.order_by(usage_events.c.occurred_at, usage_events.c.id)
        try:
            with get_db_session(self._factory()) as session:
                rows = session.execute(query).all()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"usage query failed: {e.__class__.__name__}") from e
        return [
            UsageEvent(user_id=row.user_id, action=row.action, occurred_at=to_utc(row.occurred_at))
            for row in rows
        ]

    def total(self) -> int:
        try:
            with get_db_session(self._factory()) as session:
                return int(session.execute(select(func.count()).select_from(usage_events)).scalar() or 0)
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"usage query failed: {e.__class__.__name__}") from e
