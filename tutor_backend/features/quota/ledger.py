"""
tutor_backend/features/quota/ledger.py

Per-user daily quota ledger.

Handles:
- check_and_consume: count today's events for (user, action) and append one
  if the user is under the limit
- peek_status: the same count without writing

The count-then-append sequence is one store call (append_if_below), which the
store makes atomic for its key: the SQL store counts and inserts inside one
database-locked transaction, so separate worker processes sharing a database
can never both take the last unit. Inside a process the ledger also holds a
per-key lock so threads queue here instead of on the database. Different keys
never contend.
"""

from datetime import datetime
from typing import Optional

from tutor_backend.core.clock import Clock, SystemClock, to_utc
from tutor_backend.core.errors import InvalidArgumentError, StorageUnavailableError
from tutor_backend.core.logging import log_event
from tutor_backend.features.quota.store import EventStore, KeyedLocks
from tutor_backend.features.quota.window import window_for
from tutor_backend.models.quota import QuotaCheckResult, QuotaStatus, QuotaWindow


def _validate(user_id: str, action: str, limit: int) -> None:
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidArgumentError("user_id is required")
    if not isinstance(action, str) or not action.strip():
        raise InvalidArgumentError("action is required")
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidArgumentError("limit must be an integer")
    if limit < 0:
        raise InvalidArgumentError("limit must not be negative")


class QuotaLedger:
    """
    Enforces and reports the daily cap for (user_id, action) keys.

    The event store is the only source of truth; nothing is cached between
    calls.
    """

    def __init__(self, store: EventStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or SystemClock()
        self._locks = KeyedLocks()

    def _now(self, now: Optional[datetime]) -> datetime:
        return to_utc(now) if now is not None else self.clock.now()

    def _count(self, user_id: str, action: str, window: QuotaWindow) -> int:
        try:
            return self.store.count(user_id, action, window.start, window.count_until)
        except StorageUnavailableError:
            raise
        except Exception as e:
            raise StorageUnavailableError(f"usage count failed: {e}") from e

    def _consume(self, user_id: str, action: str, window: QuotaWindow, now: datetime, limit: int):
        try:
            return self.store.append_if_below(user_id, action, window.start, window.count_until, now, limit)
        except StorageUnavailableError:
            raise
        except Exception as e:
            raise StorageUnavailableError(f"usage consume failed: {e}") from e

    def check_store(self) -> None:
        """Run one count against the store; raises StorageUnavailableError on any failure."""
        self._count("__readyz__", "__readyz__", window_for(self.clock.now()))

    def check_and_consume(
        self,
        user_id: str,
        action: str,
        limit: int,
        now: Optional[datetime] = None,
    ) -> QuotaCheckResult:
        """
        Consume one unit of `action` for `user_id` if today's count is below `limit`.

        Returns allowed=False (no write) when the limit is reached. Raises
        InvalidArgumentError for bad input and StorageUnavailableError when
        the store fails; a failed append is never reported as allowed.
        """
        _validate(user_id, action, limit)
        now = self._now(now)
        window = window_for(now)

        if limit == 0:
            log_event("info", "quota.denied", user_id=user_id, action=action, extra={"used": 0, "limit": 0})
            return QuotaCheckResult(allowed=False, remaining=0, limit=limit, reset_at=window.end)

        try:
            with self._locks.hold((user_id, action)):
                used, allowed = self._consume(user_id, action, window, now, limit)
        except StorageUnavailableError as e:
            log_event(
                "error",
                "quota.storage_unavailable",
                user_id=user_id,
                action=action,
                error_code=e.code,
                extra={"error_message": e.message},
            )
            raise

        if not allowed:
            log_event("info", "quota.denied", user_id=user_id, action=action, extra={"used": used, "limit": limit})
            return QuotaCheckResult(allowed=False, remaining=0, limit=limit, reset_at=window.end)

        log_event("info", "quota.consumed", user_id=user_id, action=action, extra={"used": used + 1, "limit": limit})
        return QuotaCheckResult(
            allowed=True,
            remaining=limit - used - 1,
            limit=limit,
            reset_at=window.end,
        )

    def peek_status(
        self,
        user_id: str,
        action: str,
        limit: int,
        now: Optional[datetime] = None,
    ) -> QuotaStatus:
        """Report today's usage for a key without consuming anything."""
        _validate(user_id, action, limit)
        window = window_for(self._now(now))
        try:
            used = self._count(user_id, action, window)
        except StorageUnavailableError as e:
            log_event("error", "quota.storage_unavailable", user_id=user_id, action=action, error_code=e.code)
            raise
        return QuotaStatus(
            allowed=used < limit,
            remaining=max(0, limit - used),
            limit=limit,
            used=used,
            reset_at=window.end,
        )
