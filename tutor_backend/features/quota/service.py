"""
tutor_backend/features/quota/service.py

Process-wide quota ledger wiring.

The configured store (QUOTA_STORE=memory|sql) is built once; request
handlers receive the ledger through the get_ledger dependency.
"""

import logging
import threading
from typing import Optional

from tutor_backend.core.config import Settings, settings
from tutor_backend.core.database import create_all_tables, get_engine
from tutor_backend.features.quota.ledger import QuotaLedger
from tutor_backend.features.quota.store import EventStore, InMemoryEventStore, SqlEventStore

logger = logging.getLogger("tutor")

_ledger: Optional[QuotaLedger] = None
_ledger_lock = threading.Lock()


def build_store(settings_obj: Optional[Settings] = None) -> EventStore:
    cfg = settings_obj or settings
    kind = (cfg.QUOTA_STORE or "memory").lower()
    if kind == "sql":
        engine = get_engine()
        if engine.dialect.name not in SqlEventStore.LOCKING_DIALECTS:
            raise ValueError(
                f"QUOTA_STORE=sql needs one of {SqlEventStore.LOCKING_DIALECTS}, got {engine.dialect.name}"
            )
        create_all_tables(engine)
        return SqlEventStore()
    if kind != "memory":
        raise ValueError(f"Unsupported QUOTA_STORE: {cfg.QUOTA_STORE}")
    logger.warning("Using in-memory quota store; usage is lost on restart")
    return InMemoryEventStore()


def get_ledger() -> QuotaLedger:
    """FastAPI dependency returning the shared ledger."""
    global _ledger
    if _ledger is None:
        with _ledger_lock:
            if _ledger is None:
                _ledger = QuotaLedger(build_store())
    return _ledger


def set_ledger(ledger: Optional[QuotaLedger]) -> None:
    """Replace (or clear) the shared ledger. Tests and app startup use this."""
    global _ledger
    with _ledger_lock:
        _ledger = ledger
