# tutor_backend/conftest.py
import os
from datetime import datetime, timezone
from typing import List

import pytest
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("ENV", "test")
os.environ.setdefault("QUOTA_STORE", "memory")

from tutor_backend.core.clock import FixedClock
from tutor_backend.core.database import build_engine, create_all_tables
from tutor_backend.features.quota.ledger import QuotaLedger
from tutor_backend.features.quota.store import InMemoryEventStore, SqlEventStore


# Monday, mid-day UTC
NOON = datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


class StubChatProvider:
    """Records calls instead of reaching the upstream model."""

    def __init__(self, reply: str = "Great question! What do you think?"):
        self.reply = reply
        self.calls: List = []

    def complete(self, messages, options):
        self.calls.append((messages, options))
        return self.reply


@pytest.fixture
def clock():
    return FixedClock(NOON)


@pytest.fixture
def memory_store():
    return InMemoryEventStore()


@pytest.fixture
def ledger(memory_store, clock):
    return QuotaLedger(memory_store, clock=clock)


@pytest.fixture
def sql_engine(tmp_path):
    """File-backed SQLite so each thread gets its own connection."""
    engine = build_engine(f"sqlite:///{tmp_path / 'usage.db'}")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(sql_engine):
    return SqlEventStore(sessionmaker(bind=sql_engine))


@pytest.fixture
def chat_provider():
    return StubChatProvider()


@pytest.fixture
def client(ledger, chat_provider):
    """TestClient with the ledger and chat provider overridden."""
    from fastapi.testclient import TestClient

    from tutor_backend.features.chat.provider import get_chat_provider
    from tutor_backend.features.quota.service import get_ledger
    from tutor_backend.main import app

    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_chat_provider] = lambda: chat_provider
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
