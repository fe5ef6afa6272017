"""
Tests for the usage event stores (in-memory and SQL).
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from tutor_backend.core.clock import FixedClock
from tutor_backend.core.database import build_engine, drop_all_tables
from tutor_backend.core.errors import StorageUnavailableError
from tutor_backend.features.quota.ledger import QuotaLedger
from tutor_backend.features.quota.store import SqlEventStore


START = datetime(2025, 3, 10, 0, 0, 0, tzinfo=timezone.utc)
END = datetime(2025, 3, 10, 23, 59, 59, 999999, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sql"])
def store(request):
    return request.getfixturevalue(f"{request.param}_store")


def test_append_returns_event(store):
    at = START + timedelta(hours=9)
    event = store.append("kid-1", "chat_request", at)
    assert event.user_id == "kid-1"
    assert event.action == "chat_request"
    assert event.occurred_at == at


def test_count_filters_by_key(store):
    at = START + timedelta(hours=1)
    store.append("kid-1", "chat_request", at)
    store.append("kid-1", "chat_request", at)
    store.append("kid-1", "tts", at)
    store.append("kid-2", "chat_request", at)

    assert store.count("kid-1", "chat_request", START, END) == 2
    assert store.count("kid-1", "tts", START, END) == 1
    assert store.count("kid-2", "chat_request", START, END) == 1
    assert store.count("kid-3", "chat_request", START, END) == 0


def test_count_bounds_are_inclusive(store):
    store.append("kid-1", "chat_request", START)
    store.append("kid-1", "chat_request", END)
    store.append("kid-1", "chat_request", START - timedelta(seconds=1))
    store.append("kid-1", "chat_request", END + timedelta(microseconds=1))

    assert store.count("kid-1", "chat_request", START, END) == 2


def test_events_are_returned_in_order(store):
    store.append("kid-1", "stt", START + timedelta(hours=3))
    store.append("kid-1", "stt", START + timedelta(hours=1))
    events = store.events("kid-1", "stt")
    assert [e.occurred_at for e in events] == [START + timedelta(hours=1), START + timedelta(hours=3)]
    assert all(e.occurred_at.tzinfo is not None for e in events)


def test_non_utc_timestamps_are_normalised(store):
    plus_two = timezone(timedelta(hours=2))
    event = store.append("kid-1", "chat_request", datetime(2025, 3, 10, 1, 0, tzinfo=plus_two))
    assert event.occurred_at == datetime(2025, 3, 9, 23, 0, tzinfo=timezone.utc)
    assert store.count("kid-1", "chat_request", START, END) == 0


def test_ledger_over_sql_store(sql_store):
    clock = FixedClock(START + timedelta(hours=12))
    ledger = QuotaLedger(sql_store, clock=clock)
    assert [ledger.check_and_consume("kid-1", "chat_request", 2).allowed for _ in range(3)] == [True, True, False]
    assert sql_store.total() == 2
    assert ledger.peek_status("kid-1", "chat_request", 2).used == 2


def test_concurrent_consumption_over_sql_store(sql_store):
    clock = FixedClock(START + timedelta(hours=12))
    ledger = QuotaLedger(sql_store, clock=clock)

    with ThreadPoolExecutor(max_workers=6) as pool:
        outcomes = list(pool.map(lambda _: ledger.check_and_consume("racer", "chat_request", 3).allowed, range(12)))

    assert outcomes.count(True) == 3
    assert sql_store.count("racer", "chat_request", START, END) == 3


def test_sql_failure_raises_storage_unavailable(sql_store, sql_engine):
    drop_all_tables(sql_engine)
    with pytest.raises(StorageUnavailableError):
        sql_store.count("kid-1", "chat_request", START, END)
    with pytest.raises(StorageUnavailableError):
        sql_store.append("kid-1", "chat_request", START)
    with pytest.raises(StorageUnavailableError):
        sql_store.append_if_below("kid-1", "chat_request", START, END, START, 5)


def test_sql_count_failure_leaves_store_unchanged(sql_store, monkeypatch):
    sql_store.append("kid-1", "chat_request", START + timedelta(hours=1))

    def broken_count_in(*args, **kwargs):
        raise OperationalError("SELECT count(*)", {}, Exception("disk I/O error"))

    monkeypatch.setattr(sql_store, "_count_in", broken_count_in)
    ledger = QuotaLedger(sql_store, clock=FixedClock(START + timedelta(hours=2)))
    with pytest.raises(StorageUnavailableError):
        ledger.check_and_consume("kid-1", "chat_request", 5)

    monkeypatch.undo()
    assert sql_store.total() == 1


def test_append_if_below_stops_at_limit(store):
    at = START + timedelta(hours=8)
    assert store.append_if_below("kid-1", "tts", START, END, at, 2) == (0, True)
    assert store.append_if_below("kid-1", "tts", START, END, at, 2) == (1, True)
    assert store.append_if_below("kid-1", "tts", START, END, at, 2) == (2, False)
    assert store.count("kid-1", "tts", START, END) == 2


def test_append_if_below_only_counts_inside_window(store):
    store.append("kid-1", "tts", START - timedelta(seconds=1))
    assert store.append_if_below("kid-1", "tts", START, END, START, 1) == (0, True)


def test_separate_engines_on_one_database_share_the_limit(sql_engine, monkeypatch):
    """Each ledger has its own engine, like a separate worker process."""
    original_count_in = SqlEventStore._count_in

    def slow_count_in(self, session, *args):
        used = original_count_in(self, session, *args)
        time.sleep(0.05)
        return used

    monkeypatch.setattr(SqlEventStore, "_count_in", slow_count_in)

    engines = [build_engine(str(sql_engine.url)) for _ in range(4)]
    ledgers = [
        QuotaLedger(SqlEventStore(sessionmaker(bind=engine)), clock=FixedClock(START + timedelta(hours=12)))
        for engine in engines
    ]
    barrier = threading.Barrier(len(ledgers))

    def attempt(ledger):
        barrier.wait()
        return ledger.check_and_consume("racer", "chat_request", 1).allowed

    try:
        with ThreadPoolExecutor(max_workers=len(ledgers)) as pool:
            outcomes = list(pool.map(attempt, ledgers))
    finally:
        for engine in engines:
            engine.dispose()

    assert outcomes.count(True) == 1
    assert SqlEventStore(sessionmaker(bind=sql_engine)).count("racer", "chat_request", START, END) == 1
