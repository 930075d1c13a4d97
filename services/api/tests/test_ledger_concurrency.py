from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path

import pytest
from services.api.app.services.ledger_base import LedgerStore, NewEvent
from services.api.app.services.ledger_engine import LedgerEngine
from services.api.app.services.ledger_memory import InMemoryLedgerStore
from services.api.app.services.ledger_sql import SqlLedgerStore
from services.api.app.services.product_locks import ProductLocks
from services.api.app.services.replay import verify_trace
from services.api.app.services.users import register_user


@pytest.fixture(params=["memory", "sql"])
def store(request: pytest.FixtureRequest, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> LedgerStore:
    if request.param == "memory":
        return InMemoryLedgerStore()

    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{tmp_path / 'concurrency.db'}")
    monkeypatch.setenv("SUPPLYTRACK_DB_AUTO_CREATE", "true")
    monkeypatch.delenv("SUPPLYTRACK_LEDGER_STORE", raising=False)

    from services.api.app.db.init_db import init_db

    init_db()
    return SqlLedgerStore()


def test_concurrent_appends_to_one_product_lose_nothing(store: LedgerStore) -> None:
    engine = LedgerEngine(store, locks=ProductLocks())
    actors = [register_user(store, f"user-{i}", "DISTRIBUTOR").id for i in range(4)]
    product = engine.create_product("Coffee Lot 7", "Farm A", "Farm A", actors[0])

    n = 24

    def append(i: int) -> int:
        event = engine.record_event(
            product.id, f"STEP_{i}", f"step {i}", f"Stop {i}", actors[i % len(actors)]
        )
        return event.id

    with ThreadPoolExecutor(max_workers=8) as pool:
        event_ids = list(pool.map(append, range(n)))

    trace = engine.get_trace(product.id)
    assert len(trace.events) == n + 1
    assert {e.id for e in trace.events[1:]} == set(event_ids)
    assert [e.sequence for e in trace.events] == list(range(1, n + 2))

    stamps = [e.timestamp for e in trace.events]
    assert all(b > a for a, b in zip(stamps, stamps[1:]))

    last = trace.events[-1]
    assert trace.product.current_status == last.event_type
    assert trace.product.current_location == last.location
    assert trace.product.owner_user_id == last.actor_user_id
    assert verify_trace(trace).consistent


def test_concurrent_writes_across_products_stay_consistent() -> None:
    store = InMemoryLedgerStore()
    engine = LedgerEngine(store, locks=ProductLocks())
    owner = register_user(store, "farmer", "FARMER").id
    products = [engine.create_product(f"Lot {i}", "Farm", "Farm", owner).id for i in range(5)]

    def work(i: int) -> None:
        product_id = products[i % len(products)]
        engine.record_event(product_id, "MOVED", str(i), f"Stop {i}", owner)

    with ThreadPoolExecutor(max_workers=10) as pool:
        list(pool.map(work, range(50)))

    for product_id in products:
        trace = engine.get_trace(product_id)
        assert len(trace.events) == 11
        assert verify_trace(trace).consistent


def test_readers_never_see_product_ahead_of_or_behind_its_log(store: LedgerStore) -> None:
    engine = LedgerEngine(store, locks=ProductLocks())
    owner = register_user(store, "farmer", "FARMER").id
    product = engine.create_product("Lot", "Farm", "Farm", owner)

    stop = threading.Event()
    inconsistencies: list[int] = []

    def read() -> None:
        while not stop.is_set():
            trace = engine.get_trace(product.id)
            if not verify_trace(trace).consistent:
                inconsistencies.append(trace.product.last_sequence)

    readers = [threading.Thread(target=read) for _ in range(3)]
    for t in readers:
        t.start()
    try:
        for i in range(100):
            engine.record_event(product.id, f"STEP_{i}", "", f"Stop {i}", owner)
    finally:
        stop.set()
        for t in readers:
            t.join()

    assert inconsistencies == []
    assert len(engine.get_trace(product.id).events) == 101


def test_read_of_one_product_does_not_wait_on_open_write_to_another(store: LedgerStore) -> None:
    engine = LedgerEngine(store, locks=ProductLocks())
    owner = register_user(store, "farmer", "FARMER").id
    a = engine.create_product("Lot A", "Farm", "Farm", owner)
    b = engine.create_product("Lot B", "Farm", "Farm", owner)

    writing = threading.Event()
    release = threading.Event()

    def hold_write_on_a() -> None:
        with store.transaction(write=True) as tx:
            product = tx.get_product(a.id, for_update=True)
            assert product is not None
            event = tx.append_event(
                NewEvent(
                    product_id=a.id,
                    event_type="SHIPPED",
                    description="in transit",
                    location="Port B",
                    actor_user_id=owner,
                )
            )
            tx.save_product(replace(product, current_status="SHIPPED", last_sequence=event.sequence))
            writing.set()
            release.wait(timeout=5)

    writer = threading.Thread(target=hold_write_on_a)
    writer.start()
    try:
        assert writing.wait(timeout=5)
        started = time.monotonic()
        trace_b = engine.get_trace(b.id)
        trace_a = engine.get_trace(a.id)
        elapsed = time.monotonic() - started
    finally:
        release.set()
        writer.join()

    assert elapsed < 0.5
    assert len(trace_b.events) == 1
    # The open write on A is invisible until it commits.
    assert trace_a.product.current_status == "HARVESTED"
    assert len(trace_a.events) == 1

    trace_a = engine.get_trace(a.id)
    assert trace_a.product.current_status == "SHIPPED"
    assert len(trace_a.events) == 2


def test_product_lock_blocks_same_product_only() -> None:
    locks = ProductLocks()
    other_entered = threading.Event()
    same_entered = threading.Event()

    def hold(product_id: int, entered: threading.Event) -> None:
        with locks.hold(product_id):
            entered.set()

    with locks.hold(1):
        other = threading.Thread(target=hold, args=(2, other_entered))
        same = threading.Thread(target=hold, args=(1, same_entered))
        other.start()
        same.start()

        assert other_entered.wait(timeout=2)
        assert not same_entered.wait(timeout=0.2)

    assert same_entered.wait(timeout=2)
    other.join()
    same.join()
    assert len(locks) == 0
