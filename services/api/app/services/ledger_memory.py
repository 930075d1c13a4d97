from __future__ import annotations

import itertools
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime

from services.api.app.services.ledger_base import (
    EventRecord,
    NewEvent,
    NewProduct,
    ProductRecord,
    StoreFailureError,
    UserRecord,
    iter_sorted,
    next_timestamp,
    utcnow,
)


class _MemoryTransaction:
    """Stages writes against an InMemoryLedgerStore.

    Nothing is visible to other transactions until ``publish``; ``discard``
    drops the staged writes, which is how a failed unit is rolled back.
    """

    def __init__(self, store: InMemoryLedgerStore) -> None:
        self._store = store
        self._products: dict[int, ProductRecord] = {}
        self._events: dict[int, list[EventRecord]] = {}
        self._users: dict[int, UserRecord] = {}

    def get_product(self, product_id: int, *, for_update: bool = False) -> ProductRecord | None:
        del for_update
        staged = self._products.get(product_id)
        if staged is not None:
            return staged
        return self._store._products.get(product_id)

    def add_product(self, product: NewProduct, *, status: str) -> ProductRecord:
        now = self._store._clock()
        record = ProductRecord(
            id=next(self._store._product_ids),
            name=product.name,
            origin=product.origin,
            current_status=status,
            current_location=product.initial_location,
            owner_user_id=product.owner_user_id,
            created_at=now,
            updated_at=now,
        )
        self._products[record.id] = record
        return record

    def save_product(self, record: ProductRecord) -> ProductRecord:
        existing = self.get_product(record.id)
        if existing is None:
            raise StoreFailureError(f"Product {record.id} vanished during the transaction")
        # Only the derived fields are writable after creation.
        record = replace(
            existing,
            current_status=record.current_status,
            current_location=record.current_location,
            owner_user_id=record.owner_user_id,
            last_sequence=record.last_sequence,
            updated_at=self._store._clock(),
        )
        self._products[record.id] = record
        return record

    def get_user(self, user_id: int) -> UserRecord | None:
        return self._users.get(user_id) or self._store._users.get(user_id)

    def get_user_by_username(self, username: str) -> UserRecord | None:
        for user in itertools.chain(self._users.values(), list(self._store._users.values())):
            if user.username == username:
                return user
        return None

    def add_user(self, username: str, role: str) -> UserRecord:
        if self.get_user_by_username(username) is not None:
            raise StoreFailureError(f"Unique constraint violated for username {username!r}")
        user = UserRecord(
            id=next(self._store._user_ids),
            username=username,
            role=role,
            created_at=self._store._clock(),
        )
        self._users[user.id] = user
        return user

    def _all_events(self, product_id: int) -> list[EventRecord]:
        return list(self._store._events.get(product_id, ())) + self._events.get(product_id, [])

    def append_event(self, event: NewEvent) -> EventRecord:
        existing = self._all_events(event.product_id)
        last = max(existing, key=lambda e: e.sequence) if existing else None

        record = EventRecord(
            id=next(self._store._event_ids),
            product_id=event.product_id,
            sequence=(last.sequence + 1) if last is not None else 1,
            event_type=event.event_type,
            description=event.description,
            location=event.location,
            actor_user_id=event.actor_user_id,
            performed_by_user_id=event.performed_by_user_id,
            timestamp=next_timestamp(
                self._store._clock(), last.timestamp if last is not None else None
            ),
        )
        self._events.setdefault(event.product_id, []).append(record)
        return record

    def list_events(
        self, product_id: int, *, up_to_sequence: int | None = None
    ) -> list[EventRecord]:
        events = self._all_events(product_id)
        if up_to_sequence is not None:
            events = [e for e in events if e.sequence <= up_to_sequence]
        return list(iter_sorted(events))

    def list_products_by_owner(self, owner_user_id: int) -> list[ProductRecord]:
        merged = {**self._store._products, **self._products}
        return [merged[pid] for pid in sorted(merged) if merged[pid].owner_user_id == owner_user_id]

    def list_product_ids(self) -> list[int]:
        return sorted({*self._store._products, *self._products})

    def publish(self) -> None:
        with self._store._publish_lock:
            for product_id, events in self._events.items():
                committed = self._store._events.setdefault(product_id, [])
                taken = {e.sequence for e in committed}
                if any(e.sequence in taken for e in events):
                    raise StoreFailureError(
                        f"Concurrent append detected for product {product_id}"
                    )
            for user in self._users.values():
                if any(u.username == user.username for u in self._store._users.values()):
                    raise StoreFailureError(
                        f"Unique constraint violated for username {user.username!r}"
                    )

            # Events go first so a reader never sees a product ahead of its log.
            for product_id, events in self._events.items():
                self._store._events[product_id].extend(events)
            self._store._users.update(self._users)
            self._store._products.update(self._products)

    def discard(self) -> None:
        self._products.clear()
        self._events.clear()
        self._users.clear()


class InMemoryLedgerStore:
    """Thread-safe in-memory ledger store.

    Used in tests and local runs. ``_publish_lock`` only guards the final copy
    of staged writes into the shared dicts; callers serialise work on a single
    product with ProductLocks.
    """

    kind = "memory"

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._publish_lock = threading.Lock()
        self._products: dict[int, ProductRecord] = {}
        self._events: dict[int, list[EventRecord]] = {}
        self._users: dict[int, UserRecord] = {}
        self._product_ids = itertools.count(1)
        self._event_ids = itertools.count(1)
        self._user_ids = itertools.count(1)

    @contextmanager
    def transaction(self, *, write: bool = False) -> Iterator[_MemoryTransaction]:
        # Readers never block here; staged writes are published atomically.
        del write
        tx = _MemoryTransaction(self)
        try:
            yield tx
        except BaseException:
            tx.discard()
            raise
        tx.publish()
