from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

INITIAL_STATUS = "HARVESTED"

# Smallest step SQL DateTime columns can represent.
TIMESTAMP_STEP = timedelta(microseconds=1)


class LedgerError(Exception):
    """Base class for provenance ledger errors."""


class ProductNotFoundError(LedgerError):
    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product with ID {product_id} not found.")
        self.product_id = product_id


class ActorNotFoundError(LedgerError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"Actor user with ID {user_id} not found.")
        self.user_id = user_id


class StoreFailureError(LedgerError):
    """Storage was unavailable or could not commit the atomic unit."""


class UsernameTakenError(LedgerError):
    def __init__(self, username: str) -> None:
        super().__init__(f"Username already taken: {username}")
        self.username = username


@dataclass(frozen=True, slots=True)
class UserRecord:
    id: int
    username: str
    role: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class NewProduct:
    name: str
    origin: str
    initial_location: str
    owner_user_id: int


@dataclass(frozen=True, slots=True)
class ProductRecord:
    id: int
    name: str
    origin: str
    current_status: str
    current_location: str
    owner_user_id: int
    last_sequence: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class NewEvent:
    product_id: int
    event_type: str
    description: str
    location: str
    actor_user_id: int
    performed_by_user_id: int | None = None


@dataclass(frozen=True, slots=True)
class EventRecord:
    id: int
    product_id: int
    sequence: int
    event_type: str
    description: str
    location: str
    actor_user_id: int
    performed_by_user_id: int | None
    timestamp: datetime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_timestamp(now: datetime, previous: datetime | None) -> datetime:
    """Return an append timestamp strictly after ``previous``.

    The wall clock is used when it moves forward; otherwise the previous
    timestamp is bumped by the smallest representable step.
    """

    now = as_utc(now)
    if previous is None:
        return now
    previous = as_utc(previous)
    if now > previous:
        return now
    return previous + TIMESTAMP_STEP


class LedgerTransaction(Protocol):
    def get_product(self, product_id: int, *, for_update: bool = False) -> ProductRecord | None: ...

    def add_product(self, product: NewProduct, *, status: str) -> ProductRecord: ...

    def save_product(self, record: ProductRecord) -> ProductRecord: ...

    def get_user(self, user_id: int) -> UserRecord | None: ...

    def get_user_by_username(self, username: str) -> UserRecord | None: ...

    def add_user(self, username: str, role: str) -> UserRecord: ...

    def append_event(self, event: NewEvent) -> EventRecord: ...

    def list_events(
        self, product_id: int, *, up_to_sequence: int | None = None
    ) -> list[EventRecord]: ...

    def list_products_by_owner(self, owner_user_id: int) -> list[ProductRecord]: ...

    def list_product_ids(self) -> list[int]: ...


class LedgerStore(Protocol):
    kind: str

    def transaction(self, *, write: bool = False) -> AbstractContextManager[LedgerTransaction]: ...


def iter_sorted(events: list[EventRecord]) -> Iterator[EventRecord]:
    """Yield events in canonical ledger order (timestamp, then id)."""

    yield from sorted(events, key=lambda e: (e.timestamp, e.id))
