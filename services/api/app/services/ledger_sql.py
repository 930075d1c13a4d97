from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime

from services.api.app.db.models import Product, ProductEvent, User
from services.api.app.db.unit_of_work import unit_of_work
from services.api.app.services.ledger_base import (
    EventRecord,
    NewEvent,
    NewProduct,
    ProductRecord,
    StoreFailureError,
    UserRecord,
    as_utc,
    next_timestamp,
    utcnow,
)
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def _user_record(row: User) -> UserRecord:
    return UserRecord(
        id=row.id,
        username=row.username,
        role=row.role,
        created_at=as_utc(row.created_at),
    )


def _product_record(row: Product) -> ProductRecord:
    return ProductRecord(
        id=row.id,
        name=row.name,
        origin=row.origin,
        current_status=row.current_status,
        current_location=row.current_location,
        owner_user_id=row.owner_user_id,
        last_sequence=row.last_sequence,
        created_at=as_utc(row.created_at) if row.created_at else None,
        updated_at=as_utc(row.updated_at) if row.updated_at else None,
    )


def _event_record(row: ProductEvent) -> EventRecord:
    return EventRecord(
        id=row.id,
        product_id=row.product_id,
        sequence=row.sequence,
        event_type=row.event_type,
        description=row.description,
        location=row.location,
        actor_user_id=row.actor_user_id,
        performed_by_user_id=row.performed_by_user_id,
        timestamp=as_utc(row.timestamp),
    )


class SqlLedgerTransaction:
    def __init__(self, db: Session, clock: Callable[[], datetime]) -> None:
        self._db = db
        self._clock = clock

    def get_product(self, product_id: int, *, for_update: bool = False) -> ProductRecord | None:
        row = self._db.get(Product, product_id, with_for_update=for_update or None)
        return _product_record(row) if row is not None else None

    def add_product(self, product: NewProduct, *, status: str) -> ProductRecord:
        row = Product(
            name=product.name,
            origin=product.origin,
            current_status=status,
            current_location=product.initial_location,
            owner_user_id=product.owner_user_id,
            last_sequence=0,
        )
        self._db.add(row)
        self._db.flush()
        return _product_record(row)

    def save_product(self, record: ProductRecord) -> ProductRecord:
        row = self._db.get(Product, record.id)
        if row is None:
            raise StoreFailureError(f"Product {record.id} vanished during the transaction")
        row.current_status = record.current_status
        row.current_location = record.current_location
        row.owner_user_id = record.owner_user_id
        row.last_sequence = record.last_sequence

        self._db.flush()
        return _product_record(row)

    def get_user(self, user_id: int) -> UserRecord | None:
        row = self._db.get(User, user_id)
        return _user_record(row) if row is not None else None

    def get_user_by_username(self, username: str) -> UserRecord | None:
        row = self._db.execute(select(User).where(User.username == username)).scalar_one_or_none()
        return _user_record(row) if row is not None else None

    def add_user(self, username: str, role: str) -> UserRecord:
        row = User(username=username, role=role)
        self._db.add(row)
        self._db.flush()
        return _user_record(row)

    def append_event(self, event: NewEvent) -> EventRecord:
        last = self._db.execute(
            select(ProductEvent)
            .where(ProductEvent.product_id == event.product_id)
            .order_by(ProductEvent.sequence.desc())
            .limit(1)
        ).scalar_one_or_none()

        row = ProductEvent(
            product_id=event.product_id,
            sequence=(last.sequence + 1) if last is not None else 1,
            event_type=event.event_type,
            description=event.description,
            location=event.location,
            actor_user_id=event.actor_user_id,
            performed_by_user_id=event.performed_by_user_id,
            timestamp=next_timestamp(self._clock(), last.timestamp if last is not None else None),
        )
        self._db.add(row)
        self._db.flush()
        return _event_record(row)

    def list_events(
        self, product_id: int, *, up_to_sequence: int | None = None
    ) -> list[EventRecord]:
        stmt = select(ProductEvent).where(ProductEvent.product_id == product_id)
        if up_to_sequence is not None:
            stmt = stmt.where(ProductEvent.sequence <= up_to_sequence)
        stmt = stmt.order_by(ProductEvent.timestamp.asc(), ProductEvent.id.asc())
        return [_event_record(row) for row in self._db.execute(stmt).scalars()]

    def list_products_by_owner(self, owner_user_id: int) -> list[ProductRecord]:
        rows = self._db.execute(
            select(Product).where(Product.owner_user_id == owner_user_id).order_by(Product.id.asc())
        ).scalars()
        return [_product_record(row) for row in rows]

    def list_product_ids(self) -> list[int]:
        return list(self._db.execute(select(Product.id).order_by(Product.id.asc())).scalars())


class SqlLedgerStore:
    """Ledger store backed by the SQLAlchemy database configured via DATABASE_URL."""

    kind = "sql"

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock

    @contextmanager
    def transaction(self, *, write: bool = False) -> Iterator[SqlLedgerTransaction]:
        try:
            with unit_of_work(write=write) as db:
                yield SqlLedgerTransaction(db, self._clock)
        except SQLAlchemyError as e:
            logger.error("Ledger transaction rolled back: %s", e)
            raise StoreFailureError(str(e)) from e
