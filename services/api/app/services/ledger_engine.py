from __future__ import annotations

import logging
from dataclasses import replace

from services.api.app.services.ledger_base import (
    INITIAL_STATUS,
    ActorNotFoundError,
    EventRecord,
    LedgerStore,
    NewEvent,
    NewProduct,
    ProductNotFoundError,
    ProductRecord,
)
from services.api.app.services.product_locks import ProductLocks, product_locks
from services.api.app.services.replay import ProductTrace, ReplayReport, verify_trace

logger = logging.getLogger(__name__)

INITIAL_DESCRIPTION = "Product initially harvested and created."


class LedgerEngine:
    """The only writer of product derived state.

    Every write appends to the product's ledger and updates the cached
    projection inside one store transaction. Writes to the same product are
    serialised by ``ProductLocks``; writes to different products never share a
    lock.
    """

    def __init__(self, store: LedgerStore, locks: ProductLocks | None = None) -> None:
        self._store = store
        self._locks = locks if locks is not None else product_locks

    @property
    def store(self) -> LedgerStore:
        return self._store

    def create_product(
        self,
        name: str,
        origin: str,
        initial_location: str,
        owner_user_id: int,
    ) -> ProductRecord:
        # No product lock: the new row is invisible to everyone until commit.
        with self._store.transaction(write=True) as tx:
            product = tx.add_product(
                NewProduct(
                    name=name,
                    origin=origin,
                    initial_location=initial_location,
                    owner_user_id=owner_user_id,
                ),
                status=INITIAL_STATUS,
            )
            event = tx.append_event(
                NewEvent(
                    product_id=product.id,
                    event_type=INITIAL_STATUS,
                    description=INITIAL_DESCRIPTION,
                    location=initial_location,
                    actor_user_id=owner_user_id,
                )
            )
            product = tx.save_product(replace(product, last_sequence=event.sequence))

        logger.info("Created product %s (%s) owned by user %s", product.id, name, owner_user_id)
        return product

    def record_event(
        self,
        product_id: int,
        event_type: str,
        description: str,
        location: str,
        actor_user_id: int,
        *,
        performed_by_user_id: int | None = None,
    ) -> EventRecord:
        """Append an event and move the product's derived state to it.

        ``actor_user_id`` becomes the product's owner. For a handover the
        caller passes the new owner here; ``performed_by_user_id`` may name
        whoever actually logged it, without affecting derived state.
        """

        with self._locks.hold(product_id), self._store.transaction(write=True) as tx:
            product = tx.get_product(product_id, for_update=True)
            if product is None:
                raise ProductNotFoundError(product_id)

            if tx.get_user(actor_user_id) is None:
                raise ActorNotFoundError(actor_user_id)
            if performed_by_user_id is not None and tx.get_user(performed_by_user_id) is None:
                raise ActorNotFoundError(performed_by_user_id)

            event = tx.append_event(
                NewEvent(
                    product_id=product_id,
                    event_type=event_type,
                    description=description,
                    location=location,
                    actor_user_id=actor_user_id,
                    performed_by_user_id=performed_by_user_id,
                )
            )
            tx.save_product(
                replace(
                    product,
                    current_status=event.event_type,
                    current_location=event.location,
                    owner_user_id=event.actor_user_id,
                    last_sequence=event.sequence,
                )
            )

        logger.info(
            "Recorded %s event %s for product %s (seq=%s, actor=%s)",
            event.event_type,
            event.id,
            product_id,
            event.sequence,
            actor_user_id,
        )
        return event

    def get_trace(self, product_id: int) -> ProductTrace:
        with self._store.transaction() as tx:
            product = tx.get_product(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            # Events past last_sequence belong to a write this read must not see.
            events = tx.list_events(product_id, up_to_sequence=product.last_sequence)
        return ProductTrace(product=product, events=events)

    def get_product(self, product_id: int) -> ProductRecord:
        with self._store.transaction() as tx:
            product = tx.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def list_products_by_owner(self, owner_user_id: int) -> list[ProductRecord]:
        with self._store.transaction() as tx:
            return tx.list_products_by_owner(owner_user_id)

    def verify_product(self, product_id: int) -> ReplayReport:
        report = verify_trace(self.get_trace(product_id))
        if not report.consistent:
            logger.warning(
                "Ledger drift for product %s: fields=%s ordering=%s",
                product_id,
                report.mismatched_fields,
                report.ordering_violations,
            )
        return report

    def list_product_ids(self) -> list[int]:
        with self._store.transaction() as tx:
            return tx.list_product_ids()
