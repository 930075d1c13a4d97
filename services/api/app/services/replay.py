"""Replay of a product ledger into derived state.

The product row is only a cache: folding the ordered event list must always
reproduce its status, location and owner. These helpers do the fold and
report any drift between the fold and the stored projection.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from services.api.app.services.ledger_base import EventRecord, ProductRecord


@dataclass(frozen=True, slots=True)
class DerivedState:
    current_status: str
    current_location: str
    owner_user_id: int

    @classmethod
    def of(cls, product: ProductRecord) -> DerivedState:
        return cls(
            current_status=product.current_status,
            current_location=product.current_location,
            owner_user_id=product.owner_user_id,
        )


@dataclass(frozen=True, slots=True)
class ProductTrace:
    product: ProductRecord
    events: list[EventRecord]


@dataclass(frozen=True, slots=True)
class ReplayReport:
    product_id: int
    event_count: int
    stored: DerivedState
    replayed: DerivedState | None
    mismatched_fields: list[str] = field(default_factory=list)
    ordering_violations: list[int] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return self.replayed is not None and not self.mismatched_fields and not self.ordering_violations


def apply_event(state: DerivedState | None, event: EventRecord) -> DerivedState:
    # Every event fully determines the derived fields; the prior state is irrelevant.
    del state
    return DerivedState(
        current_status=event.event_type,
        current_location=event.location,
        owner_user_id=event.actor_user_id,
    )


def derive_state(events: Iterable[EventRecord]) -> DerivedState:
    state: DerivedState | None = None
    for event in events:
        state = apply_event(state, event)
    if state is None:
        raise ValueError("Cannot derive state from an empty ledger")
    return state


def verify_trace(trace: ProductTrace) -> ReplayReport:
    product = trace.product
    stored = DerivedState.of(product)

    violations: list[int] = []
    for prev, curr in zip(trace.events, trace.events[1:]):
        if (curr.timestamp, curr.id) < (prev.timestamp, prev.id) or curr.sequence <= prev.sequence:
            violations.append(curr.id)

    if not trace.events:
        return ReplayReport(
            product_id=product.id,
            event_count=0,
            stored=stored,
            replayed=None,
            mismatched_fields=["current_status", "current_location", "owner_user_id"],
            ordering_violations=violations,
        )

    replayed = derive_state(trace.events)
    mismatched = [
        name
        for name in ("current_status", "current_location", "owner_user_id")
        if getattr(stored, name) != getattr(replayed, name)
    ]
    if trace.events[-1].sequence != product.last_sequence:
        mismatched.append("last_sequence")

    return ReplayReport(
        product_id=product.id,
        event_count=len(trace.events),
        stored=stored,
        replayed=replayed,
        mismatched_fields=mismatched,
        ordering_violations=violations,
    )
