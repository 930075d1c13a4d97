from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from services.api.app.services.ledger_base import EventRecord, ProductRecord
from services.api.app.services.replay import (
    DerivedState,
    ProductTrace,
    derive_state,
    verify_trace,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _event(seq: int, event_type: str, location: str, actor: int) -> EventRecord:
    return EventRecord(
        id=seq,
        product_id=1,
        sequence=seq,
        event_type=event_type,
        description="",
        location=location,
        actor_user_id=actor,
        performed_by_user_id=None,
        timestamp=T0 + timedelta(minutes=seq),
    )


def _product(status: str, location: str, owner: int, last_sequence: int) -> ProductRecord:
    return ProductRecord(
        id=1,
        name="Coffee Lot 7",
        origin="Farm A",
        current_status=status,
        current_location=location,
        owner_user_id=owner,
        last_sequence=last_sequence,
    )


EVENTS = [
    _event(1, "HARVESTED", "Farm A", 1),
    _event(2, "SHIPPED", "Port B", 1),
    _event(3, "HANDOVER", "Warehouse C", 2),
]


def test_derive_state_takes_fields_from_newest_event() -> None:
    assert derive_state(EVENTS) == DerivedState("HANDOVER", "Warehouse C", 2)
    assert derive_state(EVENTS[:2]) == DerivedState("SHIPPED", "Port B", 1)


def test_derive_state_rejects_empty_ledger() -> None:
    with pytest.raises(ValueError, match="empty ledger"):
        derive_state([])


def test_verify_trace_accepts_matching_projection() -> None:
    report = verify_trace(ProductTrace(_product("HANDOVER", "Warehouse C", 2, 3), EVENTS))
    assert report.consistent
    assert report.event_count == 3
    assert report.replayed == report.stored


def test_verify_trace_flags_stale_projection() -> None:
    stale = _product("SHIPPED", "Port B", 1, 2)
    report = verify_trace(ProductTrace(stale, EVENTS))

    assert not report.consistent
    assert report.mismatched_fields == [
        "current_status",
        "current_location",
        "owner_user_id",
        "last_sequence",
    ]


def test_verify_trace_flags_out_of_order_events() -> None:
    shuffled = [EVENTS[0], replace(EVENTS[2], timestamp=T0), EVENTS[1]]
    report = verify_trace(ProductTrace(_product("SHIPPED", "Port B", 1, 2), shuffled))

    assert not report.consistent
    assert report.ordering_violations


def test_verify_trace_without_events_is_inconsistent() -> None:
    report = verify_trace(ProductTrace(_product("HARVESTED", "Farm A", 1, 0), []))
    assert not report.consistent
    assert report.replayed is None
