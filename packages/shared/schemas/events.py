"""Shared provenance schema (v1).

Every product carries an append-only event log. Clients read the trace to
render a product's custody history; the product fields are the state derived
from the newest event.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class EventTypeV1(str, Enum):
    """Event types with a meaning clients may rely on.

    The ledger accepts any event type string; these are conventions only.
    """

    HARVESTED = "HARVESTED"
    PROCESSED = "PROCESSED"
    INSPECTED = "INSPECTED"
    SHIPPED = "SHIPPED"
    RECEIVED = "RECEIVED"
    HANDOVER = "HANDOVER"
    SOLD = "SOLD"


class ProductV1(BaseModel):
    id: int
    name: str
    origin: str

    current_status: str
    current_location: str
    owner_user_id: int

    created_at: str | None = None
    updated_at: str | None = None


class EventV1(BaseModel):
    id: int
    product_id: int
    sequence: int

    event_type: str
    description: str
    location: str

    # For HANDOVER events the actor is the new owner.
    actor_user_id: int
    performed_by_user_id: int | None = None

    timestamp: str


class ProductTraceV1(BaseModel):
    product: ProductV1
    events: list[EventV1] = Field(default_factory=list)


class ReplayReportV1(BaseModel):
    product_id: int
    event_count: int
    consistent: bool

    mismatched_fields: list[str] = Field(default_factory=list)
    ordering_violations: list[int] = Field(default_factory=list)
