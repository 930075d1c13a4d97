from __future__ import annotations

from fastapi import APIRouter, Header, HTTPException
from packages.shared.schemas.events import (
    EventTypeV1,
    EventV1,
    ProductTraceV1,
    ProductV1,
    ReplayReportV1,
)
from services.api.app.models.product import (
    EventLogRequest,
    ProductCreateRequest,
    ProductHandoverRequest,
    ProductHandoverResponse,
    QrCodeDataResponse,
)
from services.api.app.routers.errors import raise_ledger_http_error
from services.api.app.services.ledger_base import EventRecord, ProductRecord, UserRecord
from services.api.app.services.ledger_engine import LedgerEngine
from services.api.app.services.ledger_factory import get_ledger_engine
from services.api.app.services.users import get_user

router = APIRouter()


def _engine() -> LedgerEngine:
    try:
        return get_ledger_engine()
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


def _current_user(engine: LedgerEngine, x_user_id: int | None) -> UserRecord:
    # Authentication lives outside this service; callers arrive already identified.
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")

    try:
        user = get_user(engine.store, x_user_id)
    except Exception as e:
        raise_ledger_http_error(e)

    if user is None:
        raise HTTPException(status_code=401, detail="Calling user not found")
    return user


def _product_v1(product: ProductRecord) -> ProductV1:
    return ProductV1(
        id=product.id,
        name=product.name,
        origin=product.origin,
        current_status=product.current_status,
        current_location=product.current_location,
        owner_user_id=product.owner_user_id,
        created_at=product.created_at.isoformat() if product.created_at else None,
        updated_at=product.updated_at.isoformat() if product.updated_at else None,
    )


def _event_v1(event: EventRecord) -> EventV1:
    return EventV1(
        id=event.id,
        product_id=event.product_id,
        sequence=event.sequence,
        event_type=event.event_type,
        description=event.description,
        location=event.location,
        actor_user_id=event.actor_user_id,
        performed_by_user_id=event.performed_by_user_id,
        timestamp=event.timestamp.isoformat(),
    )


@router.post("/v1/products", response_model=ProductV1, status_code=201)
def create_product(
    payload: ProductCreateRequest,
    x_user_id: int | None = Header(default=None),
) -> ProductV1:
    engine = _engine()
    user = _current_user(engine, x_user_id)

    try:
        product = engine.create_product(
            payload.name,
            payload.origin,
            payload.initial_location,
            user.id,
        )
    except Exception as e:
        raise_ledger_http_error(e)

    return _product_v1(product)


@router.get("/v1/products", response_model=list[ProductV1])
def list_my_products(x_user_id: int | None = Header(default=None)) -> list[ProductV1]:
    engine = _engine()
    user = _current_user(engine, x_user_id)

    try:
        products = engine.list_products_by_owner(user.id)
    except Exception as e:
        raise_ledger_http_error(e)

    return [_product_v1(p) for p in products]


@router.post("/v1/products/{product_id}/events", response_model=EventV1, status_code=201)
def log_product_event(
    product_id: int,
    payload: EventLogRequest,
    x_user_id: int | None = Header(default=None),
) -> EventV1:
    engine = _engine()
    user = _current_user(engine, x_user_id)

    try:
        event = engine.record_event(
            product_id,
            payload.event_type,
            payload.description,
            payload.location,
            user.id,
        )
    except Exception as e:
        raise_ledger_http_error(e)

    return _event_v1(event)


@router.post("/v1/products/{product_id}/handover", response_model=ProductHandoverResponse)
def handover_product(
    product_id: int,
    payload: ProductHandoverRequest,
    x_user_id: int | None = Header(default=None),
) -> ProductHandoverResponse:
    engine = _engine()
    acting_user = _current_user(engine, x_user_id)

    # The new owner is credited as the event's actor; the caller is kept as performer.
    try:
        event = engine.record_event(
            product_id,
            EventTypeV1.HANDOVER.value,
            payload.handover_description,
            payload.handover_location,
            payload.new_owner_user_id,
            performed_by_user_id=acting_user.id,
        )
    except Exception as e:
        raise_ledger_http_error(e)

    return ProductHandoverResponse(
        message=(
            f"Product {product_id} handed over successfully and updated owner to "
            f"{payload.new_owner_user_id}"
        ),
        event_id=event.id,
        owner_user_id=event.actor_user_id,
    )


@router.get("/v1/products/{product_id}/trace", response_model=ProductTraceV1)
def get_product_trace(product_id: int) -> ProductTraceV1:
    engine = _engine()

    try:
        trace = engine.get_trace(product_id)
    except Exception as e:
        raise_ledger_http_error(e)

    return ProductTraceV1(
        product=_product_v1(trace.product),
        events=[_event_v1(e) for e in trace.events],
    )


@router.get("/v1/products/{product_id}/verify", response_model=ReplayReportV1)
def verify_product(product_id: int) -> ReplayReportV1:
    engine = _engine()

    try:
        report = engine.verify_product(product_id)
    except Exception as e:
        raise_ledger_http_error(e)

    return ReplayReportV1(
        product_id=report.product_id,
        event_count=report.event_count,
        consistent=report.consistent,
        mismatched_fields=report.mismatched_fields,
        ordering_violations=report.ordering_violations,
    )


@router.get("/v1/products/{product_id}/qrcode-data", response_model=QrCodeDataResponse)
def get_product_qrcode_data(product_id: int) -> QrCodeDataResponse:
    engine = _engine()

    try:
        product = engine.get_product(product_id)
    except Exception as e:
        raise_ledger_http_error(e)

    return QrCodeDataResponse(qr_code_data=str(product.id))
