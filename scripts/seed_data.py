from __future__ import annotations

import argparse

from packages.shared.schemas.events import EventTypeV1
from services.api.app.db.init_db import init_db
from services.api.app.services.ledger_base import UserRecord
from services.api.app.services.ledger_factory import get_ledger_engine
from services.api.app.services.users import register_user


def _ensure_user(engine, username: str, role: str) -> UserRecord:
    with engine.store.transaction() as tx:
        existing = tx.get_user_by_username(username)
    if existing is not None:
        return existing
    return register_user(engine.store, username, role)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo SupplyTrack users and a traced product")
    parser.add_argument("--farmer", default="farmer-1")
    parser.add_argument("--distributor", default="distributor-1")
    parser.add_argument("--restaurant", default="restaurant-1")
    parser.add_argument("--product-name", default="Coffee Lot 7")
    parser.add_argument("--origin", default="Farm A")
    args = parser.parse_args()

    init_db()
    engine = get_ledger_engine()

    farmer = _ensure_user(engine, args.farmer, "FARMER")
    distributor = _ensure_user(engine, args.distributor, "DISTRIBUTOR")
    restaurant = _ensure_user(engine, args.restaurant, "RESTAURANT")

    if engine.list_products_by_owner(farmer.id) or engine.list_products_by_owner(restaurant.id):
        print(f"Seed data already present for {args.farmer}")
        return 0

    product = engine.create_product(args.product_name, args.origin, args.origin, farmer.id)

    engine.record_event(
        product.id, EventTypeV1.SHIPPED.value, "in transit", "Port B", farmer.id
    )
    engine.record_event(
        product.id,
        EventTypeV1.HANDOVER.value,
        "sold to distributor",
        "Warehouse C",
        distributor.id,
        performed_by_user_id=farmer.id,
    )
    engine.record_event(
        product.id, EventTypeV1.INSPECTED.value, "quality check passed", "Warehouse C", distributor.id
    )
    engine.record_event(
        product.id,
        EventTypeV1.HANDOVER.value,
        "delivered to kitchen",
        "Restaurant D",
        restaurant.id,
        performed_by_user_id=distributor.id,
    )

    trace = engine.get_trace(product.id)
    print(
        f"Seeded product={product.id} events={len(trace.events)} "
        f"status={trace.product.current_status} owner={trace.product.owner_user_id}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
