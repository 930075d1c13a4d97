"""Replay every product ledger and compare it with the stored product state.

Exits non-zero when any product's projection has drifted from its events.
"""

from __future__ import annotations

import argparse

from services.api.app.services.ledger_base import ProductNotFoundError
from services.api.app.services.ledger_factory import get_ledger_engine


def main() -> int:
    parser = argparse.ArgumentParser(description="Verify SupplyTrack product ledgers by replay")
    parser.add_argument(
        "--product-id",
        type=int,
        action="append",
        default=[],
        help="Verify only this product (repeatable). Defaults to every product.",
    )
    args = parser.parse_args()

    engine = get_ledger_engine()
    product_ids = args.product_id or engine.list_product_ids()

    failures = 0
    for product_id in product_ids:
        try:
            report = engine.verify_product(product_id)
        except ProductNotFoundError:
            failures += 1
            print(f"MISSING product={product_id}")
            continue

        if report.consistent:
            print(f"ok    product={product_id} events={report.event_count}")
            continue

        failures += 1
        print(
            f"DRIFT product={product_id} events={report.event_count} "
            f"fields={','.join(report.mismatched_fields) or '-'} "
            f"ordering={','.join(str(i) for i in report.ordering_violations) or '-'}"
        )

    print(f"Verified {len(product_ids)} products, {failures} inconsistent")
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
