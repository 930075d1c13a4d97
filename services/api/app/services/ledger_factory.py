from __future__ import annotations

import os

from services.api.app.services.ledger_base import LedgerStore
from services.api.app.services.ledger_engine import LedgerEngine
from services.api.app.services.ledger_memory import InMemoryLedgerStore
from services.api.app.services.ledger_sql import SqlLedgerStore

_MEMORY_STORE: InMemoryLedgerStore | None = None


def get_ledger_store() -> LedgerStore:
    """Select a store based on env vars.

    Defaults to the SQL store. The memory store is a process-wide singleton so
    state survives across requests.
    """

    global _MEMORY_STORE

    mode = os.getenv("SUPPLYTRACK_LEDGER_STORE", "sql").strip().lower()

    if mode == "sql":
        return SqlLedgerStore()

    if mode == "memory":
        if _MEMORY_STORE is None:
            _MEMORY_STORE = InMemoryLedgerStore()
        return _MEMORY_STORE

    raise ValueError(f"Unknown SUPPLYTRACK_LEDGER_STORE={mode!r}. Expected sql or memory.")


def reset_memory_store() -> None:
    global _MEMORY_STORE
    _MEMORY_STORE = None


def get_ledger_engine() -> LedgerEngine:
    return LedgerEngine(get_ledger_store())
