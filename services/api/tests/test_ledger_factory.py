import pytest
from services.api.app.services.ledger_factory import (
    get_ledger_engine,
    get_ledger_store,
    reset_memory_store,
)


def test_get_ledger_store_defaults_to_sql(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SUPPLYTRACK_LEDGER_STORE", raising=False)
    store = get_ledger_store()
    assert store.kind == "sql"


def test_memory_store_is_shared_between_calls(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPPLYTRACK_LEDGER_STORE", "memory")
    reset_memory_store()

    assert get_ledger_store() is get_ledger_store()
    assert get_ledger_engine().store is get_ledger_store()

    reset_memory_store()


def test_get_ledger_store_rejects_unknown(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPPLYTRACK_LEDGER_STORE", "nope")
    with pytest.raises(ValueError, match="Unknown SUPPLYTRACK_LEDGER_STORE"):
        get_ledger_store()
