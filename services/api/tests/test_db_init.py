from pathlib import Path

from sqlalchemy import inspect


def test_init_db_creates_ledger_tables(tmp_path: Path, monkeypatch) -> None:
    db_path = tmp_path / "supplytrack_test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("SUPPLYTRACK_DB_AUTO_CREATE", "true")
    monkeypatch.delenv("SUPPLYTRACK_LEDGER_STORE", raising=False)

    from services.api.app.db.database import get_engine
    from services.api.app.db.init_db import init_db

    init_db()

    inspector = inspect(get_engine())
    tables = set(inspector.get_table_names())

    assert {"users", "products", "product_events"} <= tables

    constraints = inspector.get_unique_constraints("product_events")
    assert any(c["column_names"] == ["product_id", "sequence"] for c in constraints)


def test_init_db_respects_auto_create_flag(tmp_path: Path, monkeypatch) -> None:
    db_path = tmp_path / "supplytrack_off.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("SUPPLYTRACK_DB_AUTO_CREATE", "false")

    from services.api.app.db.database import get_engine
    from services.api.app.db.init_db import init_db

    init_db()

    assert inspect(get_engine()).get_table_names() == []


def test_default_sqlite_directory_is_created(tmp_path: Path, monkeypatch) -> None:
    db_path = tmp_path / "nested" / "dir" / "ledger.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("SUPPLYTRACK_DB_AUTO_CREATE", "true")
    monkeypatch.delenv("SUPPLYTRACK_LEDGER_STORE", raising=False)

    from services.api.app.db.init_db import init_db

    init_db()

    assert db_path.exists()
