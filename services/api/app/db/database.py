from __future__ import annotations

import logging
import os

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None
_SESSIONMAKER: sessionmaker | None = None

# Execution option set on connections opened by write units.
WRITE_UNIT_OPTION = "supplytrack_write"


def _default_db_url() -> str:
    # Local-only default. Production must provide DATABASE_URL explicitly.
    return "sqlite+pysqlite:///.local/supplytrack.db"


def _ensure_sqlite_dir(url: str) -> None:
    database = make_url(url).database
    if not database or database == ":memory:":
        return
    directory = os.path.dirname(database)
    if directory:
        os.makedirs(directory, exist_ok=True)


def _use_sqlite_transactions(engine: Engine) -> None:
    """Emit BEGIN ourselves so writers and readers lock differently.

    pysqlite's own transaction handling defers BEGIN and upgrades read locks
    lazily, which lets two writers deadlock on the upgrade. Write units begin
    with BEGIN IMMEDIATE so a second writer waits on the busy timeout. Read
    units use a plain BEGIN; under WAL they read a snapshot and never wait on
    an open writer.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        del connection_record
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn) -> None:
        if conn.get_execution_options().get(WRITE_UNIT_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def get_engine() -> Engine:
    """Return a cached SQLAlchemy engine.

    We cache based on DATABASE_URL so tests can override DATABASE_URL before first use.
    """

    global _ENGINE, _ENGINE_URL, _SESSIONMAKER

    url = os.getenv("DATABASE_URL", _default_db_url())

    if _ENGINE is not None and _ENGINE_URL == url:
        return _ENGINE

    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        _ensure_sqlite_dir(url)
    connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}
    _ENGINE = create_engine(url, future=True, connect_args=connect_args)
    if is_sqlite:
        _use_sqlite_transactions(_ENGINE)
    _ENGINE_URL = url
    _SESSIONMAKER = sessionmaker(bind=_ENGINE, class_=Session, autocommit=False, autoflush=False)
    logger.info("Database engine created for %s", _ENGINE.url.render_as_string(hide_password=True))
    return _ENGINE


def db_session() -> Session:
    get_engine()  # ensure _SESSIONMAKER is created
    assert _SESSIONMAKER is not None
    return _SESSIONMAKER()
