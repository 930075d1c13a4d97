from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from services.api.app.db.database import WRITE_UNIT_OPTION, db_session
from sqlalchemy.orm import Session


@contextmanager
def unit_of_work(*, write: bool = False) -> Iterator[Session]:
    """Scope one database transaction.

    Commits when the block exits normally, rolls back on any exception and
    always closes the session. ``write=True`` marks the unit as a writer so
    SQLite takes the write lock up front; read units never wait on writers.
    """

    db = db_session()
    try:
        if write:
            db.connection(execution_options={WRITE_UNIT_OPTION: True})
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise
    finally:
        db.close()
