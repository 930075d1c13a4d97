from __future__ import annotations

import logging
import os

from services.api.app.db.database import get_engine
from services.api.app.db.models import Base

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "y"}


def init_db() -> None:
    """Create the ledger tables unless auto-create is off or the SQL store is unused."""

    if os.getenv("SUPPLYTRACK_DB_AUTO_CREATE", "true").strip().lower() not in _TRUTHY:
        logger.info("Skipping table creation (SUPPLYTRACK_DB_AUTO_CREATE is off)")
        return

    if os.getenv("SUPPLYTRACK_LEDGER_STORE", "sql").strip().lower() != "sql":
        return

    Base.metadata.create_all(bind=get_engine())
    logger.info("Ledger tables ready: %s", ", ".join(sorted(Base.metadata.tables)))
