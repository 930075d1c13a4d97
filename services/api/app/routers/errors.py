from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException
from services.api.app.services.ledger_base import (
    ActorNotFoundError,
    ProductNotFoundError,
    StoreFailureError,
    UsernameTakenError,
)

logger = logging.getLogger(__name__)


def raise_ledger_http_error(e: Exception) -> NoReturn:
    if isinstance(e, ProductNotFoundError):
        raise HTTPException(status_code=404, detail=str(e)) from e

    if isinstance(e, ActorNotFoundError):
        raise HTTPException(status_code=400, detail=str(e)) from e

    if isinstance(e, UsernameTakenError):
        raise HTTPException(status_code=409, detail=str(e)) from e

    if isinstance(e, StoreFailureError):
        raise HTTPException(status_code=503, detail="Ledger store unavailable") from e

    logger.exception("Unhandled ledger error")
    raise HTTPException(status_code=500, detail="Internal Server Error") from e
