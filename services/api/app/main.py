"""SupplyTrack API service entrypoint."""

import logging
import os
import sys

from fastapi import FastAPI

from services.api.app.db.init_db import init_db
from services.api.app.routers.product import router as product_router
from services.api.app.routers.user import router as user_router

logging.basicConfig(
    level=os.getenv("SUPPLYTRACK_LOG_LEVEL", "INFO").upper(),
    format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", "module": "%(name)s"}',
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

app = FastAPI(title="SupplyTrack API")

app.include_router(user_router)
app.include_router(product_router)


@app.on_event("startup")
def _startup() -> None:
    logger.info("Starting SupplyTrack API...")
    init_db()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
