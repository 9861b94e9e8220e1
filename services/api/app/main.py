"""Estimate API service entrypoint."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger
from services.api.app.db.init_db import init_db
from services.api.app.logging_config import RequestLoggingMiddleware, configure_logging
from services.api.app.routers.catalog import router as catalog_router
from services.api.app.routers.quotes import router as quotes_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    init_db()
    logger.info("Estimate API started")
    yield
    logger.info("Estimate API stopped")


app = FastAPI(title="Estimate API", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(catalog_router)
app.include_router(quotes_router)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
