from __future__ import annotations

import os

from loguru import logger
from services.api.app.db.database import get_engine
from services.api.app.db.models import Base


def init_db() -> None:
    auto_create = os.getenv("ESTIMATE_DB_AUTO_CREATE", "true").strip().lower()
    if auto_create not in {"1", "true", "yes", "y"}:
        logger.info("ESTIMATE_DB_AUTO_CREATE disabled, skipping table creation")
        return

    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured on {}", engine.url.render_as_string(hide_password=True))
