"""loguru setup and per-request log context."""

from __future__ import annotations

import os
import sys
import time
from collections.abc import Awaitable, Callable
from uuid import uuid4

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<blue>[{extra[request_id]}]</blue> - "
    "<level>{message}</level>"
)


def _with_request_id(record: dict) -> bool:
    record["extra"].setdefault("request_id", "-")
    return True


def configure_logging() -> None:
    level = os.getenv("ESTIMATE_LOG_LEVEL", "INFO").strip().upper()

    logger.remove()
    logger.add(sys.stderr, format=_FORMAT, level=level, filter=_with_request_id)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex[:8]
        start = time.perf_counter()

        with logger.contextualize(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception:
                logger.exception("{} {} failed", request.method, request.url.path)
                raise

            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.info(
                "{} {} -> {} in {}ms",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )

        response.headers["X-Request-ID"] = request_id
        return response
