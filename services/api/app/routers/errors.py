from __future__ import annotations

from fastapi import HTTPException
from services.api.app.services.errors import (
    ConflictError,
    MismatchError,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
)


def raise_http_error(e: Exception) -> None:
    if isinstance(e, ValidationError):
        raise HTTPException(status_code=400, detail=str(e)) from e

    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=str(e)) from e

    if isinstance(e, MismatchError):
        raise HTTPException(status_code=422, detail=str(e)) from e

    if isinstance(e, ConflictError):
        raise HTTPException(status_code=409, detail=str(e), headers={"Retry-After": "1"}) from e

    if isinstance(e, PersistenceFailure):
        raise HTTPException(status_code=503, detail="Quote storage unavailable") from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e
