from __future__ import annotations

import os
import secrets

from fastapi import Header, HTTPException


def configured_tokens() -> list[str]:
    raw = os.getenv("ESTIMATE_API_TOKENS", "")
    return [t.strip() for t in raw.split(",") if t.strip()]


def require_bearer(authorization: str | None = Header(default=None)) -> None:
    """Gate a route behind a static bearer token.

    With no tokens configured the gate is open. That is only meant for local
    development; deployments must set ESTIMATE_API_TOKENS.
    """

    tokens = configured_tokens()
    if not tokens:
        return

    scheme, _, credential = (authorization or "").partition(" ")
    credential = credential.strip()
    if scheme.lower() == "bearer" and credential:
        given = credential.encode("utf-8")
        if any(secrets.compare_digest(given, token.encode("utf-8")) for token in tokens):
            return

    raise HTTPException(
        status_code=401,
        detail="Missing or invalid bearer token",
        headers={"WWW-Authenticate": "Bearer"},
    )
