from __future__ import annotations

import os

from services.api.app.services.export_base import QuoteExporter
from services.api.app.services.export_mock import MockQuoteExporter


def get_exporter() -> QuoteExporter:
    """Select the export collaborator based on env vars.

    Only the deterministic mock renderer ships with the service.
    """

    mode = os.getenv("ESTIMATE_EXPORTER", "mock").strip().lower()

    if mode == "mock":
        return MockQuoteExporter()

    raise ValueError(f"Unknown ESTIMATE_EXPORTER={mode!r}. Expected mock.")


def export_max_rows() -> int:
    raw = os.getenv("ESTIMATE_EXPORT_MAX_ROWS", "1000").strip()
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(
            f"Invalid ESTIMATE_EXPORT_MAX_ROWS={raw!r}. Expected an integer."
        ) from e
    if value < 1:
        raise ValueError(f"Invalid ESTIMATE_EXPORT_MAX_ROWS={raw!r}. Must be >= 1.")
    return value
