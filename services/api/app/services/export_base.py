from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from services.api.app.services.store_base import PersistedQuote


class QuoteExporter(Protocol):
    """Renders persisted quotes into opaque documents.

    Callers treat the returned bytes as a black box and only pass them through
    with the declared media type.
    """

    name: str
    document_media_type: str
    table_media_type: str

    def render_document(self, quote: PersistedQuote) -> bytes: ...

    def render_table(self, quotes: Sequence[PersistedQuote]) -> bytes: ...
