from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from services.api.app.services.pricing import QuoteBreakdown
from services.api.app.services.search import PageResult, SearchFilter


@dataclass(frozen=True, slots=True)
class PersistedQuote:
    id: str
    idempotency_key: str
    request_fingerprint: str
    created_at: datetime
    breakdown: QuoteBreakdown


@dataclass(frozen=True, slots=True)
class QuoteEvent:
    id: str
    entity_id: str
    event_type: str
    created_at: datetime
    payload: dict = field(default_factory=dict)


class QuoteRepository(Protocol):
    def create_if_absent(
        self,
        idempotency_key: str,
        breakdown: QuoteBreakdown,
        *,
        request_fingerprint: str,
    ) -> tuple[PersistedQuote, bool]:
        """Atomically insert a quote unless one exists for the key.

        Returns (quote, created). When a quote already exists for the key it is
        returned unchanged with created=False, and a QUOTE_CREATED event is
        recorded only for the insert that wins.
        """
        ...

    def get(self, quote_id: str) -> PersistedQuote | None: ...

    def get_by_key(self, idempotency_key: str) -> PersistedQuote | None: ...

    def query(
        self, search_filter: SearchFilter, page: int, size: int
    ) -> PageResult[PersistedQuote]: ...

    def record_event(self, entity_id: str, event_type: str, payload: dict) -> None: ...

    def list_events(self, entity_id: str) -> list[QuoteEvent]: ...
