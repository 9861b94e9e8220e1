from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime
from uuid import uuid4

from packages.shared.schemas.events import EventTypeV1
from services.api.app.db.models import utcnow
from services.api.app.services.pricing import QuoteBreakdown
from services.api.app.services.search import PageResult, SearchFilter, newest_first, total_pages
from services.api.app.services.store_base import PersistedQuote, QuoteEvent


class InMemoryQuoteStore:
    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._quotes: dict[str, PersistedQuote] = {}
        self._by_key: dict[str, str] = {}
        self._events: list[QuoteEvent] = []

    def create_if_absent(
        self,
        idempotency_key: str,
        breakdown: QuoteBreakdown,
        *,
        request_fingerprint: str,
    ) -> tuple[PersistedQuote, bool]:
        with self._lock:
            existing_id = self._by_key.get(idempotency_key)
            if existing_id is not None:
                return self._quotes[existing_id], False

            quote = PersistedQuote(
                id=uuid4().hex,
                idempotency_key=idempotency_key,
                request_fingerprint=request_fingerprint,
                created_at=self._clock(),
                breakdown=breakdown,
            )
            self._quotes[quote.id] = quote
            self._by_key[idempotency_key] = quote.id
            self._append_event(
                quote.id,
                EventTypeV1.QUOTE_CREATED.value,
                {"idempotency_key": idempotency_key, "final_total": breakdown.final_total},
            )
            return quote, True

    def get(self, quote_id: str) -> PersistedQuote | None:
        with self._lock:
            return self._quotes.get(quote_id)

    def get_by_key(self, idempotency_key: str) -> PersistedQuote | None:
        with self._lock:
            quote_id = self._by_key.get(idempotency_key)
            return self._quotes.get(quote_id) if quote_id else None

    def query(
        self, search_filter: SearchFilter, page: int, size: int
    ) -> PageResult[PersistedQuote]:
        with self._lock:
            matching = [q for q in self._quotes.values() if search_filter.matches(q)]

        matching.sort(key=newest_first, reverse=True)
        start = page * size
        return PageResult(
            content=matching[start : start + size],
            page=page,
            size=size,
            total_elements=len(matching),
            total_pages=total_pages(len(matching), size),
        )

    def record_event(self, entity_id: str, event_type: str, payload: dict) -> None:
        with self._lock:
            self._append_event(entity_id, event_type, payload)

    def list_events(self, entity_id: str) -> list[QuoteEvent]:
        with self._lock:
            return [e for e in self._events if e.entity_id == entity_id]

    def count(self) -> int:
        with self._lock:
            return len(self._quotes)

    def _append_event(self, entity_id: str, event_type: str, payload: dict) -> None:
        self._events.append(
            QuoteEvent(
                id=uuid4().hex,
                entity_id=entity_id,
                event_type=event_type,
                created_at=self._clock(),
                payload=payload,
            )
        )
