"""Exactly-once quote submission keyed by a caller-supplied idempotency key.

Per key the state moves UNSEEN -> IN_PROGRESS -> COMPLETED:

- UNSEEN: no stored quote and nobody working on the key.
- IN_PROGRESS: a submission in this process has claimed the key and is pricing
  or storing the quote. Same-key callers wait for it, then either get its result
  or a ConflictError telling them to retry.
- COMPLETED: a quote is stored under the key. Every later submission returns it
  as-is, even when the payload differs.

A failed attempt (catalog, validation or storage error) releases the claim
without storing anything, so the key falls back to UNSEEN and a corrected retry
with the same key can still succeed. Across processes, the repository's atomic
create_if_absent is what keeps the key unique.
"""

from __future__ import annotations

import hashlib
import json
import os
import threading
from dataclasses import dataclass
from enum import Enum

from loguru import logger
from packages.shared.schemas.events import EventTypeV1
from services.api.app.services.catalog_base import Catalog, resolve_prices
from services.api.app.services.errors import ConflictError, QuoteError, ValidationError
from services.api.app.services.pricing import QuoteRequest, compute
from services.api.app.services.store_base import PersistedQuote, QuoteRepository

MAX_KEY_LENGTH = 255


class KeyState(str, Enum):
    UNSEEN = "UNSEEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    quote: PersistedQuote
    replayed: bool


class InFlightRegistry:
    """Process-wide set of keys currently being worked on."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: dict[str, threading.Event] = {}

    def claim(self, key: str) -> tuple[bool, threading.Event]:
        with self._lock:
            event = self._events.get(key)
            if event is not None:
                return False, event

            event = threading.Event()
            self._events[key] = event
            return True, event

    def release(self, key: str) -> None:
        with self._lock:
            event = self._events.pop(key, None)
        if event is not None:
            event.set()

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._events


inflight = InFlightRegistry()


def submit_wait_seconds() -> float:
    raw = os.getenv("ESTIMATE_SUBMIT_WAIT_SECONDS", "5").strip()
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(
            f"Invalid ESTIMATE_SUBMIT_WAIT_SECONDS={raw!r}. Expected seconds."
        ) from e
    if value < 0:
        raise ValueError(f"Invalid ESTIMATE_SUBMIT_WAIT_SECONDS={raw!r}. Must be >= 0.")
    return value


def validate_idempotency_key(key: str | None) -> str:
    if key is None or not key.strip():
        raise ValidationError("Idempotency-Key", "header is required and must not be empty")
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationError(
            "Idempotency-Key", f"must be at most {MAX_KEY_LENGTH} characters"
        )
    return key


def request_fingerprint(request: QuoteRequest) -> str:
    canonical = {
        "base_item_id": request.base_item_id,
        "quantity": request.quantity,
        "option_ids": list(request.unique_option_ids()),
        "discount_rate": str(request.discount_rate),
        "tax_rate": str(request.tax_rate),
    }
    raw = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class SubmissionCoordinator:
    def __init__(
        self,
        catalog: Catalog,
        repository: QuoteRepository,
        *,
        registry: InFlightRegistry | None = None,
        wait_timeout_s: float | None = None,
    ) -> None:
        self._catalog = catalog
        self._repository = repository
        self._registry = registry if registry is not None else inflight
        self._wait_timeout_s = (
            wait_timeout_s if wait_timeout_s is not None else submit_wait_seconds()
        )

    def state_of(self, idempotency_key: str) -> KeyState:
        if self._repository.get_by_key(idempotency_key) is not None:
            return KeyState.COMPLETED
        if self._registry.is_in_flight(idempotency_key):
            return KeyState.IN_PROGRESS
        return KeyState.UNSEEN

    def submit(self, request: QuoteRequest, idempotency_key: str | None) -> SubmissionResult:
        key = validate_idempotency_key(idempotency_key)
        fingerprint = request_fingerprint(request)

        existing = self._repository.get_by_key(key)
        if existing is not None:
            return self._replay(existing, fingerprint)

        owner, done = self._registry.claim(key)
        if not owner:
            return self._await_in_flight(key, done, fingerprint)

        try:
            # A racing attempt may have completed between the lookup and the claim.
            existing = self._repository.get_by_key(key)
            if existing is not None:
                return self._replay(existing, fingerprint)

            breakdown = compute(request, resolve_prices(self._catalog, request))
            quote, created = self._repository.create_if_absent(
                key, breakdown, request_fingerprint=fingerprint
            )
        except QuoteError as e:
            logger.warning("Submission aborted key={} error={}", key, e)
            raise
        finally:
            self._registry.release(key)

        if not created:
            return self._replay(quote, fingerprint)

        logger.info(
            "Quote created id={} key={} final_total={}",
            quote.id,
            key,
            quote.breakdown.final_total,
        )
        return SubmissionResult(quote=quote, replayed=False)

    def _await_in_flight(
        self, key: str, done: threading.Event, fingerprint: str
    ) -> SubmissionResult:
        logger.info("Submission key={} already in progress, waiting", key)
        done.wait(self._wait_timeout_s)

        existing = self._repository.get_by_key(key)
        if existing is not None:
            return self._replay(existing, fingerprint)

        logger.warning("Submission key={} still not completed, reporting conflict", key)
        raise ConflictError(key)

    def _replay(self, quote: PersistedQuote, fingerprint: str) -> SubmissionResult:
        payload_matches = quote.request_fingerprint == fingerprint
        if not payload_matches:
            logger.warning(
                "Idempotency key={} reused with a different payload; returning quote {}",
                quote.idempotency_key,
                quote.id,
            )
        else:
            logger.info("Replaying quote id={} key={}", quote.id, quote.idempotency_key)

        self._repository.record_event(
            quote.id,
            EventTypeV1.QUOTE_REPLAYED.value,
            {"idempotency_key": quote.idempotency_key, "payload_matches": payload_matches},
        )
        return SubmissionResult(quote=quote, replayed=True)
