from __future__ import annotations

import threading
from decimal import Decimal

import pytest
from services.api.app.services.catalog_memory import InMemoryCatalog
from services.api.app.services.errors import (
    ConflictError,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
)
from services.api.app.services.pricing import QuoteRequest
from services.api.app.services.store import InMemoryQuoteStore
from services.api.app.services.submission import (
    InFlightRegistry,
    KeyState,
    SubmissionCoordinator,
    submit_wait_seconds,
    validate_idempotency_key,
)

CHOCO = QuoteRequest(
    base_item_id="cake-choco",
    quantity=2,
    option_ids=("opt-a", "opt-b"),
    tax_rate=Decimal("0.10"),
)


def _coordinator(catalog, store, **kwargs) -> SubmissionCoordinator:
    kwargs.setdefault("registry", InFlightRegistry())
    kwargs.setdefault("wait_timeout_s", 1.0)
    return SubmissionCoordinator(catalog, store, **kwargs)


def test_repeated_submissions_store_one_quote(catalog: InMemoryCatalog) -> None:
    store = InMemoryQuoteStore()
    coordinator = _coordinator(catalog, store)

    first = coordinator.submit(CHOCO, "key-1")
    again = [coordinator.submit(CHOCO, "key-1") for _ in range(5)]

    assert first.replayed is False
    assert first.quote.breakdown.final_total == 85800
    assert all(r.replayed for r in again)
    assert {r.quote.id for r in again} == {first.quote.id}
    assert store.count() == 1
    assert coordinator.state_of("key-1") is KeyState.COMPLETED


def test_divergent_payload_returns_the_first_quote(catalog: InMemoryCatalog) -> None:
    store = InMemoryQuoteStore()
    coordinator = _coordinator(catalog, store)

    first = coordinator.submit(CHOCO, "key-1")
    other = QuoteRequest(base_item_id="cake-berry", quantity=1)
    second = coordinator.submit(other, "key-1")

    assert second.replayed is True
    assert second.quote == first.quote
    assert store.count() == 1

    events = store.list_events(first.quote.id)
    assert [e.event_type for e in events] == ["QUOTE_CREATED", "QUOTE_REPLAYED"]
    assert events[1].payload["payload_matches"] is False


def test_distinct_keys_create_distinct_quotes(catalog: InMemoryCatalog) -> None:
    store = InMemoryQuoteStore()
    coordinator = _coordinator(catalog, store)

    a = coordinator.submit(CHOCO, "key-a")
    b = coordinator.submit(CHOCO, "key-b")

    assert a.quote.id != b.quote.id
    assert store.count() == 2


def test_failed_attempt_leaves_key_unseen(catalog: InMemoryCatalog) -> None:
    store = InMemoryQuoteStore()
    coordinator = _coordinator(catalog, store)
    bad = QuoteRequest(base_item_id="cake-choco", quantity=1, option_ids=("opt-missing",))

    with pytest.raises(NotFoundError):
        coordinator.submit(bad, "key-1")

    assert coordinator.state_of("key-1") is KeyState.UNSEEN
    assert store.count() == 0

    retry = coordinator.submit(CHOCO, "key-1")
    assert retry.replayed is False
    assert store.count() == 1


class _FailingStore(InMemoryQuoteStore):
    def __init__(self) -> None:
        super().__init__()
        self.failures = 1

    def create_if_absent(self, idempotency_key, breakdown, *, request_fingerprint):
        if self.failures:
            self.failures -= 1
            raise PersistenceFailure("create_if_absent")
        return super().create_if_absent(
            idempotency_key, breakdown, request_fingerprint=request_fingerprint
        )


def test_storage_failure_propagates_and_retry_succeeds(catalog: InMemoryCatalog) -> None:
    store = _FailingStore()
    coordinator = _coordinator(catalog, store)

    with pytest.raises(PersistenceFailure):
        coordinator.submit(CHOCO, "key-1")
    assert coordinator.state_of("key-1") is KeyState.UNSEEN

    assert coordinator.submit(CHOCO, "key-1").replayed is False
    assert store.count() == 1


class _SlowStore(InMemoryQuoteStore):
    def __init__(self, gate: threading.Event) -> None:
        super().__init__()
        self.entered = threading.Event()
        self._gate = gate

    def create_if_absent(self, idempotency_key, breakdown, *, request_fingerprint):
        self.entered.set()
        self._gate.wait(5)
        return super().create_if_absent(
            idempotency_key, breakdown, request_fingerprint=request_fingerprint
        )


def test_concurrent_same_key_waits_for_the_first_attempt(catalog: InMemoryCatalog) -> None:
    gate = threading.Event()
    store = _SlowStore(gate)
    coordinator = _coordinator(catalog, store, wait_timeout_s=5.0)
    results = []

    owner = threading.Thread(target=lambda: results.append(coordinator.submit(CHOCO, "key-1")))
    owner.start()
    assert store.entered.wait(5)
    assert coordinator.state_of("key-1") is KeyState.IN_PROGRESS

    waiter = threading.Thread(target=lambda: results.append(coordinator.submit(CHOCO, "key-1")))
    waiter.start()
    gate.set()
    owner.join(5)
    waiter.join(5)

    assert len(results) == 2
    assert {r.quote.id for r in results} == {results[0].quote.id}
    assert sorted(r.replayed for r in results) == [False, True]
    assert store.count() == 1


def test_in_progress_key_reports_conflict_after_timeout(catalog: InMemoryCatalog) -> None:
    registry = InFlightRegistry()
    store = InMemoryQuoteStore()
    coordinator = _coordinator(catalog, store, registry=registry, wait_timeout_s=0.01)

    owner, _ = registry.claim("key-1")
    assert owner is True

    with pytest.raises(ConflictError):
        coordinator.submit(CHOCO, "key-1")
    assert store.count() == 0

    registry.release("key-1")
    assert coordinator.submit(CHOCO, "key-1").replayed is False


@pytest.mark.parametrize("key", [None, "", "   ", "k" * 256])
def test_invalid_idempotency_key_is_rejected(key) -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_idempotency_key(key)

    assert exc_info.value.field == "Idempotency-Key"


def test_submit_wait_seconds_reads_env(monkeypatch) -> None:
    monkeypatch.setenv("ESTIMATE_SUBMIT_WAIT_SECONDS", "2.5")
    assert submit_wait_seconds() == 2.5

    monkeypatch.setenv("ESTIMATE_SUBMIT_WAIT_SECONDS", "soon")
    with pytest.raises(ValueError, match="ESTIMATE_SUBMIT_WAIT_SECONDS"):
        submit_wait_seconds()

    monkeypatch.setenv("ESTIMATE_SUBMIT_WAIT_SECONDS", "-1")
    with pytest.raises(ValueError, match="Must be >= 0"):
        submit_wait_seconds()
