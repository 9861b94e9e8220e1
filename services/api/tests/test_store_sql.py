from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from services.api.app.services.pricing import QuoteBreakdown
from services.api.app.services.store_sql import SqlQuoteStore


def _breakdown(final_total: int) -> QuoteBreakdown:
    return QuoteBreakdown(
        base_item_id="cake-choco",
        item_name="Chocolate Cake",
        base_unit_price=final_total,
        quantity=1,
        options=(),
        items_total=final_total,
        options_total=0,
        subtotal=final_total,
        discount_rate=Decimal("0"),
        tax_rate=Decimal("0"),
        final_total=final_total,
    )


class _LateStore(SqlQuoteStore):
    """Reports the key as unseen once, like a writer that lost the race after its lookup."""

    def __init__(self, db) -> None:
        super().__init__(db)
        self._stale_lookups = 1

    def get_by_key(self, idempotency_key: str):
        if self._stale_lookups:
            self._stale_lookups -= 1
            return None
        return super().get_by_key(idempotency_key)


@pytest.fixture()
def sessions(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "store_test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("ESTIMATE_DB_AUTO_CREATE", "true")

    from services.api.app.db.database import db_session
    from services.api.app.db.init_db import init_db

    init_db()

    first, second = db_session(), db_session()
    try:
        yield first, second
    finally:
        first.close()
        second.close()


def test_losing_writer_gets_the_winning_quote(sessions) -> None:
    first_db, second_db = sessions
    winner_store = SqlQuoteStore(first_db)
    late_store = _LateStore(second_db)

    winner, created = winner_store.create_if_absent(
        "order-1", _breakdown(85800), request_fingerprint="a"
    )
    assert created is True

    loser, created = late_store.create_if_absent(
        "order-1", _breakdown(99999), request_fingerprint="b"
    )

    assert created is False
    assert loser.id == winner.id
    assert loser.breakdown.final_total == 85800
    assert loser.request_fingerprint == "a"

    events = winner_store.list_events(winner.id)
    assert [e.event_type for e in events] == ["QUOTE_CREATED"]


def test_second_lookup_short_circuits_without_insert(sessions) -> None:
    first_db, second_db = sessions

    quote, _ = SqlQuoteStore(first_db).create_if_absent(
        "order-2", _breakdown(100), request_fingerprint="a"
    )
    again, created = SqlQuoteStore(second_db).create_if_absent(
        "order-2", _breakdown(200), request_fingerprint="b"
    )

    assert created is False
    assert again.id == quote.id
    assert again.breakdown.final_total == 100
