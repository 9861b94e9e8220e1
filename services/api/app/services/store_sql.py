from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from services.api.app.db.models import EventLog, Quote, QuoteOptionLine, utcnow
from services.api.app.services.errors import PersistenceFailure
from services.api.app.services.pricing import OptionLine, QuoteBreakdown
from services.api.app.services.search import PageResult, SearchFilter, search_text, total_pages
from services.api.app.services.store_base import PersistedQuote, QuoteEvent
from sqlalchemy import Select, func, select, true
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased


class SqlQuoteStore:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self._db = db
        self._clock = clock

    def create_if_absent(
        self,
        idempotency_key: str,
        breakdown: QuoteBreakdown,
        *,
        request_fingerprint: str,
    ) -> tuple[PersistedQuote, bool]:
        existing = self.get_by_key(idempotency_key)
        if existing is not None:
            return existing, False

        quote_id = uuid4().hex
        row = Quote(
            id=quote_id,
            idempotency_key=idempotency_key,
            request_fingerprint=request_fingerprint,
            base_item_id=breakdown.base_item_id,
            item_name=breakdown.item_name,
            base_unit_price=breakdown.base_unit_price,
            quantity=breakdown.quantity,
            items_total=breakdown.items_total,
            options_total=breakdown.options_total,
            subtotal=breakdown.subtotal,
            option_count=len(breakdown.options),
            discount_rate=str(breakdown.discount_rate),
            tax_rate=str(breakdown.tax_rate),
            final_total=breakdown.final_total,
            search_text=search_text(breakdown),
            created_at=self._clock(),
            option_lines=[
                QuoteOptionLine(
                    position=i,
                    option_id=line.option_id,
                    name=line.name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    line_total=line.line_total,
                )
                for i, line in enumerate(breakdown.options)
            ],
        )
        self._db.add(row)
        # Same transaction as the quote row: the audit trail never shows a quote
        # that was not stored.
        self._db.add(
            EventLog(
                id=uuid4().hex,
                entity_type=EntityTypeV1.QUOTE.value,
                entity_id=quote_id,
                event_type=EventTypeV1.QUOTE_CREATED.value,
                event_payload_json={
                    "idempotency_key": idempotency_key,
                    "final_total": breakdown.final_total,
                },
            )
        )

        try:
            self._db.commit()
        except IntegrityError as e:
            # Another writer inserted the same key between our read and commit.
            self._db.rollback()
            winner = self.get_by_key(idempotency_key)
            if winner is None:
                raise PersistenceFailure("create_if_absent", e) from e
            return winner, False
        except SQLAlchemyError as e:
            self._db.rollback()
            raise PersistenceFailure("create_if_absent", e) from e

        return _to_domain(row), True

    def get(self, quote_id: str) -> PersistedQuote | None:
        try:
            row = self._db.get(Quote, quote_id)
        except SQLAlchemyError as e:
            raise PersistenceFailure("get", e) from e
        return _to_domain(row) if row is not None else None

    def get_by_key(self, idempotency_key: str) -> PersistedQuote | None:
        try:
            row = self._db.scalars(
                select(Quote).where(Quote.idempotency_key == idempotency_key)
            ).first()
        except SQLAlchemyError as e:
            raise PersistenceFailure("get_by_key", e) from e
        return _to_domain(row) if row is not None else None

    def query(
        self, search_filter: SearchFilter, page: int, size: int
    ) -> PageResult[PersistedQuote]:
        # One statement: the single-row count outer-joins the page, so a page
        # past the end still reports the total from the same read.
        total_sq = _apply_filter(
            select(func.count().label("total")).select_from(Quote), search_filter
        ).subquery()
        page_sq = (
            _apply_filter(select(Quote), search_filter)
            .order_by(Quote.created_at.desc(), Quote.id.desc())
            .offset(page * size)
            .limit(size)
            .subquery()
        )
        page_quote = aliased(Quote, page_sq)
        stmt = (
            select(total_sq.c.total, page_quote)
            .select_from(total_sq)
            .outerjoin(page_sq, true())
            .order_by(page_sq.c.created_at.desc(), page_sq.c.id.desc())
        )

        try:
            rows = self._db.execute(stmt).all()
        except SQLAlchemyError as e:
            raise PersistenceFailure("query", e) from e

        total = int(rows[0].total) if rows else 0
        return PageResult(
            content=[_to_domain(row) for _, row in rows if row is not None],
            page=page,
            size=size,
            total_elements=total,
            total_pages=total_pages(total, size),
        )

    def record_event(self, entity_id: str, event_type: str, payload: dict) -> None:
        self._db.add(
            EventLog(
                id=uuid4().hex,
                entity_type=EntityTypeV1.QUOTE.value,
                entity_id=entity_id,
                event_type=event_type,
                event_payload_json=payload,
            )
        )
        try:
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise PersistenceFailure("record_event", e) from e

    def list_events(self, entity_id: str) -> list[QuoteEvent]:
        try:
            rows = self._db.scalars(
                select(EventLog)
                .where(EventLog.entity_id == entity_id)
                .order_by(EventLog.created_at.asc(), EventLog.id.asc())
            ).all()
        except SQLAlchemyError as e:
            raise PersistenceFailure("list_events", e) from e

        return [
            QuoteEvent(
                id=row.id,
                entity_id=row.entity_id,
                event_type=row.event_type,
                created_at=row.created_at,
                payload=row.event_payload_json or {},
            )
            for row in rows
        ]


def _apply_filter(stmt: Select[Any], f: SearchFilter) -> Select[Any]:
    if f.text:
        pattern = f"%{_escape_like(f.text.casefold())}%"
        stmt = stmt.where(Quote.search_text.like(pattern, escape="\\"))

    if f.min_total is not None:
        stmt = stmt.where(Quote.final_total >= f.min_total)
    if f.max_total is not None:
        stmt = stmt.where(Quote.final_total <= f.max_total)

    start, end = f.created_bounds()
    if start is not None:
        stmt = stmt.where(Quote.created_at >= start)
    if end is not None:
        stmt = stmt.where(Quote.created_at < end)

    if f.has_options is True:
        stmt = stmt.where(Quote.option_count > 0)
    elif f.has_options is False:
        stmt = stmt.where(Quote.option_count == 0)

    return stmt


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _to_domain(row: Quote) -> PersistedQuote:
    return PersistedQuote(
        id=row.id,
        idempotency_key=row.idempotency_key,
        request_fingerprint=row.request_fingerprint,
        created_at=row.created_at,
        breakdown=QuoteBreakdown(
            base_item_id=row.base_item_id,
            item_name=row.item_name,
            base_unit_price=row.base_unit_price,
            quantity=row.quantity,
            options=tuple(
                OptionLine(
                    option_id=line.option_id,
                    name=line.name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    line_total=line.line_total,
                )
                for line in row.option_lines
            ),
            items_total=row.items_total,
            options_total=row.options_total,
            subtotal=row.subtotal,
            discount_rate=Decimal(row.discount_rate),
            tax_rate=Decimal(row.tax_rate),
            final_total=row.final_total,
        ),
    )
