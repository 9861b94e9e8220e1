from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response
from packages.shared.schemas.events import EntityTypeV1, EventTypeV1, EventV1
from packages.shared.schemas.quote_v1 import (
    OptionLineV1,
    PersistedQuoteV1,
    QuoteBreakdownV1,
    QuotePageV1,
    QuoteRequestV1,
)
from services.api.app.auth import require_bearer
from services.api.app.db.deps import get_catalog, get_quote_store
from services.api.app.routers.errors import raise_http_error
from services.api.app.services.catalog_base import Catalog, resolve_prices
from services.api.app.services.errors import NotFoundError, QuoteError
from services.api.app.services.export_factory import export_max_rows, get_exporter
from services.api.app.services.pricing import (
    QuoteBreakdown,
    QuoteRequest,
    compute,
    display_amounts,
)
from services.api.app.services.search import SearchFilter, collect, search
from services.api.app.services.store_base import PersistedQuote, QuoteRepository
from services.api.app.services.submission import SubmissionCoordinator

router = APIRouter(dependencies=[Depends(require_bearer)])


def search_filter_params(
    text: str | None = Query(default=None),
    min_total: int | None = Query(default=None),
    max_total: int | None = Query(default=None),
    created_from: date | None = Query(default=None),
    created_to: date | None = Query(default=None),
    has_options: bool | None = Query(default=None),
) -> SearchFilter:
    return SearchFilter(
        text=text,
        min_total=min_total,
        max_total=max_total,
        created_from=created_from,
        created_to=created_to,
        has_options=has_options,
    )


@router.post("/v1/quotes/preview", response_model=QuoteBreakdownV1)
def preview_quote(
    payload: QuoteRequestV1, catalog: Catalog = Depends(get_catalog)
) -> QuoteBreakdownV1:
    request = _to_request(payload)
    try:
        breakdown = compute(request, resolve_prices(catalog, request))
    except QuoteError as e:
        raise_http_error(e)

    return QuoteBreakdownV1(**_breakdown_fields(breakdown))


@router.post("/v1/quotes", response_model=PersistedQuoteV1)
def submit_quote(
    payload: QuoteRequestV1,
    response: Response,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    catalog: Catalog = Depends(get_catalog),
    store: QuoteRepository = Depends(get_quote_store),
) -> PersistedQuoteV1:
    try:
        coordinator = SubmissionCoordinator(catalog, store)
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    try:
        result = coordinator.submit(_to_request(payload), idempotency_key)
    except QuoteError as e:
        raise_http_error(e)

    if result.replayed:
        response.headers["Idempotent-Replayed"] = "true"
    return _to_persisted_out(result.quote)


@router.get("/v1/quotes/search", response_model=QuotePageV1)
def search_quotes(
    search_filter: SearchFilter = Depends(search_filter_params),
    page: int = Query(default=0),
    size: int = Query(default=20),
    store: QuoteRepository = Depends(get_quote_store),
) -> QuotePageV1:
    try:
        result = search(store, search_filter, page, size)
    except QuoteError as e:
        raise_http_error(e)

    return QuotePageV1(
        content=[_to_persisted_out(q) for q in result.content],
        page=result.page,
        size=result.size,
        total_elements=result.total_elements,
        total_pages=result.total_pages,
        last=result.last,
    )


@router.get("/v1/quotes/export")
def export_quotes(
    search_filter: SearchFilter = Depends(search_filter_params),
    store: QuoteRepository = Depends(get_quote_store),
) -> Response:
    try:
        exporter = get_exporter()
        limit = export_max_rows()
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    try:
        quotes = collect(store, search_filter, limit)
    except QuoteError as e:
        raise_http_error(e)

    return Response(
        content=exporter.render_table(quotes),
        media_type=exporter.table_media_type,
        headers={"Content-Disposition": 'attachment; filename="quotes.csv"'},
    )


@router.get("/v1/quotes/{quote_id}", response_model=PersistedQuoteV1)
def get_quote(
    quote_id: str, store: QuoteRepository = Depends(get_quote_store)
) -> PersistedQuoteV1:
    return _to_persisted_out(_load_quote(store, quote_id))


@router.get("/v1/quotes/{quote_id}/document")
def get_quote_document(
    quote_id: str, store: QuoteRepository = Depends(get_quote_store)
) -> Response:
    try:
        exporter = get_exporter()
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    quote = _load_quote(store, quote_id)
    return Response(
        content=exporter.render_document(quote),
        media_type=exporter.document_media_type,
        headers={"Content-Disposition": f'attachment; filename="quote-{quote.id}"'},
    )


@router.get("/v1/quotes/{quote_id}/events", response_model=list[EventV1])
def list_quote_events(
    quote_id: str, store: QuoteRepository = Depends(get_quote_store)
) -> list[EventV1]:
    _load_quote(store, quote_id)
    try:
        events = store.list_events(quote_id)
    except QuoteError as e:
        raise_http_error(e)

    return [
        EventV1(
            id=ev.id,
            entity_type=EntityTypeV1.QUOTE,
            entity_id=ev.entity_id,
            event_type=EventTypeV1(ev.event_type),
            payload=ev.payload,
            created_at=ev.created_at.isoformat(),
        )
        for ev in events
    ]


def _load_quote(store: QuoteRepository, quote_id: str) -> PersistedQuote:
    try:
        quote = store.get(quote_id)
        if quote is None:
            raise NotFoundError("Quote", quote_id)
    except QuoteError as e:
        raise_http_error(e)

    return quote


def _to_request(payload: QuoteRequestV1) -> QuoteRequest:
    return QuoteRequest(
        base_item_id=payload.base_item_id,
        quantity=payload.quantity,
        option_ids=tuple(payload.option_ids),
        discount_rate=payload.discount_rate,
        tax_rate=payload.tax_rate,
    )


def _breakdown_fields(b: QuoteBreakdown) -> dict:
    amounts = display_amounts(b)
    return {
        "base_item_id": b.base_item_id,
        "item_name": b.item_name,
        "base_unit_price": b.base_unit_price,
        "quantity": b.quantity,
        "options": [
            OptionLineV1(
                option_id=line.option_id,
                name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                line_total=line.line_total,
            )
            for line in b.options
        ],
        "items_total": b.items_total,
        "options_total": b.options_total,
        "subtotal": b.subtotal,
        "discount_rate": b.discount_rate,
        "tax_rate": b.tax_rate,
        "final_total": b.final_total,
        "discount_amount": amounts.discount_amount,
        "tax_amount": amounts.tax_amount,
    }


def _to_persisted_out(quote: PersistedQuote) -> PersistedQuoteV1:
    return PersistedQuoteV1(
        id=quote.id,
        idempotency_key=quote.idempotency_key,
        created_at=quote.created_at,
        **_breakdown_fields(quote.breakdown),
    )
