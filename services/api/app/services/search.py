"""Filtered, paged listing of persisted quotes.

Ordering is always newest first (created_at desc, id desc), so page 0 holds the
most recent matches and repeated queries over unchanged data return identical
pages. Each call is consistent on its own; there is no cursor across calls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Generic, TypeVar

from services.api.app.services.errors import ValidationError

if TYPE_CHECKING:
    from services.api.app.services.pricing import QuoteBreakdown
    from services.api.app.services.store_base import PersistedQuote, QuoteRepository

T = TypeVar("T")

MAX_PAGE_SIZE = 100

# Keeps a text match from spanning two names.
_NAME_SEPARATOR = "\x1f"


@dataclass(frozen=True, slots=True)
class SearchFilter:
    text: str | None = None
    min_total: int | None = None
    max_total: int | None = None
    created_from: date | None = None
    created_to: date | None = None
    has_options: bool | None = None

    def normalized(self) -> SearchFilter:
        text = (self.text or "").strip() or None
        return SearchFilter(
            text=text,
            min_total=self.min_total,
            max_total=self.max_total,
            created_from=self.created_from,
            created_to=self.created_to,
            has_options=self.has_options,
        )

    def created_bounds(self) -> tuple[datetime | None, datetime | None]:
        """Half-open [start, end) datetimes covering the inclusive date range."""

        start = datetime.combine(self.created_from, time.min) if self.created_from else None
        end = (
            datetime.combine(self.created_to + timedelta(days=1), time.min)
            if self.created_to
            else None
        )
        return start, end

    def matches(self, quote: PersistedQuote) -> bool:
        b = quote.breakdown

        if self.text:
            needle = self.text.casefold()
            if needle not in search_text(b):
                return False

        if self.min_total is not None and b.final_total < self.min_total:
            return False
        if self.max_total is not None and b.final_total > self.max_total:
            return False

        start, end = self.created_bounds()
        if start is not None and quote.created_at < start:
            return False
        if end is not None and quote.created_at >= end:
            return False

        if self.has_options is not None and bool(b.options) != self.has_options:
            return False

        return True


@dataclass(frozen=True)
class PageResult(Generic[T]):
    content: list[T] = field(default_factory=list)
    page: int = 0
    size: int = 0
    total_elements: int = 0
    total_pages: int = 0

    @property
    def last(self) -> bool:
        return self.page >= self.total_pages - 1


def search_text(breakdown: QuoteBreakdown) -> str:
    """Casefolded item and option names; both stores match text against this."""

    names = [breakdown.item_name, *(line.name for line in breakdown.options)]
    return _NAME_SEPARATOR.join(name.casefold() for name in names)


def total_pages(total_elements: int, size: int) -> int:
    return math.ceil(total_elements / size) if total_elements else 0


def validate_page(page: int, size: int) -> None:
    if page < 0:
        raise ValidationError("page", "must be >= 0")
    if size < 1 or size > MAX_PAGE_SIZE:
        raise ValidationError("size", f"must be between 1 and {MAX_PAGE_SIZE}")


def newest_first(quote: PersistedQuote) -> tuple[datetime, str]:
    return (quote.created_at, quote.id)


def search(
    repository: QuoteRepository,
    search_filter: SearchFilter | None,
    page: int,
    size: int,
) -> PageResult[PersistedQuote]:
    validate_page(page, size)
    return repository.query((search_filter or SearchFilter()).normalized(), page, size)


def collect(
    repository: QuoteRepository,
    search_filter: SearchFilter | None,
    limit: int,
) -> list[PersistedQuote]:
    """Walk pages in search order until `limit` quotes are gathered."""

    out: list[PersistedQuote] = []
    page = 0
    while len(out) < limit:
        result = search(repository, search_filter, page, MAX_PAGE_SIZE)
        out.extend(result.content)
        if result.last or not result.content:
            break
        page += 1

    return out[:limit]
