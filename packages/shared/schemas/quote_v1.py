"""Shared quote payload schemas (v1).

Admin clients and export tooling consume these payloads. Rates travel as exact
decimal strings on output; inputs accept JSON numbers or strings.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class QuoteRequestV1(BaseModel):
    base_item_id: str = Field(..., min_length=1)
    quantity: int
    option_ids: list[str] = Field(default_factory=list)
    discount_rate: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")


class OptionLineV1(BaseModel):
    option_id: str
    name: str
    unit_price: int
    quantity: int
    line_total: int


class QuoteBreakdownV1(BaseModel):
    base_item_id: str
    item_name: str
    base_unit_price: int
    quantity: int
    options: list[OptionLineV1] = Field(default_factory=list)

    items_total: int
    options_total: int
    subtotal: int
    discount_rate: Decimal
    tax_rate: Decimal
    final_total: int

    # Display-only; derived from the fields above.
    discount_amount: int
    tax_amount: int


class PersistedQuoteV1(QuoteBreakdownV1):
    id: str
    idempotency_key: str
    created_at: datetime


class QuotePageV1(BaseModel):
    content: list[PersistedQuoteV1] = Field(default_factory=list)
    page: int
    size: int
    total_elements: int
    total_pages: int
    last: bool
