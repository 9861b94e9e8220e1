from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from services.api.app.services.errors import MismatchError, NotFoundError
from services.api.app.services.pricing import PricedOption, QuoteRequest, ResolvedPrices


@dataclass(frozen=True, slots=True)
class CatalogItem:
    id: str
    name: str
    unit_price: int


@dataclass(frozen=True, slots=True)
class CatalogOption:
    id: str
    base_item_id: str
    name: str
    unit_price: int


class Catalog(Protocol):
    """Read-only price book. The quote core never mutates catalog data."""

    def list_base_items(self) -> list[CatalogItem]: ...

    def get_base_item(self, base_item_id: str) -> CatalogItem: ...

    def list_options(self, base_item_id: str) -> list[CatalogOption]: ...

    def get_options(self, base_item_id: str, option_ids: Sequence[str]) -> list[CatalogOption]: ...


def scope_options(
    base_item_id: str,
    option_ids: Sequence[str],
    found: Iterable[CatalogOption],
) -> list[CatalogOption]:
    """Order looked-up options by request order and enforce base item ownership.

    Raises NotFoundError for ids missing from `found` and MismatchError for options
    owned by another base item.
    """

    by_id = {opt.id: opt for opt in found}

    out: list[CatalogOption] = []
    for option_id in dict.fromkeys(option_ids):
        opt = by_id.get(option_id)
        if opt is None:
            raise NotFoundError("Option", option_id)
        if opt.base_item_id != base_item_id:
            raise MismatchError(option_id, base_item_id, opt.base_item_id)
        out.append(opt)

    return out


def resolve_prices(catalog: Catalog, request: QuoteRequest) -> ResolvedPrices:
    item = catalog.get_base_item(request.base_item_id)
    options = catalog.get_options(item.id, request.unique_option_ids())

    return ResolvedPrices(
        base_item_id=item.id,
        item_name=item.name,
        base_unit_price=item.unit_price,
        options={
            opt.id: PricedOption(option_id=opt.id, name=opt.name, unit_price=opt.unit_price)
            for opt in options
        },
    )
