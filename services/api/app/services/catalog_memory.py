from __future__ import annotations

from collections.abc import Sequence

from services.api.app.services.catalog_base import CatalogItem, CatalogOption, scope_options
from services.api.app.services.errors import NotFoundError


class InMemoryCatalog:
    def __init__(self) -> None:
        self._items: dict[str, CatalogItem] = {}
        self._options: dict[str, CatalogOption] = {}

    def add_item(self, item_id: str, name: str, unit_price: int) -> CatalogItem:
        item = CatalogItem(id=item_id, name=name, unit_price=unit_price)
        self._items[item_id] = item
        return item

    def add_option(
        self, option_id: str, base_item_id: str, name: str, unit_price: int
    ) -> CatalogOption:
        if base_item_id not in self._items:
            raise NotFoundError("Base item", base_item_id)

        opt = CatalogOption(
            id=option_id, base_item_id=base_item_id, name=name, unit_price=unit_price
        )
        self._options[option_id] = opt
        return opt

    def list_base_items(self) -> list[CatalogItem]:
        return sorted(self._items.values(), key=lambda item: (item.name, item.id))

    def get_base_item(self, base_item_id: str) -> CatalogItem:
        item = self._items.get(base_item_id)
        if item is None:
            raise NotFoundError("Base item", base_item_id)
        return item

    def list_options(self, base_item_id: str) -> list[CatalogOption]:
        self.get_base_item(base_item_id)
        opts = [opt for opt in self._options.values() if opt.base_item_id == base_item_id]
        return sorted(opts, key=lambda opt: (opt.name, opt.id))

    def get_options(self, base_item_id: str, option_ids: Sequence[str]) -> list[CatalogOption]:
        found = [self._options[oid] for oid in option_ids if oid in self._options]
        return scope_options(base_item_id, option_ids, found)
