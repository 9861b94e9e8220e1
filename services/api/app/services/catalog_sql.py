from __future__ import annotations

from collections.abc import Sequence

from services.api.app.db.models import BaseItem, ItemOption
from services.api.app.services.catalog_base import CatalogItem, CatalogOption, scope_options
from services.api.app.services.errors import NotFoundError, PersistenceFailure
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session


class SqlCatalog:
    def __init__(self, db: Session) -> None:
        self._db = db

    def list_base_items(self) -> list[CatalogItem]:
        try:
            rows = self._db.scalars(select(BaseItem).order_by(BaseItem.name, BaseItem.id)).all()
        except SQLAlchemyError as e:
            raise PersistenceFailure("list_base_items", e) from e
        return [_item(row) for row in rows]

    def get_base_item(self, base_item_id: str) -> CatalogItem:
        try:
            row = self._db.get(BaseItem, base_item_id)
        except SQLAlchemyError as e:
            raise PersistenceFailure("get_base_item", e) from e

        if row is None:
            raise NotFoundError("Base item", base_item_id)
        return _item(row)

    def list_options(self, base_item_id: str) -> list[CatalogOption]:
        self.get_base_item(base_item_id)
        try:
            rows = self._db.scalars(
                select(ItemOption)
                .where(ItemOption.base_item_id == base_item_id)
                .order_by(ItemOption.name, ItemOption.id)
            ).all()
        except SQLAlchemyError as e:
            raise PersistenceFailure("list_options", e) from e
        return [_option(row) for row in rows]

    def get_options(self, base_item_id: str, option_ids: Sequence[str]) -> list[CatalogOption]:
        if not option_ids:
            return []

        try:
            rows = self._db.scalars(
                select(ItemOption).where(ItemOption.id.in_(set(option_ids)))
            ).all()
        except SQLAlchemyError as e:
            raise PersistenceFailure("get_options", e) from e
        return scope_options(base_item_id, option_ids, [_option(row) for row in rows])


def _item(row: BaseItem) -> CatalogItem:
    return CatalogItem(id=row.id, name=row.name, unit_price=row.unit_price)


def _option(row: ItemOption) -> CatalogOption:
    return CatalogOption(
        id=row.id,
        base_item_id=row.base_item_id,
        name=row.name,
        unit_price=row.unit_price,
    )
