from __future__ import annotations

from fastapi import APIRouter, Depends
from services.api.app.auth import require_bearer
from services.api.app.db.deps import get_catalog
from services.api.app.models.catalog import BaseItemOut, ItemOptionOut
from services.api.app.routers.errors import raise_http_error
from services.api.app.services.catalog_base import Catalog
from services.api.app.services.errors import QuoteError

router = APIRouter(dependencies=[Depends(require_bearer)])


@router.get("/v1/items", response_model=list[BaseItemOut])
def list_items(catalog: Catalog = Depends(get_catalog)) -> list[BaseItemOut]:
    try:
        items = catalog.list_base_items()
    except QuoteError as e:
        raise_http_error(e)

    return [BaseItemOut(id=i.id, name=i.name, unit_price=i.unit_price) for i in items]


@router.get("/v1/items/{item_id}", response_model=BaseItemOut)
def get_item(item_id: str, catalog: Catalog = Depends(get_catalog)) -> BaseItemOut:
    try:
        item = catalog.get_base_item(item_id)
    except QuoteError as e:
        raise_http_error(e)

    return BaseItemOut(id=item.id, name=item.name, unit_price=item.unit_price)


@router.get("/v1/items/{item_id}/options", response_model=list[ItemOptionOut])
def list_item_options(item_id: str, catalog: Catalog = Depends(get_catalog)) -> list[ItemOptionOut]:
    try:
        options = catalog.list_options(item_id)
    except QuoteError as e:
        raise_http_error(e)

    return [
        ItemOptionOut(
            id=o.id,
            base_item_id=o.base_item_id,
            name=o.name,
            unit_price=o.unit_price,
        )
        for o in options
    ]
