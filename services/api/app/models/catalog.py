from __future__ import annotations

from pydantic import BaseModel


class BaseItemOut(BaseModel):
    id: str
    name: str
    unit_price: int


class ItemOptionOut(BaseModel):
    id: str
    base_item_id: str
    name: str
    unit_price: int
