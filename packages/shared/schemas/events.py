"""Shared event schema (v1).

The backend stores an append-only event log of quote activity for auditing.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityTypeV1(str, Enum):
    QUOTE = "Quote"


class EventTypeV1(str, Enum):
    QUOTE_CREATED = "QUOTE_CREATED"
    QUOTE_REPLAYED = "QUOTE_REPLAYED"


class EventV1(BaseModel):
    id: str

    entity_type: EntityTypeV1
    entity_id: str

    event_type: EventTypeV1
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: str
