"""Stock ledger records: batches, shelving events and derived stock levels."""

import datetime as _dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ShelvingEventType(str, Enum):
    ADDED_TO_STORAGE = "added_to_storage"
    ADDED_TO_SHELF = "added_to_shelf"
    MOVED_TO_SHELF = "moved_to_shelf"
    MOVED_FROM_SHELF = "moved_from_shelf"
    REMOVED_FROM_STORAGE = "removed_from_storage"
    REMOVED_FROM_SHELF = "removed_from_shelf"
    CONSUMED = "consumed"


# (storage delta sign, shelf delta sign) per event type
EVENT_EFFECTS: dict[ShelvingEventType, tuple[int, int]] = {
    ShelvingEventType.ADDED_TO_STORAGE: (1, 0),
    ShelvingEventType.ADDED_TO_SHELF: (0, 1),
    ShelvingEventType.MOVED_TO_SHELF: (-1, 1),
    ShelvingEventType.MOVED_FROM_SHELF: (1, -1),
    ShelvingEventType.REMOVED_FROM_STORAGE: (-1, 0),
    ShelvingEventType.REMOVED_FROM_SHELF: (0, -1),
    ShelvingEventType.CONSUMED: (0, -1),
}

SHELVING_TYPES = frozenset({ShelvingEventType.MOVED_TO_SHELF, ShelvingEventType.ADDED_TO_SHELF})
ADDING_TYPES = frozenset({ShelvingEventType.ADDED_TO_STORAGE, ShelvingEventType.ADDED_TO_SHELF})


class ShelvingEvent(BaseModel):
    """One immutable ledger entry. The quantity is a magnitude; its sign comes from the type."""

    batch_id: int
    type: ShelvingEventType
    quantity: int
    occurred_at: _dt.datetime
    source_invoice_item_id: Optional[str] = None

    model_config = {"frozen": True}


class Batch(BaseModel):
    """Units of one product sharing a best-before date."""

    id: int
    product_id: int
    best_before_date: _dt.date
    created_at: _dt.datetime = Field(default_factory=lambda: _dt.datetime.now(_dt.timezone.utc))

    model_config = {"frozen": True}


class AggregatedStock(BaseModel):
    quantity_in_storage: int = 0
    quantity_on_shelf: int = 0

    model_config = {"frozen": True}


class BatchStock(BaseModel):
    batch: Batch
    stock: AggregatedStock


class ProductStock(BaseModel):
    """Roll-up over every batch of one product."""

    product_id: int
    batches: list[BatchStock] = Field(default_factory=list)
    total_in_storage: int = 0
    total_on_shelf: int = 0
    weekly_shelving_rate: float = 0.0
    best_before_in_storage: Optional[_dt.date] = None
    best_before_on_shelf: Optional[_dt.date] = None
