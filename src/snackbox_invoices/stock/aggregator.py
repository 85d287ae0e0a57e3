"""Fold shelving events into stock levels.

All stock figures are derived: nothing stores a quantity. Events are replayed
in ``occurred_at`` order; events sharing a timestamp keep their append order
(Python's sort is stable, so callers must pass events in append order).
"""

from __future__ import annotations

import datetime as _dt
from typing import Iterable, Iterator, Optional, Sequence

from snackbox_invoices.errors import InsufficientStockError, MalformedEventError
from snackbox_invoices.models.stock import (
    EVENT_EFFECTS,
    SHELVING_TYPES,
    AggregatedStock,
    Batch,
    BatchStock,
    ProductStock,
    ShelvingEvent,
)

# Spans shorter than this count as one full week
_MIN_RATE_SPAN = _dt.timedelta(days=7)


def validate_event(event: ShelvingEvent) -> None:
    if event.quantity < 1:
        raise MalformedEventError(f"Quantity must be at least 1, got {event.quantity}")
    if event.occurred_at.tzinfo is None or event.occurred_at.utcoffset() is None:
        raise MalformedEventError("occurred_at must be timezone-aware")


def chronological(events: Iterable[ShelvingEvent]) -> list[ShelvingEvent]:
    return sorted(events, key=lambda e: e.occurred_at)


def replay(events: Iterable[ShelvingEvent]) -> Iterator[AggregatedStock]:
    """Yield the running stock after each event, in fold order."""
    events = list(events)
    for event in events:
        validate_event(event)
    storage = shelf = 0
    for event in chronological(events):
        storage_sign, shelf_sign = EVENT_EFFECTS[event.type]
        storage += storage_sign * event.quantity
        shelf += shelf_sign * event.quantity
        yield AggregatedStock(quantity_in_storage=storage, quantity_on_shelf=shelf)


def fold(events: Iterable[ShelvingEvent]) -> AggregatedStock:
    """Current storage and shelf quantity of one batch."""
    state = AggregatedStock()
    for state in replay(events):
        pass
    return state


def check_non_negative(batch_id: int, events: Sequence[ShelvingEvent]) -> None:
    """Raise InsufficientStockError if any fold prefix goes below zero."""
    for event in events:
        validate_event(event)
    ordered = chronological(events)
    previous = AggregatedStock()
    for event, state in zip(ordered, replay(ordered)):
        if state.quantity_in_storage < 0:
            raise InsufficientStockError(
                batch_id, "in storage", previous.quantity_in_storage, event.quantity
            )
        if state.quantity_on_shelf < 0:
            raise InsufficientStockError(
                batch_id, "on shelf", previous.quantity_on_shelf, event.quantity
            )
        previous = state


def weekly_shelving_rate(events: Iterable[ShelvingEvent]) -> float:
    """Units put on the shelf per week, across all batches of a product.

    Fewer than two shelving events give 0. Spans under a week count as one week.
    """
    shelved = chronological(e for e in events if e.type in SHELVING_TYPES)
    if len(shelved) < 2:
        return 0.0
    span = max(shelved[-1].occurred_at - shelved[0].occurred_at, _MIN_RATE_SPAN)
    weeks = span / _dt.timedelta(weeks=1)
    return sum(e.quantity for e in shelved) / weeks


def _earliest(batch_stocks: list[BatchStock], attr: str) -> Optional[_dt.date]:
    dates = [bs.batch.best_before_date for bs in batch_stocks if getattr(bs.stock, attr) > 0]
    return min(dates, default=None)


def fold_product(
    product_id: int,
    batches: Sequence[Batch],
    events: Iterable[ShelvingEvent],
) -> ProductStock:
    """Roll every batch of a product up into totals and the weekly shelving rate."""
    events = list(events)
    by_batch: dict[int, list[ShelvingEvent]] = {b.id: [] for b in batches}
    for event in events:
        if event.batch_id in by_batch:
            by_batch[event.batch_id].append(event)

    batch_stocks = [
        BatchStock(batch=batch, stock=fold(by_batch[batch.id]))
        for batch in sorted(batches, key=lambda b: (b.best_before_date, b.id))
    ]
    return ProductStock(
        product_id=product_id,
        batches=batch_stocks,
        total_in_storage=sum(bs.stock.quantity_in_storage for bs in batch_stocks),
        total_on_shelf=sum(bs.stock.quantity_on_shelf for bs in batch_stocks),
        weekly_shelving_rate=weekly_shelving_rate(
            e for batch_events in by_batch.values() for e in batch_events
        ),
        best_before_in_storage=_earliest(batch_stocks, "quantity_in_storage"),
        best_before_on_shelf=_earliest(batch_stocks, "quantity_on_shelf"),
    )
