"""Append-only stock ledger with admission control.

Every append re-folds the batch's history plus the candidate event and is
rejected if any prefix would go below zero. The store runs the check and the
append as one step under its lock for that batch (a file flock for the JSON store),
so concurrent debits on one batch cannot both pass against a stale view, even
from separate processes.
"""

from __future__ import annotations

import datetime as _dt
import logging
from typing import Optional

from snackbox_invoices.errors import InsufficientStockError, MalformedEventError
from snackbox_invoices.models.stock import (
    ADDING_TYPES,
    EVENT_EFFECTS,
    AggregatedStock,
    Batch,
    ProductStock,
    ShelvingEvent,
    ShelvingEventType,
)
from snackbox_invoices.stock.aggregator import check_non_negative, fold, fold_product, validate_event
from snackbox_invoices.storage.adapter import LedgerStore

logger = logging.getLogger(__name__)


class StockLedger:
    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    def try_append(self, batch_id: int, event: ShelvingEvent) -> None:
        """Append ``event`` to the batch if stock stays non-negative.

        Raises InsufficientStockError (nothing recorded), MalformedEventError,
        or LedgerStoreError.
        """
        if event.batch_id != batch_id:
            raise MalformedEventError(
                f"Event for batch {event.batch_id} appended to batch {batch_id}"
            )
        validate_event(event)

        def admit(history: list[ShelvingEvent]) -> None:
            try:
                check_non_negative(batch_id, [*history, event])
            except InsufficientStockError:
                logger.warning(
                    "Rejected %s of %d for batch %d", event.type.value, event.quantity, batch_id
                )
                raise

        self.store.append_checked(event, admit)
        logger.info("Appended %s of %d to batch %d", event.type.value, event.quantity, batch_id)

    def find_batch(self, product_id: int, best_before_date: _dt.date) -> Optional[Batch]:
        for batch in self.store.load_batches(product_id):
            if batch.best_before_date == best_before_date:
                return batch
        return None

    def resolve_batch(self, product_id: int, best_before_date: _dt.date) -> Batch:
        """Return the product's batch for this best-before date, creating it if needed."""
        batch, created = self.store.find_or_add_batch(product_id, best_before_date)
        if created:
            logger.info("Created batch %d for product %d (best before %s)", batch.id, product_id, best_before_date)
        return batch

    def record(
        self,
        product_id: int,
        best_before_date: _dt.date,
        event_type: ShelvingEventType,
        quantity: int,
        occurred_at: Optional[_dt.datetime] = None,
        source_invoice_item_id: Optional[str] = None,
    ) -> ShelvingEvent:
        """Append one event to the product's batch for ``best_before_date``.

        Only additions open a new batch; removals and moves need an existing one.
        """
        if quantity < 1:
            raise MalformedEventError(f"Quantity must be at least 1, got {quantity}")
        if event_type in ADDING_TYPES:
            batch = self.resolve_batch(product_id, best_before_date)
        else:
            batch = self.find_batch(product_id, best_before_date)
            if batch is None:
                storage_sign, _ = EVENT_EFFECTS[event_type]
                location = "in storage" if storage_sign < 0 else "on shelf"
                raise InsufficientStockError(None, location, 0, quantity)
        event = ShelvingEvent(
            batch_id=batch.id,
            type=event_type,
            quantity=quantity,
            occurred_at=occurred_at or _dt.datetime.now(_dt.timezone.utc),
            source_invoice_item_id=source_invoice_item_id,
        )
        self.try_append(batch.id, event)
        return event

    def batch_stock(self, batch_id: int) -> AggregatedStock:
        return fold(self.store.events_for_batch(batch_id))

    def product_stock(self, product_id: int) -> ProductStock:
        return fold_product(
            product_id, self.store.load_batches(product_id), self.store.events_for_product(product_id)
        )

    def product_ids(self) -> list[int]:
        return sorted({b.product_id for b in self.store.load_batches()})
