"""In-process stores, used by tests and one-shot runs."""

import datetime as _dt
import threading
from typing import Callable, Optional

from snackbox_invoices.errors import MalformedEventError
from snackbox_invoices.models.invoice import Invoice
from snackbox_invoices.models.stock import Batch, ShelvingEvent
from snackbox_invoices.storage.adapter import InvoiceStore, LedgerStore


class InMemoryLedgerStore(LedgerStore):
    """Guards its dicts with one short-held lock and serializes appends per batch."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._batches: dict[int, Batch] = {}
        self._events: dict[int, list[ShelvingEvent]] = {}
        # one per stored batch, dropped with the store
        self._batch_locks: dict[int, threading.Lock] = {}

    def load_batches(self, product_id: Optional[int] = None) -> list[Batch]:
        with self._lock:
            return [b for b in self._batches.values() if product_id is None or b.product_id == product_id]

    def get_batch(self, batch_id: int) -> Optional[Batch]:
        with self._lock:
            return self._batches.get(batch_id)

    def find_or_add_batch(self, product_id: int, best_before_date: _dt.date) -> tuple[Batch, bool]:
        with self._lock:
            for batch in self._batches.values():
                if batch.product_id == product_id and batch.best_before_date == best_before_date:
                    return batch, False
            batch = Batch(id=len(self._batches) + 1, product_id=product_id, best_before_date=best_before_date)
            self._batches[batch.id] = batch
            self._events[batch.id] = []
            self._batch_locks[batch.id] = threading.Lock()
            return batch, True

    def events_for_batch(self, batch_id: int) -> list[ShelvingEvent]:
        with self._lock:
            return list(self._events.get(batch_id, []))

    def append_checked(self, event: ShelvingEvent, check: Callable[[list[ShelvingEvent]], None]) -> None:
        with self._lock:
            batch_lock = self._batch_locks.get(event.batch_id)
        if batch_lock is None:
            raise MalformedEventError(f"Unknown batch {event.batch_id}")

        with batch_lock:
            check(self.events_for_batch(event.batch_id))
            with self._lock:
                self._events[event.batch_id].append(event)


class InMemoryInvoiceStore(InvoiceStore):
    def __init__(self) -> None:
        self._invoices: dict[str, Invoice] = {}

    def load_all(self) -> list[Invoice]:
        return list(self._invoices.values())

    def save(self, invoice: Invoice) -> None:
        self._invoices[invoice.id] = invoice

    def find_by_id(self, invoice_id: str) -> Optional[Invoice]:
        for key, invoice in self._invoices.items():
            if key.startswith(invoice_id):
                return invoice
        return None

    def find_by_number(self, supplier: str, invoice_number: str) -> Optional[Invoice]:
        for invoice in self._invoices.values():
            if invoice.supplier == supplier and invoice.invoice_number == invoice_number:
                return invoice
        return None
