"""Abstract storage adapters for invoices and the stock ledger."""

import datetime as _dt
from abc import ABC, abstractmethod
from typing import Callable, Optional

from snackbox_invoices.models.invoice import Invoice
from snackbox_invoices.models.stock import Batch, ShelvingEvent


class InvoiceStore(ABC):
    @abstractmethod
    def load_all(self) -> list[Invoice]:
        """Load all invoice records."""

    @abstractmethod
    def save(self, invoice: Invoice) -> None:
        """Save or update a single invoice (upsert by id)."""

    @abstractmethod
    def find_by_id(self, invoice_id: str) -> Optional[Invoice]:
        """Find invoice by id prefix."""

    @abstractmethod
    def find_by_number(self, supplier: str, invoice_number: str) -> Optional[Invoice]:
        """Find a supplier's invoice by its number (duplicate check)."""


class LedgerStore(ABC):
    """Durable, ordered event storage keyed by batch.

    ``events_for_batch`` must return events in append order, and an event is
    visible to every later read once ``append_checked`` returns.
    """

    @abstractmethod
    def load_batches(self, product_id: Optional[int] = None) -> list[Batch]:
        """All batches, or the batches of one product."""

    @abstractmethod
    def get_batch(self, batch_id: int) -> Optional[Batch]:
        """Find a batch by id."""

    @abstractmethod
    def find_or_add_batch(self, product_id: int, best_before_date: _dt.date) -> tuple[Batch, bool]:
        """Return the product's batch for this best-before date, creating it if absent.

        Lookup and creation are one atomic step. The flag is True if the batch was created.
        """

    @abstractmethod
    def events_for_batch(self, batch_id: int) -> list[ShelvingEvent]:
        """Every event of one batch, in append order."""

    @abstractmethod
    def append_checked(self, event: ShelvingEvent, check: Callable[[list[ShelvingEvent]], None]) -> None:
        """Append ``event`` if ``check(history)`` returns without raising.

        ``history`` is the batch's events in append order. Reading it, running
        the check and appending happen under one lock for the batch, so no other
        append to that batch can interleave. An unknown batch raises
        MalformedEventError; whatever ``check`` raises propagates and nothing is
        appended.
        """

    def events_for_product(self, product_id: int) -> list[ShelvingEvent]:
        events: list[ShelvingEvent] = []
        for batch in self.load_batches(product_id):
            events.extend(self.events_for_batch(batch.id))
        return events
