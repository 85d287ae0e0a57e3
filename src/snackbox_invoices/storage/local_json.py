"""Local JSON file storage with file locking for concurrent access."""

import datetime as _dt
import fcntl
import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from snackbox_invoices.config import CATALOG_PATH, INVOICES_PATH, LEDGER_PATH
from snackbox_invoices.errors import LedgerStoreError, MalformedEventError
from snackbox_invoices.models.catalog import ProductCatalogEntry
from snackbox_invoices.models.invoice import Invoice
from snackbox_invoices.models.stock import Batch, ShelvingEvent
from snackbox_invoices.storage.adapter import InvoiceStore, LedgerStore

logger = logging.getLogger(__name__)


def _read_json_locked(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    with open(path, "r") as f:
        fcntl.flock(f, fcntl.LOCK_SH)
        try:
            # a writer may have just created the file and not yet filled it
            raw = f.read()
            return json.loads(raw) if raw.strip() else default
        finally:
            fcntl.flock(f, fcntl.LOCK_UN)


def _update_json_locked(path: Path, default: Any, mutate: Callable[[Any], Any]) -> Any:
    """Read, mutate and rewrite a JSON file under one exclusive lock."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a+") as f:
        fcntl.flock(f, fcntl.LOCK_EX)
        try:
            f.seek(0)
            raw = f.read()
            data = json.loads(raw) if raw.strip() else default
            outcome = mutate(data)
            f.seek(0)
            f.truncate()
            json.dump(data, f, indent=2, default=str)
            f.flush()
            return outcome
        finally:
            fcntl.flock(f, fcntl.LOCK_UN)


def _dump(model) -> dict:
    return json.loads(model.model_dump_json())


class LocalJsonInvoiceStore(InvoiceStore):
    def __init__(self, path: Optional[Path] = None):
        self.path = path or INVOICES_PATH
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _records(self) -> list[dict]:
        try:
            return _read_json_locked(self.path, [])
        except json.JSONDecodeError:
            logger.warning("Invoice file %s is not valid JSON, treating as empty", self.path)
            return []

    def load_all(self) -> list[Invoice]:
        return [Invoice.model_validate(r) for r in self._records()]

    def save(self, invoice: Invoice) -> None:
        dump = _dump(invoice)

        def upsert(records: list[dict]) -> None:
            for i, r in enumerate(records):
                if r.get("id") == invoice.id:
                    records[i] = dump
                    return
            records.append(dump)

        _update_json_locked(self.path, [], upsert)

    def find_by_id(self, invoice_id: str) -> Optional[Invoice]:
        for r in self._records():
            if r.get("id", "").startswith(invoice_id):
                return Invoice.model_validate(r)
        return None

    def find_by_number(self, supplier: str, invoice_number: str) -> Optional[Invoice]:
        for r in self._records():
            if r.get("supplier") == supplier and r.get("invoice_number") == invoice_number:
                return Invoice.model_validate(r)
        return None


class LocalJsonLedgerStore(LedgerStore):
    """Batches and events in one JSON document: {"batches": [...], "events": [...]}.

    Events are only ever appended to the list, so file order is append order.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = path or LEDGER_PATH
        self.path.parent.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _empty() -> dict:
        return {"batches": [], "events": []}

    def _load(self) -> dict:
        try:
            return _read_json_locked(self.path, self._empty())
        except (OSError, json.JSONDecodeError) as exc:
            raise LedgerStoreError(f"Cannot read ledger {self.path}: {exc}") from exc

    def _update(self, mutate: Callable[[dict], Any]) -> Any:
        try:
            return _update_json_locked(self.path, self._empty(), mutate)
        except (OSError, json.JSONDecodeError) as exc:
            raise LedgerStoreError(f"Cannot write ledger {self.path}: {exc}") from exc

    def _batch(self, record: dict) -> Batch:
        try:
            return Batch.model_validate(record)
        except ValidationError as exc:
            raise LedgerStoreError(f"Corrupt batch record in {self.path}") from exc

    def load_batches(self, product_id: Optional[int] = None) -> list[Batch]:
        batches = [self._batch(r) for r in self._load()["batches"]]
        return [b for b in batches if product_id is None or b.product_id == product_id]

    def get_batch(self, batch_id: int) -> Optional[Batch]:
        for batch in self.load_batches():
            if batch.id == batch_id:
                return batch
        return None

    def find_or_add_batch(self, product_id: int, best_before_date: _dt.date) -> tuple[Batch, bool]:
        wanted = best_before_date.isoformat()

        def find_or_insert(data: dict) -> tuple[Batch, bool]:
            for r in data["batches"]:
                if r.get("product_id") == product_id and r.get("best_before_date") == wanted:
                    return self._batch(r), False
            next_id = max((r["id"] for r in data["batches"]), default=0) + 1
            batch = Batch(id=next_id, product_id=product_id, best_before_date=best_before_date)
            data["batches"].append(_dump(batch))
            return batch, True

        return self._update(find_or_insert)

    def events_for_batch(self, batch_id: int) -> list[ShelvingEvent]:
        try:
            return [
                ShelvingEvent.model_validate(r)
                for r in self._load()["events"]
                if r.get("batch_id") == batch_id
            ]
        except ValidationError as exc:
            raise LedgerStoreError(f"Corrupt event record in {self.path}") from exc

    def append_checked(self, event: ShelvingEvent, check: Callable[[list[ShelvingEvent]], None]) -> None:
        # Read, check and append under one exclusive flock, across processes too
        def admit(data: dict) -> None:
            if not any(r.get("id") == event.batch_id for r in data["batches"]):
                raise MalformedEventError(f"Unknown batch {event.batch_id}")
            try:
                history = [
                    ShelvingEvent.model_validate(r)
                    for r in data["events"]
                    if r.get("batch_id") == event.batch_id
                ]
            except ValidationError as exc:
                raise LedgerStoreError(f"Corrupt event record in {self.path}") from exc
            check(history)
            data["events"].append(_dump(event))

        self._update(admit)


class LocalJsonCatalog:
    """Product catalog snapshot from a JSON array of {id, name, barcodes}."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path or CATALOG_PATH

    def get_catalog_snapshot(self) -> list[ProductCatalogEntry]:
        return [ProductCatalogEntry.model_validate(r) for r in _read_json_locked(self.path, [])]
