"""Turn reviewed, matched items into an Invoice and admit selected items to stock."""

from __future__ import annotations

import datetime as _dt
import logging
from decimal import Decimal
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from snackbox_invoices.errors import InsufficientStockError, MalformedEventError
from snackbox_invoices.models.invoice import (
    AnnotatedItem,
    Invoice,
    InvoiceItem,
    InvoiceItemStatus,
    InvoiceMetadata,
    ItemError,
    ItemSelection,
)
from snackbox_invoices.models.stock import ShelvingEventType
from snackbox_invoices.stock.ledger import StockLedger
from snackbox_invoices.storage.adapter import InvoiceStore

logger = logging.getLogger(__name__)


class AssemblyOutcome(BaseModel):
    invoice: Invoice
    errors: list[ItemError] = Field(default_factory=list)


def select_all(items: Sequence[AnnotatedItem], add_to_stock: bool = True) -> list[ItemSelection]:
    """Selections that keep every item, e.g. for unattended imports."""
    return [ItemSelection(index=i, add_to_stock=add_to_stock) for i in range(len(items))]


def invoice_total(items: Sequence[InvoiceItem], additional_costs: Decimal, price_reduction: Decimal) -> Decimal:
    return sum((i.total_price for i in items), Decimal("0")) + additional_costs - price_reduction


def assemble_invoice(
    metadata: InvoiceMetadata,
    annotated_items: Sequence[AnnotatedItem],
    selections: Sequence[ItemSelection],
    ledger: Optional[StockLedger] = None,
    store: Optional[InvoiceStore] = None,
    received_at: Optional[_dt.datetime] = None,
) -> AssemblyOutcome:
    """Build the invoice from the selected items.

    With a ledger, each selected item flagged ``add_to_stock`` is appended as an
    AddedToStorage event. A failed admission is reported per item and does not
    stop the others; the invoice is created regardless. With a store, the
    invoice is saved before the first stock event and saved again with the item
    statuses afterwards, also when a LedgerStoreError aborts admission (it is
    not caught).
    """
    seen: set[int] = set()
    for sel in selections:
        if sel.index >= len(annotated_items):
            raise ValueError(f"Selection index {sel.index} out of range ({len(annotated_items)} items)")
        if sel.index in seen:
            raise ValueError(f"Item {sel.index} selected twice")
        seen.add(sel.index)

    ordered = sorted(selections, key=lambda s: s.index)
    invoice_items: list[InvoiceItem] = []
    for sel in ordered:
        annotated = annotated_items[sel.index]
        item = annotated.item
        invoice_items.append(
            InvoiceItem(
                product_id=sel.product_id if sel.product_id is not None else annotated.match.matched_product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
                best_before_date=sel.best_before_date if sel.best_before_date is not None else item.best_before_date,
                article_number=item.article_number,
            )
        )

    additional_costs = metadata.additional_costs or Decimal("0")
    price_reduction = metadata.price_reduction or Decimal("0")
    invoice = Invoice(
        invoice_number=metadata.invoice_number,
        invoice_date=metadata.invoice_date,
        supplier=metadata.supplier,
        additional_costs=additional_costs,
        price_reduction=price_reduction,
        total_amount=invoice_total(invoice_items, additional_costs, price_reduction),
        notes=metadata.notes or "",
        items=invoice_items,
    )

    errors: list[ItemError] = []
    if store is not None:
        store.save(invoice)
    if ledger is not None:
        occurred_at = received_at or _dt.datetime.now(_dt.timezone.utc)
        try:
            for sel, inv_item in zip(ordered, invoice_items):
                if not sel.add_to_stock:
                    continue
                reason = _admit(ledger, inv_item, occurred_at)
                if reason is None:
                    inv_item.status = InvoiceItemStatus.PROCESSED
                else:
                    logger.warning(
                        "Item %d (%s) not added to stock: %s", sel.index, inv_item.product_name, reason
                    )
                    errors.append(ItemError(index=sel.index, product_name=inv_item.product_name, reason=reason))
        finally:
            # Stored statuses must reflect every event already appended
            if store is not None:
                store.save(invoice)

    logger.info(
        "Assembled invoice %s from %s: %d items, total %s, %d item errors",
        invoice.invoice_number or invoice.id, invoice.supplier, len(invoice_items),
        invoice.total_amount, len(errors),
    )
    return AssemblyOutcome(invoice=invoice, errors=errors)


def _admit(ledger: StockLedger, item: InvoiceItem, occurred_at: _dt.datetime) -> Optional[str]:
    """Append the storage event for one item. Returns an error reason or None."""
    if item.product_id is None:
        return "no matched product"
    if item.best_before_date is None:
        return "no best-before date"
    try:
        ledger.record(
            item.product_id,
            item.best_before_date,
            ShelvingEventType.ADDED_TO_STORAGE,
            item.quantity,
            occurred_at=occurred_at,
            source_invoice_item_id=item.id,
        )
    except (InsufficientStockError, MalformedEventError) as exc:
        return str(exc)
    return None
