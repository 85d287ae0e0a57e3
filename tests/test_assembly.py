from datetime import date
from decimal import Decimal

import pytest

from conftest import at
from snackbox_invoices.errors import LedgerStoreError
from snackbox_invoices.invoices.assembly import assemble_invoice, select_all
from snackbox_invoices.models.catalog import NO_MATCH, MatchResult, MatchType
from snackbox_invoices.models.invoice import (
    AnnotatedItem,
    InvoiceItemStatus,
    InvoiceMetadata,
    ItemSelection,
    ParsedItem,
)
from snackbox_invoices.stock.ledger import StockLedger
from snackbox_invoices.storage.local_json import LocalJsonInvoiceStore
from snackbox_invoices.storage.memory import InMemoryInvoiceStore, InMemoryLedgerStore


class FlakyLedgerStore(InMemoryLedgerStore):
    """Accepts the first append, then reports the ledger as unavailable."""

    def __init__(self):
        super().__init__()
        self.appends = 0

    def append_checked(self, event, check):
        self.appends += 1
        if self.appends > 1:
            raise LedgerStoreError("ledger unavailable")
        super().append_checked(event, check)


@pytest.fixture
def metadata():
    return InvoiceMetadata(
        invoice_number="100234",
        invoice_date=date(2025, 7, 21),
        supplier="Lebensmittel-Sonderposten",
        additional_costs=Decimal("6.99"),
        price_reduction=Decimal("1.00"),
    )


@pytest.fixture
def annotated():
    return [
        AnnotatedItem(
            item=ParsedItem(
                product_name="M&Ms Peanut Butter",
                quantity=2,
                unit_price=Decimal("21.00"),
                total_price=Decimal("42.00"),
                best_before_date=date(2025, 7, 30),
            ),
            match=MatchResult(matched_product_id=10, matched_product_name="M&Ms Peanut Butter",
                              match_type=MatchType.FUZZY, confidence=0.9),
        ),
        AnnotatedItem(
            item=ParsedItem(
                product_name="Pringles Sour Cream & Onion",
                quantity=3,
                unit_price=Decimal("2.49"),
                total_price=Decimal("7.47"),
            ),
            match=MatchResult(matched_product_id=4, matched_product_name="Pringles Sour Cream & Onion",
                              match_type=MatchType.EXACT, confidence=1.0),
        ),
        AnnotatedItem(
            item=ParsedItem(
                product_name="Mystery Snack",
                quantity=1,
                unit_price=Decimal("5.00"),
                total_price=Decimal("5.00"),
            ),
            match=NO_MATCH,
        ),
    ]


def test_total_includes_costs_and_reduction(metadata, annotated):
    outcome = assemble_invoice(metadata, annotated, select_all(annotated))
    invoice = outcome.invoice

    assert invoice.total_amount == Decimal("60.46")
    assert invoice.additional_costs == Decimal("6.99")
    assert invoice.price_reduction == Decimal("1.00")
    assert invoice.supplier == "Lebensmittel-Sonderposten"
    assert [i.product_name for i in invoice.items] == [a.item.product_name for a in annotated]
    assert all(i.status == InvoiceItemStatus.PENDING for i in invoice.items)
    assert outcome.errors == []


def test_deselected_items_are_left_out(metadata, annotated):
    selections = [ItemSelection(index=2), ItemSelection(index=0)]

    invoice = assemble_invoice(metadata, annotated, selections).invoice

    assert [i.product_name for i in invoice.items] == ["M&Ms Peanut Butter", "Mystery Snack"]
    assert invoice.total_amount == Decimal("52.99")


def test_stock_admission_reports_per_item_errors(metadata, annotated, ledger):
    selections = [
        ItemSelection(index=0),
        ItemSelection(index=1, best_before_date=date(2026, 1, 31)),
        ItemSelection(index=2),
    ]

    outcome = assemble_invoice(metadata, annotated, selections, ledger=ledger, received_at=at(0))
    items = outcome.invoice.items

    assert [i.status for i in items] == [
        InvoiceItemStatus.PROCESSED,
        InvoiceItemStatus.PROCESSED,
        InvoiceItemStatus.PENDING,
    ]
    assert len(outcome.errors) == 1
    assert outcome.errors[0].index == 2
    assert outcome.errors[0].reason == "no matched product"

    assert ledger.product_stock(10).total_in_storage == 2
    assert ledger.product_stock(4).total_in_storage == 3
    event = ledger.store.events_for_batch(ledger.find_batch(10, date(2025, 7, 30)).id)[0]
    assert event.source_invoice_item_id == items[0].id
    assert event.occurred_at == at(0)


def test_missing_best_before_date_is_an_item_error(metadata, annotated, ledger):
    outcome = assemble_invoice(metadata, annotated, [ItemSelection(index=1)], ledger=ledger)

    assert outcome.errors[0].reason == "no best-before date"
    assert outcome.invoice.items[0].status == InvoiceItemStatus.PENDING
    assert ledger.product_ids() == []


def test_overrides_and_opt_out(metadata, annotated, ledger):
    selections = [
        ItemSelection(index=0, add_to_stock=False),
        ItemSelection(index=2, product_id=77, best_before_date=date(2026, 5, 1)),
    ]

    outcome = assemble_invoice(metadata, annotated, selections, ledger=ledger)
    skipped, overridden = outcome.invoice.items

    assert skipped.status == InvoiceItemStatus.PENDING
    assert overridden.product_id == 77
    assert overridden.best_before_date == date(2026, 5, 1)
    assert overridden.status == InvoiceItemStatus.PROCESSED
    assert ledger.product_ids() == [77]


def test_invoice_is_saved(metadata, annotated):
    store = InMemoryInvoiceStore()

    outcome = assemble_invoice(metadata, annotated, select_all(annotated), store=store)

    assert store.find_by_number("Lebensmittel-Sonderposten", "100234") == outcome.invoice
    assert store.find_by_id(outcome.invoice.id[:6]) == outcome.invoice


@pytest.mark.parametrize(
    "selections",
    [
        [ItemSelection(index=3)],
        [ItemSelection(index=0), ItemSelection(index=0, add_to_stock=False)],
    ],
)
def test_invalid_selections(metadata, annotated, selections):
    with pytest.raises(ValueError):
        assemble_invoice(metadata, annotated, selections)


def test_ledger_failure_keeps_saved_invoice_in_step_with_stock(metadata, annotated, tmp_path):
    store = LocalJsonInvoiceStore(tmp_path / "invoices.json")
    ledger = StockLedger(FlakyLedgerStore())
    selections = [ItemSelection(index=0), ItemSelection(index=1, best_before_date=date(2026, 1, 31))]

    with pytest.raises(LedgerStoreError):
        assemble_invoice(metadata, annotated, selections, ledger=ledger, store=store)

    (saved,) = store.load_all()
    assert [i.status for i in saved.items] == [InvoiceItemStatus.PROCESSED, InvoiceItemStatus.PENDING]
    assert store.find_by_number("Lebensmittel-Sonderposten", "100234") is not None
    assert ledger.product_stock(10).total_in_storage == 2
