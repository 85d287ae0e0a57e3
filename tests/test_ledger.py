from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime

import pytest

from conftest import at
from snackbox_invoices.errors import InsufficientStockError, LedgerStoreError, MalformedEventError
from snackbox_invoices.models.stock import AggregatedStock, ShelvingEvent, ShelvingEventType
from snackbox_invoices.stock.ledger import StockLedger
from snackbox_invoices.storage.local_json import LocalJsonLedgerStore

T = ShelvingEventType
BBD = date(2026, 3, 1)


def test_rejected_debit_leaves_ledger_unchanged(ledger):
    added = ledger.record(1, BBD, T.ADDED_TO_STORAGE, 30, occurred_at=at(0))

    with pytest.raises(InsufficientStockError) as exc_info:
        ledger.record(1, BBD, T.MOVED_TO_SHELF, 31, occurred_at=at(1))

    assert exc_info.value.batch_id == added.batch_id
    assert exc_info.value.available == 30
    assert exc_info.value.requested == 31
    assert ledger.batch_stock(added.batch_id) == AggregatedStock(quantity_in_storage=30, quantity_on_shelf=0)
    assert len(ledger.store.events_for_batch(added.batch_id)) == 1


def test_rejection_is_logged(ledger, caplog):
    ledger.record(1, BBD, T.ADDED_TO_SHELF, 2, occurred_at=at(0))

    with pytest.raises(InsufficientStockError):
        ledger.record(1, BBD, T.CONSUMED, 3, occurred_at=at(1))

    assert "Rejected consumed of 3" in caplog.text


def test_concurrent_debits_on_one_batch(ledger):
    ledger.record(1, BBD, T.ADDED_TO_STORAGE, 10, occurred_at=at(0))

    def move_one(_):
        try:
            ledger.record(1, BBD, T.MOVED_TO_SHELF, 1, occurred_at=at(1))
        except InsufficientStockError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(move_one, range(20)))

    assert outcomes.count(True) == 10
    batch = ledger.find_batch(1, BBD)
    assert ledger.batch_stock(batch.id) == AggregatedStock(quantity_in_storage=0, quantity_on_shelf=10)


def test_debit_without_batch_is_rejected(ledger):
    with pytest.raises(InsufficientStockError) as exc_info:
        ledger.record(1, BBD, T.REMOVED_FROM_STORAGE, 1)

    assert exc_info.value.batch_id is None
    assert exc_info.value.available == 0
    assert ledger.store.load_batches() == []


def test_resolve_batch_reuses_best_before_date(ledger):
    first = ledger.resolve_batch(1, BBD)
    again = ledger.resolve_batch(1, BBD)
    other = ledger.resolve_batch(1, date(2026, 4, 1))
    other_product = ledger.resolve_batch(2, BBD)

    assert again.id == first.id
    assert len({first.id, other.id, other_product.id}) == 3


def test_record_rejects_zero_quantity(ledger):
    with pytest.raises(MalformedEventError):
        ledger.record(1, BBD, T.ADDED_TO_STORAGE, 0)


def test_try_append_rejects_malformed_events(ledger):
    batch = ledger.resolve_batch(1, BBD)
    naive = ShelvingEvent(batch_id=batch.id, type=T.ADDED_TO_STORAGE, quantity=1, occurred_at=datetime(2026, 1, 5))
    unknown = ShelvingEvent(batch_id=99, type=T.ADDED_TO_STORAGE, quantity=1, occurred_at=at(0))
    aware = ShelvingEvent(batch_id=batch.id, type=T.ADDED_TO_STORAGE, quantity=1, occurred_at=at(0))

    with pytest.raises(MalformedEventError):
        ledger.try_append(batch.id, naive)
    with pytest.raises(MalformedEventError):
        ledger.try_append(99, unknown)
    with pytest.raises(MalformedEventError):
        ledger.try_append(batch.id + 1, aware)
    assert ledger.store.events_for_batch(batch.id) == []


def test_record_keeps_invoice_item_reference(ledger):
    event = ledger.record(1, BBD, T.ADDED_TO_STORAGE, 4, source_invoice_item_id="abc123")

    assert event.occurred_at.tzinfo is not None
    assert ledger.store.events_for_batch(event.batch_id)[0].source_invoice_item_id == "abc123"


def test_product_stock(ledger):
    ledger.record(1, date(2026, 4, 1), T.ADDED_TO_STORAGE, 6, occurred_at=at(0))
    ledger.record(1, BBD, T.ADDED_TO_STORAGE, 4, occurred_at=at(0))
    ledger.record(1, BBD, T.MOVED_TO_SHELF, 4, occurred_at=at(1))
    ledger.record(2, BBD, T.ADDED_TO_SHELF, 1, occurred_at=at(0))

    stock = ledger.product_stock(1)

    assert stock.total_in_storage == 6
    assert stock.total_on_shelf == 4
    assert stock.best_before_on_shelf == BBD
    assert stock.best_before_in_storage == date(2026, 4, 1)
    assert ledger.product_ids() == [1, 2]


def test_json_ledger_persists_across_instances(tmp_path):
    path = tmp_path / "ledger.json"
    ledger = StockLedger(LocalJsonLedgerStore(path))
    ledger.record(1, BBD, T.ADDED_TO_STORAGE, 10, occurred_at=at(0))
    ledger.record(1, BBD, T.MOVED_TO_SHELF, 3, occurred_at=at(1))

    reopened = StockLedger(LocalJsonLedgerStore(path))
    batch = reopened.find_batch(1, BBD)

    assert batch is not None
    assert reopened.batch_stock(batch.id) == AggregatedStock(quantity_in_storage=7, quantity_on_shelf=3)
    with pytest.raises(InsufficientStockError):
        reopened.record(1, BBD, T.MOVED_TO_SHELF, 8, occurred_at=at(2))


def test_json_ledger_assigns_increasing_batch_ids(tmp_path):
    store = LocalJsonLedgerStore(tmp_path / "ledger.json")

    first, created_first = store.find_or_add_batch(1, BBD)
    second, created_second = store.find_or_add_batch(2, BBD)
    again, created_again = store.find_or_add_batch(1, BBD)

    assert (first.id, second.id, again.id) == (1, 2, 1)
    assert (created_first, created_second, created_again) == (True, True, False)
    assert store.get_batch(2).product_id == 2
    assert [b.id for b in store.load_batches(1)] == [1]


def test_json_ledger_corrupt_file(tmp_path):
    path = tmp_path / "ledger.json"
    path.write_text("{not json")

    with pytest.raises(LedgerStoreError):
        LocalJsonLedgerStore(path).load_batches()


def test_json_ledgers_sharing_a_file_never_oversell(tmp_path):
    path = tmp_path / "ledger.json"
    ledgers = [StockLedger(LocalJsonLedgerStore(path)) for _ in range(2)]
    ledgers[0].record(1, BBD, T.ADDED_TO_STORAGE, 5, occurred_at=at(0))

    def move_one(n):
        try:
            ledgers[n % 2].record(1, BBD, T.MOVED_TO_SHELF, 1, occurred_at=at(1))
        except InsufficientStockError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=6) as pool:
        outcomes = list(pool.map(move_one, range(12)))

    assert outcomes.count(True) == 5
    batch = ledgers[1].find_batch(1, BBD)
    assert ledgers[1].batch_stock(batch.id) == AggregatedStock(quantity_in_storage=0, quantity_on_shelf=5)


def test_json_ledgers_sharing_a_file_create_one_batch(tmp_path):
    path = tmp_path / "ledger.json"
    ledgers = [StockLedger(LocalJsonLedgerStore(path)) for _ in range(2)]

    with ThreadPoolExecutor(max_workers=6) as pool:
        batches = list(pool.map(lambda n: ledgers[n % 2].resolve_batch(1, BBD), range(12)))

    assert {b.id for b in batches} == {1}
    assert len(LocalJsonLedgerStore(path).load_batches()) == 1


def test_json_ledger_rejected_debit_leaves_file_unchanged(tmp_path):
    path = tmp_path / "ledger.json"
    ledger = StockLedger(LocalJsonLedgerStore(path))
    ledger.record(1, BBD, T.ADDED_TO_STORAGE, 2, occurred_at=at(0))
    before = path.read_text()

    with pytest.raises(InsufficientStockError):
        ledger.record(1, BBD, T.REMOVED_FROM_STORAGE, 3, occurred_at=at(1))

    assert path.read_text() == before
