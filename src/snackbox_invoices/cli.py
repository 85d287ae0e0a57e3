"""Click CLI: parse supplier invoices, import them, and work the stock ledger."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import click
from rich.console import Console

from snackbox_invoices.config import LOG_LEVEL, SUPPORTED_EXTENSIONS
from snackbox_invoices.errors import InsufficientStockError, MalformedEventError, UnknownFormatError
from snackbox_invoices.extraction.pipeline import parse_file, supported_formats
from snackbox_invoices.invoices.assembly import assemble_invoice, select_all
from snackbox_invoices.logging_setup import configure_logging
from snackbox_invoices.matching.matcher import annotate_items
from snackbox_invoices.models.invoice import ItemSelection
from snackbox_invoices.models.stock import ShelvingEventType
from snackbox_invoices.reporting.reports import invoice_report, parse_report, stock_report
from snackbox_invoices.stock.ledger import StockLedger
from snackbox_invoices.storage.local_json import (
    LocalJsonCatalog,
    LocalJsonInvoiceStore,
    LocalJsonLedgerStore,
)

console = Console()

_DATE = click.DateTime(formats=["%Y-%m-%d", "%d.%m.%Y"])
_INVOICE_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


def _get_ledger() -> StockLedger:
    return StockLedger(LocalJsonLedgerStore())


def _get_catalog(path: Path | None) -> LocalJsonCatalog:
    return LocalJsonCatalog(path) if path else LocalJsonCatalog()


def _check_extension(path: Path) -> None:
    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        console.print(f"[red]Unsupported file type {path.suffix!r}.[/red]")
        raise SystemExit(1)


def _parse_or_exit(path: Path, format_key: str):
    _check_extension(path)
    try:
        return parse_file(path, format_key)
    except UnknownFormatError as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1)


@click.group()
@click.option("--log-level", default=LOG_LEVEL, show_default=True, help="Logging level")
def cli(log_level: str) -> None:
    """Snackbox supplier invoices: parsing, product matching and stock ledger."""
    configure_logging(log_level)


@cli.command()
def formats() -> None:
    """List the supported invoice formats."""
    for key in supported_formats():
        console.print(key)


@cli.command()
@click.argument("file", type=_INVOICE_FILE)
@click.option("-f", "--format", "format_key", required=True, help="Invoice format, see 'formats'")
@click.option("--catalog", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Product catalog JSON (defaults to the data directory)")
def parse(file: Path, format_key: str, catalog: Path | None) -> None:
    """Parse an invoice and show matched items for review."""
    result = _parse_or_exit(file, format_key)
    annotated = annotate_items(result.items, _get_catalog(catalog).get_catalog_snapshot())
    parse_report(result, annotated)
    if not result.success:
        raise SystemExit(1)


@cli.command("import")
@click.argument("file", type=_INVOICE_FILE)
@click.option("-f", "--format", "format_key", required=True, help="Invoice format, see 'formats'")
@click.option("--catalog", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Product catalog JSON (defaults to the data directory)")
@click.option("--stock/--no-stock", default=True, help="Add imported items to storage")
@click.option("--best-before", type=_DATE, help="Best-before date for items without one")
@click.option("--skip-unmatched", is_flag=True, help="Leave items without a catalog match off the invoice")
@click.option("--force", is_flag=True, help="Import even if the invoice number is already stored")
def import_invoice(file: Path, format_key: str, catalog: Path | None, stock: bool,
                   best_before: datetime | None, skip_unmatched: bool, force: bool) -> None:
    """Parse, match and store an invoice, adding its items to storage."""
    result = _parse_or_exit(file, format_key)
    if not result.success:
        console.print(f"[red]{result.error_message}[/red]")
        raise SystemExit(1)

    invoices = LocalJsonInvoiceStore()
    meta = result.metadata
    if meta.invoice_number and not force:
        existing = invoices.find_by_number(meta.supplier, meta.invoice_number)
        if existing:
            console.print(f"[yellow]Invoice {meta.invoice_number} already imported as {existing.id}.[/yellow]")
            return

    annotated = annotate_items(result.items, _get_catalog(catalog).get_catalog_snapshot())
    selections = select_all(annotated, add_to_stock=stock)
    if skip_unmatched:
        selections = [s for s in selections if annotated[s.index].match.matched]
    if best_before:
        selections = [
            ItemSelection(index=s.index, add_to_stock=s.add_to_stock, best_before_date=best_before.date())
            if annotated[s.index].item.best_before_date is None else s
            for s in selections
        ]

    outcome = assemble_invoice(
        meta, annotated, selections, ledger=_get_ledger() if stock else None, store=invoices,
    )
    inv = outcome.invoice
    console.print(
        f"  [green]ok[/green]  {inv.supplier} {inv.invoice_number or '—'}: "
        f"{len(inv.items)} items, total {inv.total_amount} ({inv.id})"
    )
    for err in outcome.errors:
        console.print(f"  [yellow]not stocked[/yellow]  #{err.index} {err.product_name}: {err.reason}")


@cli.command()
@click.argument("product_id", type=int)
@click.argument("action", type=click.Choice([t.value for t in ShelvingEventType]))
@click.argument("quantity", type=int)
@click.option("--best-before", type=_DATE, required=True, help="Best-before date of the batch")
def shelve(product_id: int, action: str, quantity: int, best_before: datetime) -> None:
    """Record a shelving action (store, shelve, move, remove, consume)."""
    ledger = _get_ledger()
    try:
        event = ledger.record(product_id, best_before.date(), ShelvingEventType(action), quantity)
    except (InsufficientStockError, MalformedEventError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1)

    stock = ledger.batch_stock(event.batch_id)
    console.print(
        f"Batch {event.batch_id}: {stock.quantity_in_storage} in storage, "
        f"{stock.quantity_on_shelf} on shelf"
    )


@cli.command()
@click.argument("product_id", type=int, required=False)
@click.option("--catalog", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Product catalog JSON for product names")
def stock(product_id: int | None, catalog: Path | None) -> None:
    """Show stock per batch and product."""
    stock_report(_get_ledger(), _get_catalog(catalog).get_catalog_snapshot(), product_id)


@cli.command("invoices")
def list_invoices() -> None:
    """List stored invoices."""
    invoice_report(LocalJsonInvoiceStore().load_all())
