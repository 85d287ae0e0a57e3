"""Console reports: parse review, stock levels, stored invoices."""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Sequence

from rich.console import Console
from rich.table import Table

from snackbox_invoices.config import DEFAULT_CURRENCY
from snackbox_invoices.models.catalog import MatchType, ProductCatalogEntry
from snackbox_invoices.models.invoice import AnnotatedItem, Invoice, InvoiceItemStatus, ParseResult
from snackbox_invoices.models.vat import compute_vat, rate_label
from snackbox_invoices.stock.ledger import StockLedger

console = Console()

_MATCH_STYLES = {
    MatchType.BARCODE: "green",
    MatchType.EXACT: "green",
    MatchType.FUZZY: "yellow",
    MatchType.NONE: "red",
}


def parse_report(result: ParseResult, annotated: Sequence[AnnotatedItem]) -> None:
    """Print parsed items with their matches for manual review."""
    meta = result.metadata
    if meta:
        console.print(
            f"[bold]{meta.supplier or 'Unknown supplier'}[/bold]  "
            f"No. {meta.invoice_number or '—'}  Date {meta.invoice_date or '—'}  "
            f"Total {meta.total_amount if meta.total_amount is not None else '—'} {DEFAULT_CURRENCY}"
        )

    if not result.success:
        console.print(f"[red]{result.error_message}[/red]")

    if annotated:
        table = Table(title="Parsed Items")
        table.add_column("#", justify="right", width=3)
        table.add_column("Product", width=36)
        table.add_column("Article", width=14)
        table.add_column("Qty", justify="right", width=5)
        table.add_column("Unit", justify="right", width=9)
        table.add_column("Total", justify="right", width=9)
        table.add_column("MHD", width=10)
        table.add_column("Match", width=28)
        table.add_column("Conf", justify="right", width=5)

        for i, a in enumerate(annotated):
            style = _MATCH_STYLES[a.match.match_type]
            match_label = (
                f"{a.match.matched_product_name} (#{a.match.matched_product_id})"
                if a.match.matched else "—"
            )
            table.add_row(
                str(i),
                a.item.product_name,
                a.item.article_number or "—",
                str(a.item.quantity),
                str(a.item.unit_price),
                str(a.item.total_price),
                str(a.item.best_before_date) if a.item.best_before_date else "—",
                f"[{style}]{a.match.match_type.value}[/{style}] {match_label}",
                f"{a.match.confidence:.2f}",
            )
        console.print(table)

    if meta and (meta.additional_costs or meta.price_reduction):
        console.print(
            f"  Additional costs: {meta.additional_costs or 0}  "
            f"Price reduction: {meta.price_reduction or 0}"
        )

    if result.tax_summaries:
        table = Table(title="VAT Table (informational)")
        table.add_column("Rate", width=20)
        table.add_column("Net", justify="right", width=10)
        table.add_column("Tax", justify="right", width=10)
        table.add_column("Gross", justify="right", width=10)
        for s in result.tax_summaries:
            tax = str(s.tax)
            if abs(compute_vat(s.gross, s.rate) - s.tax) > Decimal("0.01"):
                tax = f"[yellow]{tax}[/yellow]"
            table.add_row(rate_label(s.rate), str(s.net), tax, str(s.gross))
        console.print(table)

    for skipped in result.skipped_lines:
        console.print(f"  [dim]skipped line {skipped.line_no + 1}:[/dim] {skipped.text} ({skipped.reason})")


def stock_report(ledger: StockLedger, catalog: Sequence[ProductCatalogEntry], product_id: int | None = None) -> None:
    """Print per-batch stock and product totals."""
    names = {e.id: e.name for e in catalog}
    product_ids = [product_id] if product_id is not None else ledger.product_ids()

    if not product_ids:
        console.print("[yellow]No stock recorded.[/yellow]")
        return

    table = Table(title="Stock")
    table.add_column("Product", width=30)
    table.add_column("Batch", justify="right", width=6)
    table.add_column("Best before", width=11)
    table.add_column("Storage", justify="right", width=8)
    table.add_column("Shelf", justify="right", width=8)
    table.add_column("Per week", justify="right", width=9)

    for pid in product_ids:
        stock = ledger.product_stock(pid)
        name = names.get(pid, f"#{pid}")
        for bs in stock.batches:
            table.add_row(
                name,
                str(bs.batch.id),
                str(bs.batch.best_before_date),
                str(bs.stock.quantity_in_storage),
                str(bs.stock.quantity_on_shelf),
                "",
            )
        table.add_row(
            f"[bold]{name}[/bold]",
            "",
            "",
            f"[bold]{stock.total_in_storage}[/bold]",
            f"[bold]{stock.total_on_shelf}[/bold]",
            f"{stock.weekly_shelving_rate:.1f}",
        )
        table.add_section()

    console.print(table)


def invoice_report(invoices: Sequence[Invoice]) -> None:
    """Print stored invoices grouped by supplier."""
    if not invoices:
        console.print("[yellow]No invoices found.[/yellow]")
        return

    by_supplier: dict[str, list[Invoice]] = defaultdict(list)
    for inv in invoices:
        by_supplier[inv.supplier or "Unknown"].append(inv)

    table = Table(title="Invoices")
    table.add_column("ID", style="dim", width=12)
    table.add_column("Date", width=10)
    table.add_column("Supplier", width=26)
    table.add_column("Number", width=12)
    table.add_column("Items", justify="right", width=5)
    table.add_column("Pending", justify="right", width=7)
    table.add_column("Total", justify="right", width=10)

    for supplier in sorted(by_supplier):
        subtotal = Decimal("0")
        for inv in sorted(by_supplier[supplier], key=lambda i: str(i.invoice_date or "")):
            pending = sum(1 for item in inv.items if item.status == InvoiceItemStatus.PENDING)
            table.add_row(
                inv.id,
                str(inv.invoice_date) if inv.invoice_date else "—",
                supplier,
                inv.invoice_number or "—",
                str(len(inv.items)),
                str(pending),
                str(inv.total_amount),
            )
            subtotal += inv.total_amount
        table.add_section()
        table.add_row("", "", f"[bold]{supplier}[/bold]", "", "", "", f"[bold]{subtotal}[/bold]")

    console.print(table)
