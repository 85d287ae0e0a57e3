"""Invoice text -> classified lines -> supplier parser -> ParseResult."""

from __future__ import annotations

import logging
from pathlib import Path

from snackbox_invoices.errors import UnknownFormatError
from snackbox_invoices.extraction.parsers.base import NO_ITEMS_MESSAGE, InvoiceParser
from snackbox_invoices.extraction.parsers.rewe import ReweParser
from snackbox_invoices.extraction.parsers.selgros import SelgrosParser
from snackbox_invoices.extraction.parsers.sonderposten import SonderpostenParser
from snackbox_invoices.extraction.tokenizer import classify_lines
from snackbox_invoices.models.invoice import ParseResult

logger = logging.getLogger(__name__)

# Closed registry: the caller always declares the format, nothing is inferred
PARSERS: dict[str, InvoiceParser] = {
    parser.format_key: parser
    for parser in (ReweParser(), SelgrosParser(), SonderpostenParser())
}


def supported_formats() -> list[str]:
    return sorted(PARSERS)


def select_parser(format_key: str) -> InvoiceParser:
    """Look up the parser registered for ``format_key`` (case-insensitive)."""
    parser = PARSERS.get(format_key.strip().lower())
    if parser is None:
        raise UnknownFormatError(format_key, supported_formats())
    return parser


def parse_invoice(text: str, format_key: str) -> ParseResult:
    """Parse raw invoice text with the parser for ``format_key``.

    Raises UnknownFormatError for an unregistered format. Everything else is
    reported on the result: unreadable lines are listed in ``skipped_lines``
    and an invoice without recognizable items has ``success=False``.
    """
    parser = select_parser(format_key)
    if not text.strip():
        return ParseResult(success=False, error_message=NO_ITEMS_MESSAGE)
    return parser.parse_lines(classify_lines(text))


def read_invoice_text(path: str | Path) -> str:
    """Read the text of a .txt invoice, or the embedded text layer of a .pdf."""
    path = Path(path)
    if path.suffix.lower() == ".pdf":
        from snackbox_invoices.extraction.pdf_text import extract_text

        return extract_text(path)
    return path.read_text(encoding="utf-8")


def parse_file(path: str | Path, format_key: str) -> ParseResult:
    logger.info("Parsing %s as %s", path, format_key)
    return parse_invoice(read_invoice_text(path), format_key)
