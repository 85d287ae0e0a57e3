"""Base class for supplier-specific invoice parsers."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Optional

from pydantic import ValidationError

from snackbox_invoices.extraction.german import find_amounts, parse_amount
from snackbox_invoices.models.invoice import (
    MINOR_UNIT,
    ClassifiedLine,
    InvoiceMetadata,
    LineKind,
    ParsedItem,
    ParseResult,
    SkippedLine,
    TaxSummary,
)

logger = logging.getLogger(__name__)

NO_ITEMS_MESSAGE = "No items found in invoice"

# Lines after an item line that may still belong to its product name
CONTINUATION_WINDOW = 2

_TAX_RATE_RE = re.compile(r"(\d{1,2}(?:[.,]\d{1,2})?)\s*%")
_POSITION_RE = re.compile(r"^\d+\s")

# Lines the item scan looks at; everything else was claimed by the classifier
ITEM_CANDIDATE_KINDS = frozenset({LineKind.ITEM, LineKind.UNKNOWN})


class InvoiceParser(ABC):
    """Base class all supplier parsers inherit from.

    Subclasses provide metadata extraction and the item scan; the shared flow
    (tax tables, discount lines, the no-items outcome) lives here.
    """

    format_key: str
    supplier: str

    @abstractmethod
    def extract_metadata(self, text: str) -> InvoiceMetadata:
        """Pull invoice-level fields out of the full text."""

    @abstractmethod
    def parse_items(self, lines: list[ClassifiedLine], result: ParseResult) -> None:
        """Append recognized items (and skipped lines) to ``result``."""

    def parse_lines(self, lines: list[ClassifiedLine]) -> ParseResult:
        text = "\n".join(line.raw_text for line in lines)
        metadata = self.extract_metadata(text)
        metadata.supplier = metadata.supplier or self.supplier
        result = ParseResult(metadata=metadata)

        for line in lines:
            if line.kind == LineKind.TAX_SUMMARY:
                summary = parse_tax_summary(line.raw_text)
                if summary is None:
                    skip_line(result, line, "tax line without rate, net, tax and gross")
                else:
                    result.tax_summaries.append(summary)
            elif line.kind == LineKind.DISCOUNT:
                self._apply_discount(line, result)

        self.parse_items(lines, result)

        if not result.items:
            result.success = False
            result.error_message = NO_ITEMS_MESSAGE
        logger.info(
            "Parsed %s invoice: %d items, %d skipped lines",
            self.format_key, len(result.items), len(result.skipped_lines),
        )
        return result

    def _apply_discount(self, line: ClassifiedLine, result: ParseResult) -> None:
        amounts = find_amounts(line.raw_text)
        try:
            amount = abs(parse_amount(amounts[-1]))
        except (IndexError, ValueError):
            skip_line(result, line, "discount without a readable amount")
            return
        add_price_reduction(result.metadata, amount)


def parse_tax_summary(text: str) -> Optional[TaxSummary]:
    """Read a rate/net/tax/gross row. Returns None for header-only lines."""
    m = _TAX_RATE_RE.search(text)
    if not m:
        return None
    amounts = find_amounts(text[m.end():])
    if len(amounts) < 3:
        return None
    try:
        rate = parse_amount(m.group(1))
        net, tax, gross = (parse_amount(a) for a in amounts[:3])
    except ValueError:
        return None
    return TaxSummary(rate=rate, net=net, tax=tax, gross=gross)


def build_item(
    product_name: str,
    quantity: int,
    unit_price: Optional[Decimal],
    total_price: Decimal,
    article_number: Optional[str] = None,
    best_before_date=None,
) -> ParsedItem:
    """Create a ParsedItem, treating the line total as authoritative.

    When the printed unit price does not reproduce the total within one cent
    (weighed goods, rounded quantities), the unit price is derived from the
    total instead. Raises pydantic.ValidationError for out-of-domain values.
    """
    if quantity >= 1 and (
        unit_price is None or abs(total_price - quantity * unit_price) > MINOR_UNIT
    ):
        unit_price = (total_price / quantity).quantize(Decimal("0.0001"))
    return ParsedItem(
        product_name=" ".join(product_name.split()),
        quantity=quantity,
        unit_price=unit_price if unit_price is not None else total_price,
        total_price=total_price,
        article_number=article_number,
        best_before_date=best_before_date,
    )


def round_quantity(value: Decimal) -> int:
    """Round a (possibly fractional) quantity to a whole number, at least 1.

    Halves go to the even neighbour: 2,5 kg counts as 2 units, 3,5 kg as 4.
    """
    return max(1, int(value.quantize(Decimal("1"), rounding=ROUND_HALF_EVEN)))


def skip_line(result: ParseResult, line: ClassifiedLine, reason: str) -> None:
    logger.debug("Skipping line %d (%s): %r", line.line_no, reason, line.raw_text)
    result.skipped_lines.append(SkippedLine(line_no=line.line_no, text=line.raw_text, reason=reason))


def describe_error(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(err["msg"] for err in exc.errors())
    return str(exc)


def is_continuation(previous: ClassifiedLine, candidate: ClassifiedLine) -> bool:
    """True if ``candidate`` looks like a wrapped tail of the previous line's name."""
    return (
        candidate.kind == LineKind.UNKNOWN
        and candidate.line_no == previous.line_no + 1
        and not find_amounts(candidate.raw_text)
        and not _POSITION_RE.match(candidate.raw_text)
        and ":" not in candidate.raw_text.replace("MHD:", "")
    )


def merge_continuation(lines: list[ClassifiedLine], start: int, name: str) -> tuple[str, int]:
    """Append up to CONTINUATION_WINDOW wrapped lines starting at ``start`` to ``name``.

    Returns the merged name and the index of the first line not consumed.
    """
    i = start
    previous = lines[start - 1]
    while i < len(lines) and i - start < CONTINUATION_WINDOW and is_continuation(previous, lines[i]):
        name = f"{name} {lines[i].raw_text}"
        previous = lines[i]
        i += 1
    return name, i


def add_price_reduction(metadata: InvoiceMetadata, amount: Decimal) -> None:
    metadata.price_reduction = (metadata.price_reduction or Decimal("0")) + amount


def add_additional_costs(metadata: InvoiceMetadata, amount: Decimal) -> None:
    metadata.additional_costs = (metadata.additional_costs or Decimal("0")) + amount
