"""Parser for REWE till receipts."""

import re

from pydantic import ValidationError

from snackbox_invoices.extraction.german import parse_amount, parse_date
from snackbox_invoices.extraction.parsers.base import (
    ITEM_CANDIDATE_KINDS,
    InvoiceParser,
    add_price_reduction,
    build_item,
    describe_error,
    skip_line,
)
from snackbox_invoices.models.invoice import ClassifiedLine, InvoiceMetadata, ParseResult

# "POM.LEBERW.FEIN 1,19 B" (the trailing letter is the VAT class)
_ITEM_RE = re.compile(
    r"^(?P<name>[A-ZÄÖÜ0-9][A-ZÄÖÜß0-9 .,&%/+'\-]*?)\s+(?P<price>\S+)\s+(?P<tax>[AB])\s*\*?$"
)
# "3 Stk x 1,75"
_QUANTITY_RE = re.compile(r"^(?P<qty>\d+)\s*Stk\s*x\s*(?P<unit>\S+)$")
# "0,456 kg x 2,99 EUR/kg"
_WEIGHT_RE = re.compile(r"^[\d,]+\s*kg\s*x\s")


class ReweParser(InvoiceParser):
    format_key = "rewe"
    supplier = "REWE"

    def extract_metadata(self, text: str) -> InvoiceMetadata:
        meta = InvoiceMetadata(supplier=self.supplier)

        # "Datum: 29.12.2025"
        m = re.search(r"Datum:\s*(\d{2}\.\d{2}\.\d{4})", text)
        if m:
            try:
                meta.invoice_date = parse_date(m.group(1))
            except ValueError:
                pass

        # "Beleg-Nr. 9862"
        m = re.search(r"Beleg-Nr\.\s*(\d+)", text)
        if m:
            meta.invoice_number = m.group(1)

        # "SUMME EUR 34,21"
        m = re.search(r"SUMME\s+EUR\s+(-?[\d.,]+)", text)
        if m:
            try:
                meta.total_amount = parse_amount(m.group(1))
            except ValueError:
                pass

        return meta

    def parse_items(self, lines: list[ClassifiedLine], result: ParseResult) -> None:
        i = 0
        while i < len(lines):
            line = lines[i]
            i += 1
            if line.kind not in ITEM_CANDIDATE_KINDS:
                continue
            m = _ITEM_RE.match(line.raw_text)
            if not m or not re.search(r"[A-ZÄÖÜ]{2,}", m.group("name")):
                continue

            try:
                total = parse_amount(m.group("price"))
            except ValueError as exc:
                skip_line(result, line, str(exc))
                continue

            if total < 0:
                # Returns and deposit refunds lower the receipt total
                add_price_reduction(result.metadata, -total)
                continue

            quantity = 1
            unit_price = total
            if i < len(lines):
                follow = lines[i].raw_text
                qm = _QUANTITY_RE.match(follow)
                if qm:
                    quantity = int(qm.group("qty"))
                    try:
                        unit_price = parse_amount(qm.group("unit"))
                    except ValueError:
                        unit_price = None
                    i += 1
                elif _WEIGHT_RE.match(follow):
                    i += 1

            try:
                item = build_item(m.group("name"), quantity, unit_price, total)
            except ValidationError as exc:
                skip_line(result, line, describe_error(exc))
                continue
            result.items.append(item)

