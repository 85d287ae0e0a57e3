"""Parser for Selgros cash & carry invoices."""

import re

from pydantic import ValidationError

from snackbox_invoices.extraction.german import parse_amount, parse_date
from snackbox_invoices.extraction.parsers.base import (
    ITEM_CANDIDATE_KINDS,
    InvoiceParser,
    add_additional_costs,
    build_item,
    describe_error,
    merge_continuation,
    round_quantity,
    skip_line,
)
from snackbox_invoices.models.invoice import ClassifiedLine, InvoiceMetadata, ParseResult

# Pos. GTIN Bezeichnung Menge Inhalt VP Einzelpreis* Warenwert* MwSt
# 1 4059586509519 SCHWEINEGESCHNETZELTES GYROS 1,145 1 kg 8,400 9,62 7,0 %
_ITEM_RE = re.compile(
    r"^\s*(?P<pos>\d+)\s+(?P<gtin>\d{13}|\d{8})\s+(?P<name>.+?)\s+(?P<qty>[\d.,]+)\s+"
    r"[\d\s]+(?:kg|PG|ST|EI|BT|BE|DS|FL|GL|TB)\s+(?:[MA]\s+)?"
    r"(?P<unit>\S+)\s+(?P<total>\S+)\s+[\d,]+\s*%"
)

_DEPOSIT_RE = re.compile(r"\bPFAND\b", re.IGNORECASE)


class SelgrosParser(InvoiceParser):
    format_key = "selgros"
    supplier = "Selgros"

    def extract_metadata(self, text: str) -> InvoiceMetadata:
        meta = InvoiceMetadata(supplier=self.supplier)

        # "Belegnummer: 123456"
        m = re.search(r"Belegnummer:\s*(\d+)", text)
        if m:
            meta.invoice_number = m.group(1)

        # "Belegdatum: 20.12.2025 18:00"
        m = re.search(r"Belegdatum:\s*(\d{2}\.\d{2}\.\d{4})", text)
        if m:
            try:
                meta.invoice_date = parse_date(m.group(1))
            except ValueError:
                pass

        # Final amount due on its own line: "EUR 370,33"
        matches = re.findall(r"^EUR\s+([\d.,]+)\s*$", text, re.MULTILINE)
        if matches:
            try:
                meta.total_amount = parse_amount(matches[-1])
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
            if not m:
                continue

            name, i = merge_continuation(lines, i, m.group("name"))

            try:
                quantity = round_quantity(parse_amount(m.group("qty")))
                unit_price = parse_amount(m.group("unit"))
                total = parse_amount(m.group("total"))
            except ValueError as exc:
                skip_line(result, line, str(exc))
                continue

            if _DEPOSIT_RE.search(name):
                add_additional_costs(result.metadata, total)
                continue

            try:
                item = build_item(name, quantity, unit_price, total, article_number=m.group("gtin"))
            except ValidationError as exc:
                skip_line(result, line, describe_error(exc))
                continue
            result.items.append(item)
