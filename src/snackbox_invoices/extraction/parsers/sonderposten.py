"""Parser for Lebensmittel-Sonderposten (Hapex GmbH) online shop invoices."""

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
    skip_line,
)
from snackbox_invoices.models.invoice import ClassifiedLine, InvoiceMetadata, ParseResult

# 1 SW25617 M&Ms USA Peanut Butter Chocolate Candies 963,9g MHD:30.7.25 2 7 % 21,00 € 42,00 €
# 24 Versand + Verpackungskosten 1 7 % 6,99 € 6,99 €
_ITEM_RE = re.compile(
    r"^\s*(?P<pos>\d+)\s+(?:(?P<article>SW\d+)\s+)?(?P<name>.+?)\s+(?P<qty>\d+)\s+\d+\s*%\s+"
    r"(?P<unit>\S+)\s*€\s+(?P<total>\S+)\s*€"
)
_MHD_RE = re.compile(r"\s*MHD:\s*(\d{1,2}\.\d{1,2}\.\d{2,4})\s*")
_SHIPPING_RE = re.compile(r"Versand|Verpackungskosten", re.IGNORECASE)


class SonderpostenParser(InvoiceParser):
    format_key = "sonderposten"
    supplier = "Lebensmittel-Sonderposten"

    def extract_metadata(self, text: str) -> InvoiceMetadata:
        meta = InvoiceMetadata(supplier=self.supplier)

        # "Belegnummer 100234"
        m = re.search(r"Belegnummer\s+(\d+)", text)
        if m:
            meta.invoice_number = m.group(1)

        # "Datum: 21.07.2025, 12:45:24"
        m = re.search(r"Datum:\s+(\d{2}\.\d{2}\.\d{4})", text)
        if m:
            try:
                meta.invoice_date = parse_date(m.group(1))
            except ValueError:
                pass

        # "Gesamtsumme 48,99 €"
        m = re.search(r"(?:Gesamtsumme|Gesamtbetrag|Rechnungsbetrag)\D*?([\d.,]+)\s*€", text)
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
            if not m:
                continue

            name, i = merge_continuation(lines, i, m.group("name"))

            try:
                quantity = int(m.group("qty"))
                unit_price = parse_amount(m.group("unit"))
                total = parse_amount(m.group("total"))
            except ValueError as exc:
                skip_line(result, line, str(exc))
                continue

            if _SHIPPING_RE.search(name):
                add_additional_costs(result.metadata, total)
                continue

            best_before = None
            mhd = _MHD_RE.search(name)
            if mhd:
                try:
                    best_before = parse_date(mhd.group(1))
                except ValueError:
                    pass
                name = _MHD_RE.sub(" ", name)

            try:
                item = build_item(
                    name,
                    quantity,
                    unit_price,
                    total,
                    article_number=m.group("article"),
                    best_before_date=best_before,
                )
            except ValidationError as exc:
                skip_line(result, line, describe_error(exc))
                continue
            result.items.append(item)
