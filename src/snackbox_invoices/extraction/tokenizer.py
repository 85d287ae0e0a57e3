"""Split raw invoice text into lines and classify each line by its shape.

Classification is format independent and deliberately coarse: it marks the lines
every parser must keep out of the item list (tax tables, discounts, payment and
signature footers, headers). Anything that does not look like one of those and
carries no price is UNKNOWN and left for the format parser to interpret, e.g. a
product name wrapped onto the line after its price.
"""

from __future__ import annotations

import re

from snackbox_invoices.extraction.german import AMOUNT_RE
from snackbox_invoices.models.invoice import ClassifiedLine, LineKind

_SIGNATURE_RE = re.compile(
    r"\b(?:TSE|Signatur\w*|Seriennummer|Transaktion\w*|Kartenzahlung|Mastercard|Visa|"
    r"Girocard|EC-Cash|PayPal|Geg\.|Gegeben|Rückgeld|Vielen Dank|IBAN|BIC|"
    r"Bankverbindung|Steuer-?Nr|USt-?Id(?:Nr)?)(?![A-Za-zÄÖÜäöüß])",
    re.IGNORECASE,
)
_SEPARATOR_RE = re.compile(r"^[-=_*.\s]{3,}$")
_HEADER_RE = re.compile(r"^(?:Pos\.?|Position|Art\.?-?Nr\.?)\s", re.IGNORECASE)
_DISCOUNT_RE = re.compile(
    r"\b(?:Bonus|Rabatt|Gutschein|Nachlass|Coupon|Preisvorteil|Skonto)(?:e|s|en)?\b", re.IGNORECASE
)
# "B= 7,0% 1,11 0,08 1,19", "7.0% net 1.11 tax 0.08 gross 1.19"
_TAX_RATE_LEAD_RE = re.compile(r"^(?:[A-D]\s*=?\s*)?\d{1,2}(?:[.,]\d{1,2})?\s*%")
_TAX_KEYWORD_RE = re.compile(
    r"\b(?:Netto|Brutto|MwSt|USt|Steuer)(?:betrag|summe|satz)?\b", re.IGNORECASE
)
_METADATA_RE = re.compile(
    r"\b(?:Datum|Beleg\w*|Rechnung\w*|Summe|Gesamtsumme|Zwischensumme|Gesamtbetrag|"
    r"Kunde\w*|Kassierer\w*|Uhrzeit|Markt|Filiale|Bestell\w*|Lieferschein\w*|Seite\s+\d)\b",
    re.IGNORECASE,
)
_TOTAL_ONLY_RE = re.compile(r"^EUR\s+" + AMOUNT_RE.pattern + r"$")
# "3 Stk x 1,75", "0,456 kg x 2,99 EUR/kg"
_QUANTITY_RE = re.compile(r"^[\d,]+\s*(?:Stk|kg)\s*x\s", re.IGNORECASE)
_WORD_RE = re.compile(r"[A-Za-zÄÖÜäöüß]{2,}")


def classify_line(text: str) -> LineKind:
    """Classify a single trimmed, non-blank line."""
    has_amount = AMOUNT_RE.search(text) is not None

    if _SIGNATURE_RE.search(text):
        return LineKind.SIGNATURE
    if _SEPARATOR_RE.match(text) or _HEADER_RE.match(text) or _TOTAL_ONLY_RE.match(text):
        return LineKind.METADATA
    if has_amount and _DISCOUNT_RE.search(text):
        return LineKind.DISCOUNT
    if _TAX_RATE_LEAD_RE.match(text) or _TAX_KEYWORD_RE.search(text):
        return LineKind.TAX_SUMMARY
    if _METADATA_RE.search(text):
        return LineKind.METADATA
    if _QUANTITY_RE.match(text):
        return LineKind.UNKNOWN
    if has_amount and _WORD_RE.search(text):
        return LineKind.ITEM
    return LineKind.UNKNOWN


def classify_lines(text: str) -> list[ClassifiedLine]:
    """Classify every non-blank line, keeping its index in the original text."""
    lines = []
    for line_no, raw in enumerate(text.splitlines()):
        stripped = raw.strip()
        if not stripped:
            continue
        lines.append(ClassifiedLine(line_no=line_no, raw_text=stripped, kind=classify_line(stripped)))
    return lines
