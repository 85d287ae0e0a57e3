"""German number and date conventions used by all supported suppliers."""

from __future__ import annotations

import datetime as _dt
import re
from decimal import Decimal, InvalidOperation

# A money-shaped token: "1,19", "1.234,56", "8,400", "0.10", "-0,25", "0,25-"
AMOUNT_PATTERN = r"(?<![\d.,])-?\d+(?:\.\d{3})*[.,]\d{2,3}-?(?![\d.,])"
AMOUNT_RE = re.compile(AMOUNT_PATTERN)

_DIGITS_RE = re.compile(r"\d+(?:\.\d+)?")
_DATE_RE = re.compile(r"(\d{1,2})\.(\d{1,2})\.(\d{2}|\d{4})")


def parse_amount(text: str) -> Decimal:
    """Parse a German-formatted amount (comma decimal, dot thousands).

    A lone dot followed by one or two digits is read as a decimal point, since
    some exports and OCR layers emit "0.10" for "0,10". Raises ValueError.
    """
    s = text.strip().replace("€", "").replace("EUR", "").replace(" ", "")
    negative = s.startswith("-") or s.endswith("-")
    s = s.strip("-")

    if "," in s:
        s = s.replace(".", "").replace(",", ".")
    elif "." in s:
        head, _, tail = s.rpartition(".")
        if head and len(tail) == 3:
            s = s.replace(".", "")

    if not _DIGITS_RE.fullmatch(s):
        raise ValueError(f"not an amount: {text!r}")
    try:
        value = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"not an amount: {text!r}") from exc
    return -value if negative else value


def find_amounts(text: str) -> list[str]:
    """Return every money-shaped token in a line, left to right."""
    return AMOUNT_RE.findall(text)


def parse_date(text: str) -> _dt.date:
    """Parse "dd.mm.yyyy" or "d.m.yy" (two-digit years are 20xx). Raises ValueError."""
    m = _DATE_RE.fullmatch(text.strip())
    if not m:
        raise ValueError(f"not a date: {text!r}")
    day, month, year = (int(g) for g in m.groups())
    if year < 100:
        year += 2000
    return _dt.date(year, month, day)
