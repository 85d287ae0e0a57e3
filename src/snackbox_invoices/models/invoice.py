"""Pydantic models for parsed supplier invoices and the assembled invoice record."""

import datetime as _dt
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from snackbox_invoices.models.catalog import MatchResult

# One cent: the tolerance between a line total and quantity x unit price
MINOR_UNIT = Decimal("0.01")


class LineKind(str, Enum):
    ITEM = "item"
    TAX_SUMMARY = "tax_summary"
    DISCOUNT = "discount"
    SIGNATURE = "signature"
    METADATA = "metadata"
    UNKNOWN = "unknown"


class ClassifiedLine(BaseModel):
    """One non-blank physical line of invoice text with its shape classification."""

    line_no: int  # zero-based index into the original text
    raw_text: str
    kind: LineKind

    model_config = {"frozen": True}


class ParsedItem(BaseModel):
    """A single line item recognized on a supplier invoice."""

    product_name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)
    total_price: Decimal = Field(ge=0)
    article_number: Optional[str] = None
    best_before_date: Optional[_dt.date] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_line_total(self) -> "ParsedItem":
        if abs(self.total_price - self.quantity * self.unit_price) > MINOR_UNIT:
            raise ValueError(
                f"total {self.total_price} does not match "
                f"{self.quantity} x {self.unit_price}"
            )
        return self


class InvoiceMetadata(BaseModel):
    """Invoice-level fields. Anything a format does not expose stays None."""

    invoice_number: Optional[str] = None
    invoice_date: Optional[_dt.date] = None
    supplier: Optional[str] = None
    total_amount: Optional[Decimal] = None
    additional_costs: Optional[Decimal] = None
    price_reduction: Optional[Decimal] = None
    notes: Optional[str] = None


class TaxSummary(BaseModel):
    """One row of a VAT table (rate, net, tax, gross). Informational only."""

    rate: Decimal
    net: Decimal
    tax: Decimal
    gross: Decimal


class SkippedLine(BaseModel):
    line_no: int
    text: str
    reason: str


class ParseResult(BaseModel):
    """Best-effort outcome of parsing one invoice text."""

    success: bool = True
    error_message: Optional[str] = None
    items: list[ParsedItem] = Field(default_factory=list)
    metadata: Optional[InvoiceMetadata] = None
    tax_summaries: list[TaxSummary] = Field(default_factory=list)
    skipped_lines: list[SkippedLine] = Field(default_factory=list)


class AnnotatedItem(BaseModel):
    """A parsed item together with its catalog match."""

    item: ParsedItem
    match: MatchResult


class ItemSelection(BaseModel):
    """Caller decision for one annotated item, referenced by its position."""

    index: int = Field(ge=0)
    add_to_stock: bool = True
    product_id: Optional[int] = None
    best_before_date: Optional[_dt.date] = None


class InvoiceItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class InvoiceItem(BaseModel):
    id: str = Field(default_factory=_new_id)
    product_id: Optional[int] = None
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    best_before_date: Optional[_dt.date] = None
    article_number: Optional[str] = None
    notes: str = ""
    status: InvoiceItemStatus = InvoiceItemStatus.PENDING


class Invoice(BaseModel):
    """A supplier invoice as persisted: a financial record independent of stock."""

    id: str = Field(default_factory=_new_id)
    invoice_number: Optional[str] = None
    invoice_date: Optional[_dt.date] = None
    supplier: Optional[str] = None
    total_amount: Decimal = Decimal("0")
    additional_costs: Decimal = Decimal("0")
    price_reduction: Decimal = Decimal("0")
    notes: str = ""
    created_at: _dt.datetime = Field(default_factory=lambda: _dt.datetime.now(_dt.timezone.utc))
    items: list[InvoiceItem] = Field(default_factory=list)


class ItemError(BaseModel):
    """Per-item failure reported by invoice assembly."""

    index: int
    product_name: str
    reason: str
