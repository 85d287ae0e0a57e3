"""Exceptions raised by the ingestion core."""

from __future__ import annotations

from typing import Optional


class SnackboxError(Exception):
    """Base class for all errors raised by snackbox_invoices."""


class UnknownFormatError(SnackboxError):
    """No parser is registered for the requested invoice format."""

    def __init__(self, format_key: str, supported: list[str]) -> None:
        self.format_key = format_key
        self.supported = supported
        super().__init__(
            f"Unknown invoice format {format_key!r}. Supported: {', '.join(supported)}"
        )


class InsufficientStockError(SnackboxError):
    """Appending an event would drive storage or shelf stock below zero."""

    def __init__(self, batch_id: Optional[int], location: str, available: int, requested: int) -> None:
        self.batch_id = batch_id
        self.location = location
        self.available = available
        self.requested = requested
        where = "" if batch_id is None else f" for batch {batch_id}"
        super().__init__(
            f"Not enough stock {location}{where}. Available: {available}, requested: {requested}"
        )


class MalformedEventError(SnackboxError):
    """A shelving event has a quantity or timestamp outside its domain."""


class LedgerStoreError(SnackboxError):
    """The ledger store could not be read or written."""
