"""Reconcile parsed item names against the product catalog.

Tiers are tried in order and the first hit wins: barcode/article number,
exact name (case and whitespace insensitive), fuzzy name, none. The fuzzy tier
scores ``difflib.SequenceMatcher.ratio()`` on cleaned names (best-before dates
and pack sizes removed) and accepts the best candidate at or above the
threshold. Ties go to the shorter catalog name, then the lower product id.
"""

from __future__ import annotations

import re
from difflib import SequenceMatcher
from typing import Iterable, Optional, Protocol, Sequence

from snackbox_invoices import config
from snackbox_invoices.models.catalog import (
    NO_MATCH,
    MatchResult,
    MatchType,
    ProductCatalogEntry,
)
from snackbox_invoices.models.invoice import AnnotatedItem, ParsedItem

_MHD_RE = re.compile(r"MHD:\s*\d{1,2}\.\d{1,2}\.\d{2,4}", re.IGNORECASE)
# "500g", "963,9g", "1,5l", "330ml", "2kg"
_SIZE_RE = re.compile(r"\b\d+(?:[.,]\d+)?\s*(?:g|kg|mg|l|ml|cl)\b", re.IGNORECASE)


class CatalogSource(Protocol):
    def get_catalog_snapshot(self) -> list[ProductCatalogEntry]:
        ...


def normalize_name(name: str) -> str:
    """Case-fold and collapse whitespace."""
    return " ".join(name.split()).casefold()


def clean_name(name: str) -> str:
    """normalize_name() plus removal of best-before dates and pack sizes."""
    name = _MHD_RE.sub(" ", name)
    name = _SIZE_RE.sub(" ", name)
    return normalize_name(name)


def similarity(a: str, b: str) -> float:
    """Similarity of two product names in [0, 1]."""
    a_clean, b_clean = clean_name(a), clean_name(b)
    if not a_clean or not b_clean:
        return 0.0
    return SequenceMatcher(None, a_clean, b_clean).ratio()


def _preferred(entries: Iterable[ProductCatalogEntry]) -> Optional[ProductCatalogEntry]:
    return min(entries, key=lambda e: (len(e.name), e.id), default=None)


def match_item(
    item: ParsedItem,
    catalog: Sequence[ProductCatalogEntry],
    threshold: float | None = None,
) -> MatchResult:
    """Return the best catalog match for a parsed item. Never mutates its inputs."""
    if threshold is None:
        threshold = config.MATCH_THRESHOLD
    if not catalog:
        return NO_MATCH

    if item.article_number:
        entry = _preferred(e for e in catalog if item.article_number in e.barcodes)
        if entry is not None:
            return MatchResult(
                matched_product_id=entry.id,
                matched_product_name=entry.name,
                match_type=MatchType.BARCODE,
                confidence=1.0,
            )

    wanted = normalize_name(item.product_name)
    entry = _preferred(e for e in catalog if normalize_name(e.name) == wanted)
    if entry is not None:
        return MatchResult(
            matched_product_id=entry.id,
            matched_product_name=entry.name,
            match_type=MatchType.EXACT,
            confidence=1.0,
        )

    best: Optional[tuple[float, ProductCatalogEntry]] = None
    for entry in catalog:
        score = similarity(item.product_name, entry.name)
        if best is None or (-score, len(entry.name), entry.id) < (-best[0], len(best[1].name), best[1].id):
            best = (score, entry)

    if best is None or best[0] < threshold:
        return NO_MATCH
    score, entry = best
    return MatchResult(
        matched_product_id=entry.id,
        matched_product_name=entry.name,
        match_type=MatchType.FUZZY,
        confidence=round(score, 4),
    )


def annotate_items(
    items: Sequence[ParsedItem],
    catalog: Sequence[ProductCatalogEntry],
    threshold: float | None = None,
) -> list[AnnotatedItem]:
    """Match every item, keeping input order."""
    return [AnnotatedItem(item=item, match=match_item(item, catalog, threshold)) for item in items]
