"""Product catalog snapshot entries and match results."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ProductCatalogEntry(BaseModel):
    id: int
    name: str
    barcodes: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class MatchType(str, Enum):
    BARCODE = "barcode"
    EXACT = "exact"
    FUZZY = "fuzzy"
    NONE = "none"


class MatchResult(BaseModel):
    matched_product_id: Optional[int] = None
    matched_product_name: Optional[str] = None
    match_type: MatchType = MatchType.NONE
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @property
    def matched(self) -> bool:
        return self.match_type != MatchType.NONE


NO_MATCH = MatchResult()
