"""
Match result value objects produced by the product matcher.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from freshcart.domain.product import Product


class MatchConfidence(str, Enum):
    EXACT = "exact"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


@dataclass
class MatchResult:
    """
    Outcome of resolving a free-text product reference.

    match_type tags the strategy that produced the result (diagnostics);
    score is the fuzzy distance (0 = perfect) when fuzzy search decided.
    ambiguous is set when several products matched the same exact form.
    """
    product: Optional[Product]
    confidence: MatchConfidence
    alternatives: List[Product] = field(default_factory=list)
    match_type: str = "no_match"
    score: Optional[float] = None
    ambiguous: bool = False

    @property
    def found(self) -> bool:
        return self.product is not None

    @property
    def is_confident(self) -> bool:
        """exact/high matches are echoed without a qualifying note"""
        return self.confidence in (MatchConfidence.EXACT, MatchConfidence.HIGH)
