"""
Product Matcher

Resolves free-text product references ("aples", "fresh tomatoe", "banan")
coming from voice transcripts or typed input to catalog products.

Matching is an ordered cascade of strategies; the first strategy with a
definite answer wins, so an exact (differently cased) name always beats a
fuzzy hit:

1. exact_match            - case-insensitive name equality      -> exact
2. singular_plural_match  - trailing "s" stripped/added         -> exact
3. cleaned_exact_match    - "fresh"/"organic"/... removed       -> high
4. fuzzy_match            - weighted approximate search         -> high/medium/low
5. partial_word_match     - word containment / 3-char prefixes  -> low
6. no_match               - suggestions from the first word     -> none

Everything here is pure and synchronous: functions of (query, catalog).

Author: TM3
"""
import logging
import re
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from rapidfuzz import fuzz

from freshcart.domain.matching import MatchConfidence, MatchResult
from freshcart.domain.product import Product

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURATION
# ============================================================================

# Fuzzy search: distances are in [0, 1], 0 = perfect match
FUZZY_THRESHOLD = 0.4
ALTERNATIVE_MAX_SCORE = 0.5
HIGH_CONFIDENCE_MAX_SCORE = 0.10
MEDIUM_CONFIDENCE_MAX_SCORE = 0.30
NAME_WEIGHT = 0.8
DESCRIPTION_WEIGHT = 0.2
MIN_MATCH_CHAR_LENGTH = 2
FUZZY_SEARCH_LIMIT = 5

# A substring hit is worth less than a full-string hit; short queries
# covering a small part of a long name are worth even less
PARTIAL_BASE_FACTOR = 0.6

MAX_ALTERNATIVES = 3
PARTIAL_WORD_MIN_LENGTH = 3
PREFIX_LENGTH = 3

# English-only decoration words
DECORATION_PREFIXES = ("fresh", "organic", "premium", "quality", "best", "top", "local", "farm")
DECORATION_SUFFIXES = ("fruit", "vegetable", "item", "product", "food")

_PREFIX_RE = re.compile(r"^(?:%s)\s+" % "|".join(DECORATION_PREFIXES), re.IGNORECASE)
_SUFFIX_RE = re.compile(r"\s+(?:%s)$" % "|".join(DECORATION_SUFFIXES), re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")

ScoredProduct = Tuple[Product, float]
Strategy = Callable[[str, Sequence[Product]], Optional[MatchResult]]


# ============================================================================
# HELPERS
# ============================================================================

def normalize(text: Optional[str]) -> str:
    """Lowercase, trim and collapse internal whitespace"""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text.strip().lower())


def plural_forms(query: str) -> List[str]:
    """
    Singular/plural variants of a query (trailing "s" heuristic).

    "apples" -> ["apple", "apples"], "apple" -> ["apple", "apples"]
    """
    if query.endswith("s"):
        return [query[:-1], query]
    return [query, query + "s"]


def strip_decorations(query: str) -> str:
    """Remove one leading descriptive word and one trailing category word"""
    cleaned = _PREFIX_RE.sub("", query)
    cleaned = _SUFFIX_RE.sub("", cleaned)
    return cleaned.strip()


def _pick_among_equals(
    candidates: List[Product],
    confidence: MatchConfidence,
    match_type: str
) -> MatchResult:
    """
    Resolve several products sharing the same exact form.

    The product with the most stock wins (catalog order breaks ties); the
    others become alternatives and the result is flagged ambiguous.
    """
    if len(candidates) == 1:
        return MatchResult(product=candidates[0], confidence=confidence, match_type=match_type)

    ranked = sorted(candidates, key=lambda p: -p.stock_quantity)
    logger.warning(
        f"Ambiguous {match_type}: {[p.name for p in candidates]} -> picked '{ranked[0].name}'"
    )
    return MatchResult(
        product=ranked[0],
        confidence=confidence,
        alternatives=ranked[1:1 + MAX_ALTERNATIVES],
        match_type=match_type,
        ambiguous=True
    )


def _products_named(forms: Iterable[str], catalog: Sequence[Product]) -> List[Product]:
    wanted = set(forms)
    return [p for p in catalog if normalize(p.name) in wanted]


# ============================================================================
# FUZZY SCORING
# ============================================================================

def _similarity(query: str, text: str) -> float:
    """
    Similarity in [0, 1] between a normalized query and a normalized text.

    Full-string similarity, or a discounted best-substring similarity when
    the query is no longer than the text (typo inside a longer name).
    """
    if not query or not text:
        return 0.0

    full = fuzz.ratio(query, text) / 100.0
    if len(query) > len(text):
        return full

    coverage = len(query) / len(text)
    factor = PARTIAL_BASE_FACTOR + (1.0 - PARTIAL_BASE_FACTOR) * coverage
    partial = fuzz.partial_ratio(query, text) / 100.0 * factor
    return max(full, partial)


def score_product(query: str, product: Product) -> float:
    """
    Weighted distance of a product from a normalized query (0 = perfect).

    The name carries NAME_WEIGHT and the description DESCRIPTION_WEIGHT. A
    description can only pull a product closer, never push a good name
    match away.
    """
    name_distance = 1.0 - _similarity(query, normalize(product.name))

    description = normalize(product.description)
    if description:
        description_distance = min(name_distance, 1.0 - _similarity(query, description))
    else:
        description_distance = name_distance

    return NAME_WEIGHT * name_distance + DESCRIPTION_WEIGHT * description_distance


def fuzzy_search(
    query: str,
    catalog: Sequence[Product],
    limit: int = FUZZY_SEARCH_LIMIT,
    threshold: float = FUZZY_THRESHOLD
) -> List[ScoredProduct]:
    """
    Approximate search over the catalog.

    Returns:
        Up to ``limit`` (product, distance) pairs with distance <= threshold,
        best first. Equal distances keep catalog order.
    """
    normalized = normalize(query)
    if len(normalized) < MIN_MATCH_CHAR_LENGTH:
        return []

    scored = []
    for product in catalog:
        score = score_product(normalized, product)
        if score <= threshold:
            scored.append((product, score))

    scored.sort(key=lambda pair: pair[1])
    return scored[:limit]


def confidence_for_score(score: float) -> MatchConfidence:
    if score <= HIGH_CONFIDENCE_MAX_SCORE:
        return MatchConfidence.HIGH
    if score <= MEDIUM_CONFIDENCE_MAX_SCORE:
        return MatchConfidence.MEDIUM
    return MatchConfidence.LOW


# ============================================================================
# STRATEGIES
# ============================================================================

def exact_match(query: str, catalog: Sequence[Product]) -> Optional[MatchResult]:
    candidates = _products_named([query], catalog)
    if not candidates:
        return None
    return _pick_among_equals(candidates, MatchConfidence.EXACT, "exact_match")


def singular_plural_match(query: str, catalog: Sequence[Product]) -> Optional[MatchResult]:
    candidates = _products_named(plural_forms(query), catalog)
    if not candidates:
        return None
    return _pick_among_equals(candidates, MatchConfidence.EXACT, "singular_plural_match")


def cleaned_exact_match(query: str, catalog: Sequence[Product]) -> Optional[MatchResult]:
    cleaned = strip_decorations(query)
    if cleaned == query or len(cleaned) < MIN_MATCH_CHAR_LENGTH:
        return None

    candidates = _products_named(plural_forms(cleaned), catalog)
    if not candidates:
        return None
    return _pick_among_equals(candidates, MatchConfidence.HIGH, "cleaned_exact_match")


def fuzzy_match(query: str, catalog: Sequence[Product]) -> Optional[MatchResult]:
    results = fuzzy_search(query, catalog, limit=FUZZY_SEARCH_LIMIT)
    if not results:
        return None

    best_product, best_score = results[0]
    alternatives = [
        product for product, score in results[1:1 + MAX_ALTERNATIVES]
        if score <= ALTERNATIVE_MAX_SCORE
    ]
    return MatchResult(
        product=best_product,
        confidence=confidence_for_score(best_score),
        alternatives=alternatives,
        match_type=f"fuzzy_match_score_{best_score:.3f}",
        score=best_score
    )


def _shares_prefix(word: str, product_word: str) -> bool:
    if len(product_word) < PREFIX_LENGTH:
        return False
    return (
        product_word.startswith(word[:PREFIX_LENGTH])
        or word.startswith(product_word[:PREFIX_LENGTH])
    )


def partial_word_match(query: str, catalog: Sequence[Product]) -> Optional[MatchResult]:
    words = [w for w in query.split(" ") if len(w) >= PARTIAL_WORD_MIN_LENGTH]
    if not words:
        return None

    matches = []
    for product in catalog:
        name = normalize(product.name)
        name_words = name.split(" ")
        if any(
            word in name
            or name in word
            or any(_shares_prefix(word, name_word) for name_word in name_words)
            for word in words
        ):
            matches.append(product)

    if not matches:
        return None
    return MatchResult(
        product=matches[0],
        confidence=MatchConfidence.LOW,
        alternatives=matches[1:1 + MAX_ALTERNATIVES],
        match_type="partial_word_match"
    )


def suggest_products(query: str, catalog: Sequence[Product], limit: int = MAX_ALTERNATIVES) -> List[Product]:
    """
    Suggestions for a query nothing matched: fuzzy hits on the first word,
    then products whose name (or a name word) starts with its first two
    letters. Deduplicated, order preserved.
    """
    first_word = query.split(" ")[0] if query else ""
    if len(first_word) < 2:
        return []

    fuzzy_hits = [product for product, _ in fuzzy_search(first_word, catalog, limit=limit * 2)]

    head = first_word[:2]
    letter_hits = []
    for product in catalog:
        name = normalize(product.name)
        if name.startswith(head) or any(word.startswith(head) for word in name.split(" ")):
            letter_hits.append(product)

    suggestions = []
    seen = set()
    for product in fuzzy_hits + letter_hits:
        if product.id in seen:
            continue
        seen.add(product.id)
        suggestions.append(product)
    return suggestions[:limit]


STRATEGIES: Tuple[Strategy, ...] = (
    exact_match,
    singular_plural_match,
    cleaned_exact_match,
    fuzzy_match,
    partial_word_match,
)


# ============================================================================
# ENTRY POINTS
# ============================================================================

def find_product(query: Optional[str], catalog: Sequence[Product]) -> MatchResult:
    """
    Resolve a free-text product reference against a catalog.

    Never raises for empty or odd input: an empty/whitespace query yields
    confidence ``none`` with no alternatives.
    """
    normalized = normalize(query)
    if not normalized:
        return MatchResult(
            product=None,
            confidence=MatchConfidence.NONE,
            alternatives=[],
            match_type="empty_query"
        )

    for strategy in STRATEGIES:
        result = strategy(normalized, catalog)
        if result is not None:
            logger.debug(
                f"Matched '{query}' -> '{result.product.name}' "
                f"({result.confidence.value}, {result.match_type})"
            )
            return result

    suggestions = suggest_products(normalized, catalog)
    logger.debug(f"No match for '{query}', suggestions: {[p.name for p in suggestions]}")
    return MatchResult(
        product=None,
        confidence=MatchConfidence.NONE,
        alternatives=suggestions,
        match_type="no_match"
    )


class ProductMatcher:
    """
    Matcher bound to one catalog snapshot.

    The catalog is copied into an immutable tuple; rebuild the matcher (see
    CatalogSnapshot) whenever the product set changes.
    """

    def __init__(self, products: Iterable[Product]):
        self.products: Tuple[Product, ...] = tuple(products)

    def find_product(self, query: Optional[str]) -> MatchResult:
        return find_product(query, self.products)

    def search(self, term: str, limit: Optional[int] = None) -> List[Product]:
        """
        Products relevant to a search term: fuzzy hits best-first, then any
        remaining product whose name or description contains the term.
        """
        normalized = normalize(term)
        if not normalized:
            return list(self.products)[:limit] if limit else list(self.products)

        hits = [product for product, _ in fuzzy_search(normalized, self.products, limit=len(self.products))]
        seen = {product.id for product in hits}
        for product in self.products:
            if product.id in seen:
                continue
            if normalized in normalize(product.name) or normalized in normalize(product.description):
                hits.append(product)
                seen.add(product.id)

        return hits[:limit] if limit else hits
