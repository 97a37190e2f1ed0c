"""
Multi-signal relevance scoring of catalog products against image attributes.

Each signal is an independent pure function returning (points, reason).
A product's score is the sum over SIGNALS, evaluated in order; the
small-catalog fallback is last because it depends on the score
accumulated by the others. Adding a rule means adding a function to
SIGNALS and a weight to DEFAULT_WEIGHTS.

Signal weights are loaded from the environment to allow tuning without
code changes. Their relative order (objects, brand, categories, fuzzy,
colors, materials) is a business decision; keep it when re-tuning.
"""

import os
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from rapidfuzz import fuzz

from .attributes import VisualAttributes
from .catalog import CatalogEntry

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = {
    "object":        int(os.environ.get("SCORE_OBJECT_W", "40")),
    "category":      int(os.environ.get("SCORE_CATEGORY_W", "30")),
    "color":         int(os.environ.get("SCORE_COLOR_W", "20")),
    "material":      int(os.environ.get("SCORE_MATERIAL_W", "15")),
    "brand":         int(os.environ.get("SCORE_BRAND_W", "50")),
    "fuzzy":         int(os.environ.get("SCORE_FUZZY_W", "30")),
    "small_catalog": int(os.environ.get("SCORE_SMALL_CATALOG_W", "10")),
}

# Fuzzy matches are accepted below this normalized distance (0 = identical).
FUZZY_THRESHOLD = float(os.environ.get("FUZZY_THRESHOLD", "0.7"))

FUZZY_SCORERS = {
    "token_set_ratio": fuzz.token_set_ratio,
    "token_sort_ratio": fuzz.token_sort_ratio,
    "partial_ratio": fuzz.partial_ratio,
    "ratio": fuzz.ratio,
    "WRatio": fuzz.WRatio,
}
DEFAULT_FUZZY_SCORER = os.environ.get("FUZZY_SCORER", "token_set_ratio")

# Catalogs at or below this size give zero-score products a flat bonus.
SMALL_CATALOG_FALLBACK_SIZE = int(os.environ.get("SMALL_CATALOG_FALLBACK_SIZE", "5"))


def resolve_weights(overrides: Optional[Mapping[str, int]] = None) -> Dict[str, int]:
    """
    Merge weight overrides onto DEFAULT_WEIGHTS.

    Raises:
        ValueError: On unknown signal names or weights that are not
            non-negative integers.
    """
    weights = dict(DEFAULT_WEIGHTS)
    for name, value in (overrides or {}).items():
        if name not in weights:
            raise ValueError(f"Unknown scoring signal: {name!r}")
        weights[name] = value

    for name, value in weights.items():
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"Weight for {name!r} must be a non-negative integer, got {value!r}")
    return weights


def resolve_fuzzy_scorer(name: str) -> Callable[..., float]:
    try:
        return FUZZY_SCORERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown fuzzy scorer {name!r}; expected one of {sorted(FUZZY_SCORERS)}"
        ) from None


def round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


@dataclass
class ScoringState:
    """Per-product inputs shared by every signal."""

    product_text: str
    catalog_size: int
    weights: Dict[str, int]
    fuzzy_threshold: float = FUZZY_THRESHOLD
    fuzzy_scorer: Callable[..., float] = fuzz.token_set_ratio
    score: int = 0


Signal = Callable[[VisualAttributes, CatalogEntry, ScoringState], Tuple[int, Optional[str]]]


def _contained(terms: Sequence[str], text: str) -> List[str]:
    return [term for term in terms if term.strip() and term.lower() in text]


def object_signal(attributes, product, state):
    matches = _contained(attributes.objects, state.product_text)
    if not matches:
        return 0, None
    return len(matches) * state.weights["object"], f"Matches objects: {', '.join(matches)}"


def category_signal(attributes, product, state):
    own_category = (product.category or "").lower()
    matches = [
        cat for cat in attributes.categories
        if cat.strip() and (cat.lower() in state.product_text or cat.lower() in own_category)
    ]
    if not matches:
        return 0, None
    return len(matches) * state.weights["category"], f"Matches categories: {', '.join(matches)}"


def color_signal(attributes, product, state):
    matches = _contained(attributes.colors, state.product_text)
    if not matches:
        return 0, None
    return len(matches) * state.weights["color"], f"Matches colors: {', '.join(matches)}"


def material_signal(attributes, product, state):
    matches = _contained(attributes.materials, state.product_text)
    if not matches:
        return 0, None
    return len(matches) * state.weights["material"], f"Matches materials: {', '.join(matches)}"


def brand_signal(attributes, product, state):
    brand = attributes.brand.strip()
    if not brand or brand.lower() not in state.product_text:
        return 0, None
    return state.weights["brand"], f"Brand match: {attributes.brand}"


def fuzzy_signal(attributes, product, state):
    """
    Approximate text similarity between the attribute query and the product.

    Catches paraphrases that the substring signals miss, e.g. "sneaker"
    against "running shoe". Similarity is scorer output / 100 and the
    normalized distance is 1 - similarity.
    """
    query = attributes.fuzzy_query().lower()
    if not query or not state.product_text.strip():
        return 0, None

    similarity = state.fuzzy_scorer(query, state.product_text) / 100.0
    # rounding strips float noise so 30% sits exactly on a 0.7 threshold
    distance = round(1.0 - similarity, 10)
    if distance >= state.fuzzy_threshold:
        return 0, None

    points = round_half_up(similarity * state.weights["fuzzy"])
    if points <= 0:
        return 0, None
    return points, f"Text similarity match ({round_half_up(similarity * 100)}% similar)"


def small_catalog_signal(attributes, product, state):
    if state.catalog_size <= SMALL_CATALOG_FALLBACK_SIZE and state.score == 0:
        return state.weights["small_catalog"], "Included due to small catalog size"
    return 0, None


SIGNALS: List[Signal] = [
    object_signal,
    category_signal,
    color_signal,
    material_signal,
    brand_signal,
    fuzzy_signal,
    small_catalog_signal,
]


def compute_score(attributes: VisualAttributes,
                  product: CatalogEntry,
                  catalog_size: int,
                  weights: Optional[Mapping[str, int]] = None,
                  fuzzy_threshold: float = FUZZY_THRESHOLD,
                  fuzzy_scorer: Callable[..., float] = None,
                  signals: Sequence[Signal] = None) -> Tuple[int, List[str]]:
    """
    Score one product against the extracted attributes.

    Args:
        attributes: Attributes extracted from the query image.
        product: Catalog entry being scored.
        catalog_size: Number of products in the catalog being searched.
        weights: Full weight table (see resolve_weights). Defaults to
            DEFAULT_WEIGHTS.
        fuzzy_threshold: Maximum normalized distance for the fuzzy signal.
        fuzzy_scorer: rapidfuzz scorer returning 0-100.
        signals: Ordered signal functions. Defaults to SIGNALS.

    Returns:
        Tuple of (non-negative integer score, list of reasons).
    """
    state = ScoringState(
        product_text=product.product_text(),
        catalog_size=catalog_size,
        weights=dict(weights) if weights is not None else dict(DEFAULT_WEIGHTS),
        fuzzy_threshold=fuzzy_threshold,
        fuzzy_scorer=fuzzy_scorer or resolve_fuzzy_scorer(DEFAULT_FUZZY_SCORER),
    )
    reasons = []

    for signal in signals or SIGNALS:
        points, reason = signal(attributes, product, state)
        if points > 0:
            state.score += points
            if reason:
                reasons.append(reason)

    return state.score, reasons


def rank_candidates(candidates: list) -> list:
    """
    Sort scored candidates by score, highest first.

    The sort is stable, so equal scores keep catalog order.
    """
    return sorted(candidates, key=lambda c: -c.score)
