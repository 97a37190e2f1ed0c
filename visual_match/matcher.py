"""
Ranking of catalog products against extracted image attributes.

Every product is scored with the signals in scoring.SIGNALS, weak
candidates are dropped, and the best MAX_RESULTS are returned in
descending score order. The matcher is pure computation: it holds no
state between calls and never raises on valid input.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from .attributes import VisualAttributes
from .catalog import CatalogEntry
from .scoring import (
    FUZZY_THRESHOLD, DEFAULT_FUZZY_SCORER, compute_score, rank_candidates,
    resolve_fuzzy_scorer, resolve_weights,
)

logger = logging.getLogger(__name__)

# Hard cap on the shortlist length; MATCH_MAX_RESULTS may only lower it.
RESULT_LIMIT = 8
MAX_RESULTS = int(os.environ.get("MATCH_MAX_RESULTS", str(RESULT_LIMIT)))
# Candidates must score strictly above this to be kept...
MIN_INCLUDE_SCORE = int(os.environ.get("MATCH_MIN_SCORE", "5"))
# ...unless the catalog is this small, in which case everything is kept.
SMALL_CATALOG_KEEP_ALL = int(os.environ.get("SMALL_CATALOG_KEEP_ALL", "3"))


@dataclass
class ScoredCandidate:
    product: CatalogEntry
    score: int = 0
    reasons: List[str] = field(default_factory=list)


class ProductMatcher:
    """
    Scores and ranks catalog products for one set of image attributes.

    Args:
        weights: Partial overrides for scoring.DEFAULT_WEIGHTS.
        fuzzy_threshold: Maximum normalized distance accepted by the
            fuzzy signal.
        fuzzy_scorer: Name of the rapidfuzz scorer (see
            scoring.FUZZY_SCORERS).
        max_results: Length cap of the returned list (1 to RESULT_LIMIT).
        min_score: Scores must exceed this to be kept.
        keep_all_up_to: Catalogs of at most this size keep every product.
    """

    def __init__(self,
                 weights: Optional[Mapping[str, int]] = None,
                 fuzzy_threshold: float = FUZZY_THRESHOLD,
                 fuzzy_scorer: str = DEFAULT_FUZZY_SCORER,
                 max_results: int = MAX_RESULTS,
                 min_score: int = MIN_INCLUDE_SCORE,
                 keep_all_up_to: int = SMALL_CATALOG_KEEP_ALL):
        self.weights = resolve_weights(weights)
        self.fuzzy_threshold = fuzzy_threshold
        self.fuzzy_scorer = resolve_fuzzy_scorer(fuzzy_scorer)
        if isinstance(max_results, bool) or not isinstance(max_results, int) \
                or not 1 <= max_results <= RESULT_LIMIT:
            raise ValueError(
                f"max_results must be an integer between 1 and {RESULT_LIMIT}, got {max_results!r}"
            )
        self.max_results = max_results
        self.min_score = min_score
        self.keep_all_up_to = keep_all_up_to

    def score_catalog(self,
                      attributes: VisualAttributes,
                      catalog: Sequence[CatalogEntry]) -> List[ScoredCandidate]:
        """Score every product, in catalog order, without filtering."""
        candidates = []
        for product in catalog:
            score, reasons = compute_score(
                attributes, product,
                catalog_size=len(catalog),
                weights=self.weights,
                fuzzy_threshold=self.fuzzy_threshold,
                fuzzy_scorer=self.fuzzy_scorer,
            )
            candidates.append(ScoredCandidate(product=product, score=score, reasons=reasons))
        return candidates

    def rank(self,
             attributes: VisualAttributes,
             catalog: Sequence[CatalogEntry]) -> List[ScoredCandidate]:
        """
        Score, filter and sort the catalog, keeping scores and reasons.

        Returns:
            At most max_results candidates, best first. Ties keep
            catalog order.
        """
        if not catalog:
            return []

        keep_all = len(catalog) <= self.keep_all_up_to
        kept = [
            c for c in self.score_catalog(attributes, catalog)
            if c.score > self.min_score or keep_all
        ]
        ranked = rank_candidates(kept)[:self.max_results]

        for c in ranked:
            logger.debug(
                f"Product: {c.product.name} - Score: {c.score} - "
                f"Reasons: {'; '.join(c.reasons)}"
            )
        logger.info(
            f"Search complete: {len(catalog)} products -> "
            f"{len(kept)} kept -> {len(ranked)} results"
        )
        return ranked

    def match(self,
              attributes: VisualAttributes,
              catalog: Sequence[CatalogEntry]) -> List[CatalogEntry]:
        """Return the best matching products for the attributes, best first."""
        return [c.product for c in self.rank(attributes, catalog)]
