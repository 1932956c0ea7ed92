"""
Weighted similarity between a target medicine and a candidate.

Score components:
- ingredient overlap (Jaccard over normalized ingredient sets), weight 0.7
- same category, weight 0.2
- different manufacturer, weight 0.1 (favours a different supplier)

The score depends only on the ingredient, category and manufacturer
fields of the two medicines, so scoring a pool is order-independent and
can be spread over threads.

Usage:
    from drugalts.recommend.similarity import SimilarityScorer

    scorer = SimilarityScorer()
    result = scorer.score(target, candidate_medicine)
    print(result.score, result.ingredient_match)
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from drugalts.models import Alternative, Candidate, Medicine, SimilarityResult
from drugalts.recommend.normalize import normalize_ingredients
from drugalts.logging import get_logger

logger = get_logger(__name__, component="similarity")


def jaccard(first: frozenset[str] | set[str], second: frozenset[str] | set[str]) -> float:
    """
    Jaccard similarity |A & B| / |A | B|.

    Two empty sets count as a full match (1.0): medicines with no
    ingredient data at all are treated as identical on this axis.
    """
    if not first and not second:
        return 1.0
    if not first or not second:
        return 0.0
    return len(first & second) / len(first | second)


@dataclass(frozen=True)
class SimilarityWeights:
    """Weights of the composite score. Must sum to 1 so scores stay in [0, 1]."""
    ingredient: float = 0.7
    category: float = 0.2
    manufacturer: float = 0.1

    def __post_init__(self):
        weights = (self.ingredient, self.category, self.manufacturer)
        if any(w < 0 for w in weights):
            raise ValueError("Similarity weights must be non-negative")
        if abs(sum(weights) - 1.0) > 1e-9:
            raise ValueError(f"Similarity weights must sum to 1, got {sum(weights)}")


class SimilarityScorer:
    """
    Score candidates against a target medicine.

    Args:
        weights: Component weights (defaults 0.7 / 0.2 / 0.1)
        workers: Threads used by score_candidates. 1 scores inline.
    """

    def __init__(self, weights: SimilarityWeights | None = None, workers: int = 1):
        self.weights = weights or SimilarityWeights()
        self.workers = max(1, workers)

    def score(self, target: Medicine, candidate: Medicine) -> SimilarityResult:
        """Compute the weighted similarity of one candidate."""
        return self._score(normalize_ingredients(target.ingredients), target, candidate)

    def _score(
            self,
            target_ingredients: frozenset[str],
            target: Medicine,
            candidate: Medicine,
    ) -> SimilarityResult:
        ingredient_score = jaccard(target_ingredients, normalize_ingredients(candidate.ingredients))
        category_score = 1.0 if target.category == candidate.category else 0.0
        manufacturer_score = 1.0 if target.manufacturer != candidate.manufacturer else 0.0

        total = (
            ingredient_score * self.weights.ingredient
            + category_score * self.weights.category
            + manufacturer_score * self.weights.manufacturer
        )

        return SimilarityResult(
            # Weighted float sums drift around 1 (0.7 + 0.2 + 0.1 < 1)
            score=min(1.0, max(0.0, round(total, 9))),
            ingredient_match=ingredient_score,
            category_match=category_score == 1.0,
            same_name=target.name == candidate.name,
        )

    def score_candidates(self, target: Medicine, candidates: list[Candidate]) -> list[Alternative]:
        """
        Score every candidate in a pool.

        Results come back in input order; with several workers the call
        only returns once all candidates are scored.
        """
        if not candidates:
            return []

        target_ingredients = normalize_ingredients(target.ingredients)

        def score_one(candidate: Candidate) -> Alternative:
            similarity = self._score(target_ingredients, target, candidate.medicine)
            return Alternative(candidate=candidate, similarity=similarity)

        if self.workers == 1 or len(candidates) == 1:
            scored = [score_one(candidate) for candidate in candidates]
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                scored = list(pool.map(score_one, candidates))

        logger.debug("candidates_scored", count=len(scored), workers=self.workers)
        return scored
