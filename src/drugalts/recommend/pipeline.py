"""
Complete alternatives pipeline combining all components.

Pipeline stages:
1. Resolve the target medicine
2. Tiered candidate retrieval (ingredient -> category -> global)
3. Scoring, same-name exclusion, min_score filter and dedup per pool
4. Ranking and truncation
5. Enrichment with price / ingredient / interaction comparisons

Only stage 2 (and the target lookup) touches the catalog store; every
other stage is a pure transformation of the list it receives.

Usage:
    from drugalts.recommend import AlternativesPipeline
    from drugalts.models import AlternativesRequest

    pipeline = AlternativesPipeline(store)
    response = pipeline.recommend(AlternativesRequest(target_id="64f0c2..."))

    for alt in response.alternatives:
        print(alt.medicine.name, alt.score, alt.comparison.price_status)
"""

from typing import Callable

from drugalts.catalog.base import CatalogStore
from drugalts.config import settings
from drugalts.errors import MedicineNotFoundError, RequestCancelledError
from drugalts.models import (
    Alternative,
    AlternativesRequest,
    AlternativesResponse,
    Candidate,
    Medicine,
    RecommendationStats,
)
from drugalts.recommend.dedup import DedupPolicy, deduplicate
from drugalts.recommend.enrich import enrich
from drugalts.recommend.rank import qualifying, rank
from drugalts.recommend.retriever import (
    CancelSignal,
    CandidateRetriever,
    RetrievalLimits,
    call_with_timeout,
)
from drugalts.recommend.similarity import SimilarityScorer
from drugalts.logging import get_logger

logger = get_logger(__name__, component="alternatives_pipeline")

StatsSink = Callable[[RecommendationStats], None]


def empty_result_message(target: Medicine) -> str:
    return f"No suitable alternatives found for {target.name} with matching active ingredients."


class AlternativesPipeline:
    """
    Find and rank alternatives for a target medicine.

    The pipeline holds no per-request state, so one instance can serve
    concurrent requests.

    Configuration:
        scorer: Similarity scorer (default weights 0.7 / 0.2 / 0.1)
        limits: Tier caps and store timeout
        dedup_policy: Which duplicate survives
        on_stats: Called with the counters of every completed request

    Example:
        pipeline = AlternativesPipeline(store, on_stats=metrics.record)
        response = pipeline.recommend(AlternativesRequest(target_id=medicine_id, min_score=0.5))
        print(f"Found {response.count} alternatives")
    """

    def __init__(
            self,
            store: CatalogStore,
            scorer: SimilarityScorer | None = None,
            limits: RetrievalLimits | None = None,
            dedup_policy: DedupPolicy | None = None,
            on_stats: StatsSink | None = None,
    ):
        self.store = store
        self.scorer = scorer or SimilarityScorer(workers=settings.scoring_workers)
        self.limits = limits or RetrievalLimits.from_settings()
        self.dedup_policy = dedup_policy or DedupPolicy(settings.dedup_policy)
        self.on_stats = on_stats
        self.retriever = CandidateRetriever(store, self.limits)

        logger.debug(
            "alternatives_pipeline_initialized",
            dedup_policy=self.dedup_policy.value,
            scoring_workers=self.scorer.workers,
        )

    def resolve_target(self, target_id: str) -> Medicine:
        """
        Look up the target medicine.

        Raises:
            MedicineNotFoundError: unknown id
            StoreUnavailableError: lookup failed or timed out
        """
        target = call_with_timeout(
            "find_by_id",
            self.store.find_by_id,
            self.limits.store_timeout_seconds,
            target_id,
        )
        if target is None:
            logger.info("target_not_found", target_id=target_id)
            raise MedicineNotFoundError(target_id)
        return target

    def _evaluator(
            self,
            target: Medicine,
            request: AlternativesRequest,
            stats: RecommendationStats,
            cancel: CancelSignal | None,
    ) -> Callable[[list[Candidate]], list[Alternative]]:
        def evaluate(pool: list[Candidate]) -> list[Alternative]:
            scored = self.scorer.score_candidates(target, pool)
            stats.scored += len(scored)

            if cancel is not None and cancel.is_set():
                raise RequestCancelledError("Request cancelled during scoring")

            kept = [
                alt for alt in scored
                if alt.medicine.id != target.id
                and not (request.exclude_same_name and alt.medicine.name == target.name)
            ]
            deduped = deduplicate(qualifying(kept, request.min_score), self.dedup_policy)
            stats.dedup_removed += deduped.removed

            logger.debug(
                "pool_evaluated",
                pool=len(pool),
                qualifying=len(deduped.alternatives),
                duplicates=deduped.removed,
            )
            return deduped.alternatives

        return evaluate

    def recommend(
            self,
            request: AlternativesRequest,
            cancel: CancelSignal | None = None,
    ) -> AlternativesResponse:
        """
        Run the pipeline for one request.

        Args:
            request: Validated request
            cancel: Optional signal (e.g. threading.Event); checked before
                    the optional tiers and after scoring

        Returns:
            AlternativesResponse. An empty result is still a response,
            with a message explaining it.

        Raises:
            MedicineNotFoundError, StoreUnavailableError, RequestCancelledError
        """
        logger.info("recommendation_start", target_id=request.target_id, min_score=request.min_score)

        target = self.resolve_target(request.target_id)
        stats = RecommendationStats(target_id=target.id)

        outcome = self.retriever.run(
            target,
            request,
            evaluate=self._evaluator(target, request, stats, cancel),
            stats=stats,
            cancel=cancel,
        )

        ranked = rank(outcome.alternatives, request.min_score, request.max_results)
        alternatives = enrich(target, ranked)

        stats.qualifying = len(outcome.alternatives)
        stats.final_count = len(alternatives)

        logger.info(
            "recommendation_complete",
            final_tier=outcome.final_tier.value,
            **stats.to_dict(),
        )
        if self.on_stats is not None:
            self.on_stats(stats)

        return AlternativesResponse(
            target_medicine=target,
            alternatives=alternatives,
            message=None if alternatives else empty_result_message(target),
            stats=stats,
        )


# Convenience function for simple use cases
def find_alternatives(
        request: AlternativesRequest,
        store: CatalogStore | None = None,
        cancel: CancelSignal | None = None,
) -> AlternativesResponse:
    """
    Simple function interface.

    Uses the configured Weaviate catalog when no store is given.
    Use AlternativesPipeline directly for multiple requests.
    """
    if store is not None:
        return AlternativesPipeline(store).recommend(request, cancel=cancel)

    from drugalts.catalog.client import WeaviateCatalogStore

    with WeaviateCatalogStore() as weaviate_store:
        return AlternativesPipeline(weaviate_store).recommend(request, cancel=cancel)
