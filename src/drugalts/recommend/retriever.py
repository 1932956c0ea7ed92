"""
Tiered candidate retrieval.

Candidates for a target medicine are fetched in escalating tiers, each
one only when the previous tiers were not enough:

1. INGREDIENT: medicines whose ingredients contain one of the target's
   cleaned ingredient terms (capped at 500)
2. CATEGORY: a random sample of the target's category (capped at 1500),
   only when tier 1 found fewer than 100 candidates
3. GLOBAL: a random sample of the whole catalog (capped at 3000), only
   when nothing from tiers 1+2 qualified and that pool was under 2000

The escalation runs as a small state machine:

    INGREDIENT --[needs_category_expansion]--> CATEGORY --> EVALUATE
    INGREDIENT --[otherwise]-----------------------------> EVALUATE
    EVALUATE   --[needs_global_fallback]----> GLOBAL --> DONE
    EVALUATE   --[otherwise]----------------------------> DONE

EVALUATE hands the pool to a caller-supplied function (scoring, filtering,
dedup). Tier 1 failures are fatal; tier 2 and 3 failures are logged and
the request continues with what it has.

Usage:
    retriever = CandidateRetriever(store)
    outcome = retriever.run(target, request, evaluate=score_and_filter)
"""

import threading
from concurrent.futures import Future, TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol, TypeVar

from drugalts.catalog.base import CatalogStore, MedicineFilter
from drugalts.config import settings
from drugalts.errors import RequestCancelledError, StoreUnavailableError
from drugalts.models import (
    Alternative,
    AlternativesRequest,
    Candidate,
    Medicine,
    RecommendationStats,
    RetrievalTier,
)
from drugalts.recommend.normalize import search_terms
from drugalts.logging import get_logger

logger = get_logger(__name__, component="retriever")

T = TypeVar("T")


class CancelSignal(Protocol):
    """Anything with an is_set() method, e.g. threading.Event."""

    def is_set(self) -> bool: ...


class RetrievalState(str, Enum):
    INGREDIENT = "ingredient"
    CATEGORY = "category"
    EVALUATE = "evaluate"
    GLOBAL = "global"
    DONE = "done"


@dataclass(frozen=True)
class RetrievalLimits:
    """Tier caps and triggers. Defaults come from settings."""
    tier1_limit: int = 500
    tier2_trigger: int = 100
    tier2_sample_size: int = 1500
    tier3_pool_ceiling: int = 2000
    tier3_sample_size: int = 3000
    store_timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls) -> "RetrievalLimits":
        return cls(
            tier1_limit=settings.tier1_limit,
            tier2_trigger=settings.tier2_trigger,
            tier2_sample_size=settings.tier2_sample_size,
            tier3_pool_ceiling=settings.tier3_pool_ceiling,
            tier3_sample_size=settings.tier3_sample_size,
            store_timeout_seconds=settings.store_timeout_seconds,
        )


def needs_category_expansion(ingredient_count: int, limits: RetrievalLimits) -> bool:
    """Guard INGREDIENT -> CATEGORY."""
    return ingredient_count < limits.tier2_trigger


def needs_global_fallback(qualifying_count: int, pool_size: int, limits: RetrievalLimits) -> bool:
    """Guard EVALUATE -> GLOBAL."""
    return qualifying_count == 0 and pool_size < limits.tier3_pool_ceiling


def call_with_timeout(operation: str, func: Callable[..., T], timeout: float, *args) -> T:
    """
    Run a store call with a deadline.

    Any exception, including the timeout, is raised as StoreUnavailableError.
    The call runs on a daemon thread: a timed-out call is abandoned, not
    interrupted, and does not keep the interpreter alive at exit.
    """
    future: Future = Future()

    def run() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(func(*args))
        except Exception as e:
            future.set_exception(e)

    threading.Thread(target=run, name=f"store-{operation}", daemon=True).start()

    try:
        return future.result(timeout=timeout)
    except FuturesTimeout as e:
        raise StoreUnavailableError(operation, f"timed out after {timeout}s") from e
    except Exception as e:
        raise StoreUnavailableError(operation, str(e)) from e


@dataclass
class RetrievalOutcome:
    """What the state machine produced for one request."""
    # Alternatives from the last evaluated pool
    alternatives: list[Alternative]
    # Size of the tier 1+2 pool (tier 3 is evaluated on its own)
    pool_size: int
    final_tier: RetrievalTier
    states: list[RetrievalState] = field(default_factory=list)


@dataclass
class _Context:
    target: Medicine
    request: AlternativesRequest
    evaluate: Callable[[list[Candidate]], list[Alternative]]
    stats: RecommendationStats
    cancel: CancelSignal | None
    pool: list[Candidate] = field(default_factory=list)
    alternatives: list[Alternative] = field(default_factory=list)
    final_tier: RetrievalTier = RetrievalTier.INGREDIENT


class CandidateRetriever:
    """
    Fetch candidate pools from a catalog store in escalating tiers.

    Args:
        store: Catalog backend
        limits: Tier caps, triggers and store timeout
    """

    def __init__(self, store: CatalogStore, limits: RetrievalLimits | None = None):
        self.store = store
        self.limits = limits or RetrievalLimits.from_settings()
        self._handlers = {
            RetrievalState.INGREDIENT: self._run_ingredient,
            RetrievalState.CATEGORY: self._run_category,
            RetrievalState.EVALUATE: self._run_evaluate,
            RetrievalState.GLOBAL: self._run_global,
        }

    # ----- tier queries -----

    def _base_filter(self, target: Medicine, request: AlternativesRequest, **kwargs) -> MedicineFilter:
        return MedicineFilter(exclude_id=target.id, max_price=request.max_price, **kwargs)

    def fetch_ingredient_tier(self, target: Medicine, request: AlternativesRequest) -> list[Candidate]:
        """
        Tier 1. Raises StoreUnavailableError if the store call fails.

        A target with no usable ingredient terms yields an empty tier
        without querying the store.
        """
        terms = search_terms(target.ingredients)
        if not terms:
            logger.info("ingredient_tier_skipped", target_id=target.id, reason="no_search_terms")
            return []

        medicine_filter = self._base_filter(target, request, ingredient_terms=tuple(terms))
        medicines = call_with_timeout(
            "ingredient_tier",
            self.store.find_many,
            self.limits.store_timeout_seconds,
            medicine_filter,
            self.limits.tier1_limit,
        )
        return [Candidate(m, RetrievalTier.INGREDIENT) for m in medicines if m.id != target.id]

    def fetch_category_tier(self, target: Medicine, request: AlternativesRequest) -> list[Candidate]:
        """Tier 2 sample from the target's (or the override) category."""
        category = request.category or target.category
        medicine_filter = self._base_filter(target, request, category=category)
        medicines = call_with_timeout(
            "category_tier",
            self.store.random_sample,
            self.limits.store_timeout_seconds,
            medicine_filter,
            self.limits.tier2_sample_size,
        )
        return [Candidate(m, RetrievalTier.CATEGORY) for m in medicines if m.id != target.id]

    def fetch_global_tier(self, target: Medicine, request: AlternativesRequest) -> list[Candidate]:
        """Tier 3 sample from the whole catalog, category ignored."""
        medicine_filter = self._base_filter(target, request)
        medicines = call_with_timeout(
            "global_tier",
            self.store.random_sample,
            self.limits.store_timeout_seconds,
            medicine_filter,
            self.limits.tier3_sample_size,
        )
        return [Candidate(m, RetrievalTier.GLOBAL) for m in medicines if m.id != target.id]

    # ----- state machine -----

    def run(
            self,
            target: Medicine,
            request: AlternativesRequest,
            evaluate: Callable[[list[Candidate]], list[Alternative]],
            stats: RecommendationStats | None = None,
            cancel: CancelSignal | None = None,
    ) -> RetrievalOutcome:
        """
        Drive the tiers for one request.

        Args:
            target: The target medicine (already resolved)
            request: Validated request
            evaluate: Turns a candidate pool into qualifying alternatives
            stats: Counters to update; a fresh one is used if omitted
            cancel: Checked before the optional tiers

        Raises:
            StoreUnavailableError: tier 1 failed
            RequestCancelledError: cancel was set before an optional tier
        """
        ctx = _Context(
            target=target,
            request=request,
            evaluate=evaluate,
            stats=stats or RecommendationStats(target_id=target.id),
            cancel=cancel,
        )

        states = []
        state = RetrievalState.INGREDIENT
        while state is not RetrievalState.DONE:
            states.append(state)
            state = self._handlers[state](ctx)

        return RetrievalOutcome(
            alternatives=ctx.alternatives,
            pool_size=len(ctx.pool),
            final_tier=ctx.final_tier,
            states=states,
        )

    def _check_cancelled(self, ctx: _Context, before: str) -> None:
        if ctx.cancel is not None and ctx.cancel.is_set():
            logger.info("request_cancelled", target_id=ctx.target.id, before=before)
            raise RequestCancelledError(f"Request cancelled before {before}")

    def _run_ingredient(self, ctx: _Context) -> RetrievalState:
        ctx.pool = self.fetch_ingredient_tier(ctx.target, ctx.request)
        ctx.stats.tiers_run.append(RetrievalTier.INGREDIENT.value)
        ctx.stats.tier_counts[RetrievalTier.INGREDIENT.value] = len(ctx.pool)

        logger.info("tier_complete", tier=RetrievalTier.INGREDIENT.value, found=len(ctx.pool))

        if needs_category_expansion(len(ctx.pool), self.limits):
            return RetrievalState.CATEGORY
        return RetrievalState.EVALUATE

    def _run_category(self, ctx: _Context) -> RetrievalState:
        self._check_cancelled(ctx, RetrievalTier.CATEGORY.value)
        ctx.stats.tiers_run.append(RetrievalTier.CATEGORY.value)

        try:
            sampled = self.fetch_category_tier(ctx.target, ctx.request)
        except StoreUnavailableError as e:
            logger.warning("optional_tier_failed", tier=RetrievalTier.CATEGORY.value, error=str(e))
            ctx.stats.failed_tiers.append(RetrievalTier.CATEGORY.value)
            return RetrievalState.EVALUATE

        # Merge by id only; name+ingredient duplicates are handled after scoring
        existing = {candidate.medicine.id for candidate in ctx.pool}
        added = []
        for candidate in sampled:
            if candidate.medicine.id not in existing:
                existing.add(candidate.medicine.id)
                added.append(candidate)

        ctx.pool = ctx.pool + added
        ctx.final_tier = RetrievalTier.CATEGORY
        ctx.stats.tier_counts[RetrievalTier.CATEGORY.value] = len(added)

        logger.info(
            "tier_complete",
            tier=RetrievalTier.CATEGORY.value,
            sampled=len(sampled),
            added=len(added),
            pool=len(ctx.pool),
        )
        return RetrievalState.EVALUATE

    def _run_evaluate(self, ctx: _Context) -> RetrievalState:
        ctx.alternatives = ctx.evaluate(ctx.pool)

        if needs_global_fallback(len(ctx.alternatives), len(ctx.pool), self.limits):
            return RetrievalState.GLOBAL
        return RetrievalState.DONE

    def _run_global(self, ctx: _Context) -> RetrievalState:
        self._check_cancelled(ctx, RetrievalTier.GLOBAL.value)
        ctx.stats.tiers_run.append(RetrievalTier.GLOBAL.value)

        logger.info("global_fallback_start", target_id=ctx.target.id, pool=len(ctx.pool))

        try:
            sampled = self.fetch_global_tier(ctx.target, ctx.request)
        except StoreUnavailableError as e:
            logger.warning("optional_tier_failed", tier=RetrievalTier.GLOBAL.value, error=str(e))
            ctx.stats.failed_tiers.append(RetrievalTier.GLOBAL.value)
            return RetrievalState.DONE

        ctx.stats.tier_counts[RetrievalTier.GLOBAL.value] = len(sampled)
        logger.info("tier_complete", tier=RetrievalTier.GLOBAL.value, found=len(sampled))

        # Tier 3 is scored on its own, not merged with the earlier pool
        ctx.alternatives = ctx.evaluate(sampled)
        ctx.final_tier = RetrievalTier.GLOBAL
        return RetrievalState.DONE
