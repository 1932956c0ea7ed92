"""Tests for tiered candidate retrieval."""

import threading
import time

import pytest

from drugalts.catalog.memory import InMemoryCatalogStore
from drugalts.errors import RequestCancelledError, StoreUnavailableError
from drugalts.models import Alternative, AlternativesRequest, RetrievalTier, SimilarityResult
from drugalts.recommend.retriever import (
    CandidateRetriever,
    RetrievalLimits,
    RetrievalState,
    call_with_timeout,
    needs_category_expansion,
    needs_global_fallback,
)


class BrokenSampleStore(InMemoryCatalogStore):
    """Random sampling always fails."""

    def random_sample(self, medicine_filter, size):
        raise ConnectionError("sampling backend down")


class BrokenStore(InMemoryCatalogStore):
    """Ingredient lookups always fail."""

    def find_many(self, medicine_filter, limit):
        raise ConnectionError("catalog down")


class SlowSampleStore(InMemoryCatalogStore):
    def random_sample(self, medicine_filter, size):
        time.sleep(1.0)
        return super().random_sample(medicine_filter, size)


def _nothing_qualifies(pool):
    return []


def _everything_qualifies(pool):
    return [
        Alternative(candidate=c, similarity=SimilarityResult(score=1.0, ingredient_match=1.0, category_match=True))
        for c in pool
    ]


class TestGuards:

    def test_category_expansion_guard(self):
        limits = RetrievalLimits()

        assert needs_category_expansion(0, limits)
        assert needs_category_expansion(99, limits)
        assert not needs_category_expansion(100, limits)

    def test_global_fallback_guard(self):
        limits = RetrievalLimits()

        assert needs_global_fallback(0, 0, limits)
        assert needs_global_fallback(0, 1999, limits)
        assert not needs_global_fallback(0, 2000, limits)
        assert not needs_global_fallback(1, 10, limits)


class TestTierQueries:

    def test_ingredient_tier_matches_cleaned_terms(self, store_factory, make_medicine, paracetamol):
        store = store_factory(
            paracetamol,
            make_medicine("a", ingredients=["PARACETAMOL 650 mg"]),
            make_medicine("b", ingredients=["Ibuprofen"]),
        )

        candidates = CandidateRetriever(store).fetch_ingredient_tier(paracetamol, AlternativesRequest("target"))

        assert [c.medicine.id for c in candidates] == ["a"]
        assert candidates[0].tier == RetrievalTier.INGREDIENT

    def test_ingredient_tier_is_capped(self, store_factory, make_medicine, paracetamol):
        store = store_factory(*[make_medicine(str(i), ingredients=["Paracetamol"]) for i in range(10)])
        retriever = CandidateRetriever(store, RetrievalLimits(tier1_limit=3))

        assert len(retriever.fetch_ingredient_tier(paracetamol, AlternativesRequest("target"))) == 3

    def test_ingredient_tier_applies_max_price(self, store_factory, make_medicine, paracetamol):
        store = store_factory(
            make_medicine("cheap", ingredients=["Paracetamol"], price=20.0),
            make_medicine("dear", ingredients=["Paracetamol"], price=200.0),
            make_medicine("unpriced", ingredients=["Paracetamol"], price=None),
        )

        candidates = CandidateRetriever(store).fetch_ingredient_tier(
            paracetamol, AlternativesRequest("target", max_price=50)
        )

        assert [c.medicine.id for c in candidates] == ["cheap"]

    def test_ingredient_tier_without_terms_skips_store(self, make_medicine):
        target = make_medicine("t", ingredients=["(10mg)", "Zn"])

        # A broken store proves no call is made
        candidates = CandidateRetriever(BrokenStore()).fetch_ingredient_tier(target, AlternativesRequest("t"))

        assert candidates == []

    def test_category_tier_uses_override(self, store_factory, make_medicine, paracetamol):
        store = store_factory(
            make_medicine("a", category="Analgestics"),
            make_medicine("s", category="Supplements"),
        )
        retriever = CandidateRetriever(store)

        default = retriever.fetch_category_tier(paracetamol, AlternativesRequest("target"))
        override = retriever.fetch_category_tier(paracetamol, AlternativesRequest("target", category="Supplements"))

        assert [c.medicine.id for c in default] == ["a"]
        assert [c.medicine.id for c in override] == ["s"]

    def test_global_tier_ignores_category_and_excludes_target(self, store_factory, make_medicine, paracetamol):
        store = store_factory(
            paracetamol,
            make_medicine("a", category="Analgestics"),
            make_medicine("s", category="Steroids"),
        )

        candidates = CandidateRetriever(store).fetch_global_tier(paracetamol, AlternativesRequest("target"))

        assert sorted(c.medicine.id for c in candidates) == ["a", "s"]
        assert all(c.tier == RetrievalTier.GLOBAL for c in candidates)


class TestStateMachine:

    def test_all_tiers_run_when_nothing_qualifies(self, store_factory, make_medicine, paracetamol):
        store = store_factory(paracetamol, make_medicine("a", ingredients=["Paracetamol"]))

        outcome = CandidateRetriever(store).run(paracetamol, AlternativesRequest("target"), _nothing_qualifies)

        assert outcome.states == [
            RetrievalState.INGREDIENT,
            RetrievalState.CATEGORY,
            RetrievalState.EVALUATE,
            RetrievalState.GLOBAL,
        ]
        assert outcome.final_tier == RetrievalTier.GLOBAL

    def test_enough_ingredient_matches_skip_category(self, store_factory, make_medicine, paracetamol):
        store = store_factory(*[make_medicine(str(i), ingredients=["Paracetamol"]) for i in range(5)])
        retriever = CandidateRetriever(store, RetrievalLimits(tier2_trigger=5))

        outcome = retriever.run(paracetamol, AlternativesRequest("target"), _everything_qualifies)

        assert outcome.states == [RetrievalState.INGREDIENT, RetrievalState.EVALUATE]
        assert outcome.pool_size == 5
        assert outcome.final_tier == RetrievalTier.INGREDIENT

    def test_category_merge_dedupes_by_id(self, store_factory, make_medicine, paracetamol):
        store = store_factory(
            make_medicine("a", ingredients=["Paracetamol"]),
            make_medicine("b", ingredients=["Aspirin"]),
        )
        retriever = CandidateRetriever(store)

        from drugalts.models import RecommendationStats
        stats = RecommendationStats(target_id="target")
        outcome = retriever.run(paracetamol, AlternativesRequest("target"), _everything_qualifies, stats=stats)

        assert outcome.pool_size == 2
        assert stats.tier_counts == {"ingredient": 1, "category": 1}
        assert stats.tiers_run == ["ingredient", "category"]

    def test_large_pool_blocks_global_fallback(self, store_factory, make_medicine, paracetamol):
        store = store_factory(*[make_medicine(str(i), ingredients=["Paracetamol"]) for i in range(6)])
        retriever = CandidateRetriever(store, RetrievalLimits(tier2_trigger=1, tier3_pool_ceiling=5))

        outcome = retriever.run(paracetamol, AlternativesRequest("target"), _nothing_qualifies)

        assert RetrievalState.GLOBAL not in outcome.states

    def test_global_pool_is_evaluated_alone(self, store_factory, make_medicine, paracetamol):
        store = store_factory(
            make_medicine("a", ingredients=["Paracetamol"]),
            make_medicine("z", ingredients=["Zinc"], category="Supplements"),
        )
        seen_pools = []

        def evaluate(pool):
            seen_pools.append(sorted(c.medicine.id for c in pool))
            return []

        CandidateRetriever(store).run(paracetamol, AlternativesRequest("target"), evaluate)

        assert seen_pools == [["a"], ["a", "z"]]


class TestFailures:

    def test_ingredient_tier_failure_is_fatal(self, make_medicine, paracetamol):
        store = BrokenStore([make_medicine("a", ingredients=["Paracetamol"])])

        with pytest.raises(StoreUnavailableError) as excinfo:
            CandidateRetriever(store).run(paracetamol, AlternativesRequest("target"), _nothing_qualifies)

        assert excinfo.value.operation == "ingredient_tier"

    def test_optional_tier_failures_degrade(self, make_medicine, paracetamol):
        from drugalts.models import RecommendationStats

        store = BrokenSampleStore([make_medicine("a", ingredients=["Paracetamol"])])
        stats = RecommendationStats(target_id="target")

        outcome = CandidateRetriever(store).run(
            paracetamol, AlternativesRequest("target"), _nothing_qualifies, stats=stats
        )

        assert outcome.pool_size == 1
        assert stats.failed_tiers == ["category", "global"]

    def test_optional_tier_timeout_degrades(self, make_medicine, paracetamol, fast_limits):
        from drugalts.models import RecommendationStats

        store = SlowSampleStore([make_medicine("a", ingredients=["Paracetamol"])])
        stats = RecommendationStats(target_id="target")

        outcome = CandidateRetriever(store, fast_limits).run(
            paracetamol, AlternativesRequest("target"), _everything_qualifies, stats=stats
        )

        assert [a.medicine.id for a in outcome.alternatives] == ["a"]
        assert stats.failed_tiers == ["category"]

    def test_call_with_timeout(self):
        assert call_with_timeout("op", lambda x: x * 2, 1.0, 21) == 42

        with pytest.raises(StoreUnavailableError, match="timed out"):
            call_with_timeout("op", time.sleep, 0.05, 1.0)

    def test_cancel_before_category_tier(self, store_factory, make_medicine, paracetamol):
        store = store_factory(make_medicine("a", ingredients=["Paracetamol"]))
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(RequestCancelledError):
            CandidateRetriever(store).run(paracetamol, AlternativesRequest("target"), _nothing_qualifies, cancel=cancel)

    def test_cancel_before_global_tier(self, store_factory, make_medicine, paracetamol):
        store = store_factory(make_medicine("a", ingredients=["Paracetamol"]))
        cancel = threading.Event()

        def evaluate(pool):
            cancel.set()
            return []

        with pytest.raises(RequestCancelledError):
            CandidateRetriever(store).run(paracetamol, AlternativesRequest("target"), evaluate, cancel=cancel)

    def test_store_calls_run_on_daemon_threads(self):
        assert call_with_timeout("op", lambda: threading.current_thread().daemon, 1.0) is True
