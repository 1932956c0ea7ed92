"""Tests for comparison enrichment."""

import pytest

from drugalts.models import Alternative, Candidate, PriceStatus, RetrievalTier, SimilarityResult
from drugalts.recommend.enrich import compare, enrich, round_half_up


def test_cheaper_alternative(make_medicine, paracetamol):
    candidate = make_medicine("x", ingredients=["Paracetamol", "Caffeine"], price=80.0)

    comparison = compare(paracetamol, candidate)

    assert comparison.price_difference_percent == -20
    assert comparison.price_status == PriceStatus.CHEAPER
    assert comparison.savings == 20
    assert comparison.common_ingredients == frozenset({"paracetamol"})


def test_expensive_alternative(make_medicine, paracetamol):
    comparison = compare(paracetamol, make_medicine("x", price=125.0))

    assert comparison.price_difference_percent == 25
    assert comparison.price_status == PriceStatus.EXPENSIVE
    assert comparison.savings == -25


def test_same_price(make_medicine, paracetamol):
    comparison = compare(paracetamol, make_medicine("x", price=100.0))

    assert comparison.price_difference_percent == 0
    assert comparison.price_status == PriceStatus.SAME
    assert comparison.savings == 0


def test_status_agrees_with_rounded_percent(make_medicine, paracetamol):
    # -0.3% rounds to 0, so it is reported as the same price
    comparison = compare(paracetamol, make_medicine("x", price=99.7))

    assert comparison.price_difference_percent == 0
    assert comparison.price_status == PriceStatus.SAME
    assert comparison.savings == pytest.approx(0.3)


@pytest.mark.parametrize("target_price, candidate_price", [
    (None, 80.0),
    (0.0, 80.0),
    (100.0, None),
    (100.0, 0.0),
])
def test_unknown_prices_leave_price_fields_empty(make_medicine, target_price, candidate_price):
    target = make_medicine("t", ingredients=["Paracetamol"], price=target_price)
    candidate = make_medicine("c", ingredients=["Paracetamol"], price=candidate_price)

    comparison = compare(target, candidate)

    assert comparison.price_difference_percent is None
    assert comparison.price_status is None
    assert comparison.savings is None
    assert comparison.common_ingredients == frozenset({"paracetamol"})


def test_common_interaction_drugs_case_insensitive(make_medicine, paracetamol):
    candidate = make_medicine("x", interaction_drugs=["warfarin", "Isoniazid"])

    assert compare(paracetamol, candidate).common_interaction_drugs == frozenset({"warfarin"})


def test_no_interaction_overlap_without_data(make_medicine, paracetamol):
    assert compare(paracetamol, make_medicine("x")).common_interaction_drugs == frozenset()


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(-2.5) == -2
    assert round_half_up(-20.0) == -20
    assert round_half_up(33.33) == 33


def test_enrich_attaches_comparisons(make_medicine, paracetamol):
    alt = Alternative(
        candidate=Candidate(make_medicine("x", price=50.0), RetrievalTier.CATEGORY),
        similarity=SimilarityResult(score=0.3, ingredient_match=0.0, category_match=True),
    )

    enriched = enrich(paracetamol, [alt])

    assert alt.comparison is None
    assert enriched[0].comparison.price_status == PriceStatus.CHEAPER
    assert enriched[0].similarity == alt.similarity


def test_interaction_overlap_lists_each_drug_once(make_medicine, paracetamol):
    candidate = make_medicine("x", interaction_drugs=["Warfarin", "warfarin", "WARFARIN"])

    assert compare(paracetamol, candidate).common_interaction_drugs == frozenset({"Warfarin"})


def test_savings_is_the_plain_difference(make_medicine):
    target = make_medicine("t", price=99.99)
    candidate = make_medicine("c", price=33.333)

    assert compare(target, candidate).savings == 99.99 - 33.333
