"""Tests for deduplication and ranking."""

from drugalts.models import Alternative, Candidate, RetrievalTier, SimilarityResult
from drugalts.recommend.dedup import DedupPolicy, canonical_key, deduplicate
from drugalts.recommend.rank import rank


def _alt(medicine, score):
    return Alternative(
        candidate=Candidate(medicine, RetrievalTier.INGREDIENT),
        similarity=SimilarityResult(score=score, ingredient_match=score, category_match=True),
    )


def test_canonical_key_normalizes_case_and_order(make_medicine):
    first = make_medicine("1", name=" Paracetamol 500 ", ingredients=["Caffeine", "Paracetamol"])
    second = make_medicine("2", name="paracetamol 500", ingredients=["paracetamol ", "CAFFEINE"])

    assert canonical_key(first) == canonical_key(second) == "paracetamol 500::caffeine|paracetamol"


def test_first_seen_wins(make_medicine):
    first = _alt(make_medicine("1", name="Paracetamol 500", ingredients=["Paracetamol"]), 0.5)
    second = _alt(make_medicine("2", name="Paracetamol 500", ingredients=["Paracetamol"]), 0.9)
    other = _alt(make_medicine("3", name="Crocin", ingredients=["Paracetamol"]), 0.7)

    result = deduplicate([first, second, other])

    assert [a.medicine.id for a in result.alternatives] == ["1", "3"]
    assert result.removed == 1


def test_highest_score_policy_keeps_best_in_first_slot(make_medicine):
    first = _alt(make_medicine("1", name="Paracetamol 500", ingredients=["Paracetamol"]), 0.5)
    other = _alt(make_medicine("3", name="Crocin", ingredients=["Paracetamol"]), 0.7)
    second = _alt(make_medicine("2", name="Paracetamol 500", ingredients=["Paracetamol"]), 0.9)

    result = deduplicate([first, other, second], DedupPolicy.HIGHEST_SCORE)

    assert [a.medicine.id for a in result.alternatives] == ["2", "3"]
    assert result.removed == 1


def test_same_name_different_ingredients_are_not_duplicates(make_medicine):
    first = _alt(make_medicine("1", name="Combiflam", ingredients=["Ibuprofen"]), 0.5)
    second = _alt(make_medicine("2", name="Combiflam", ingredients=["Ibuprofen", "Paracetamol"]), 0.5)

    assert deduplicate([first, second]).removed == 0


def test_rank_sorts_filters_and_truncates(make_medicine):
    alternatives = [
        _alt(make_medicine("a"), 0.4),
        _alt(make_medicine("b"), 0.9),
        _alt(make_medicine("c"), 0.2),
        _alt(make_medicine("d"), 0.6),
    ]

    ranked = rank(alternatives, min_score=0.3, max_results=2)

    assert [a.medicine.id for a in ranked] == ["b", "d"]


def test_rank_keeps_scores_equal_to_threshold(make_medicine):
    ranked = rank([_alt(make_medicine("a"), 0.3)], min_score=0.3, max_results=10)

    assert len(ranked) == 1


def test_rank_breaks_ties_by_id(make_medicine):
    alternatives = [_alt(make_medicine(i), 0.5) for i in ("c", "a", "b")]

    ranked = rank(alternatives, min_score=0.0, max_results=10)

    assert [a.medicine.id for a in ranked] == ["a", "b", "c"]
