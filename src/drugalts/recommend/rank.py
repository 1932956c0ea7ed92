"""Threshold, order and truncate scored alternatives."""

from drugalts.models import Alternative


def qualifying(alternatives: list[Alternative], min_score: float) -> list[Alternative]:
    """Alternatives scoring at least min_score, order preserved."""
    return [alt for alt in alternatives if alt.score >= min_score]


def rank(alternatives: list[Alternative], min_score: float, max_results: int) -> list[Alternative]:
    """
    Top alternatives by score.

    Ties are broken by medicine id so repeated requests return the
    same order.
    """
    ranked = sorted(
        qualifying(alternatives, min_score),
        key=lambda alt: (-alt.score, alt.medicine.id),
    )
    return ranked[:max_results]
