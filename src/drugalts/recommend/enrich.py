"""
Attach comparison data to ranked alternatives.

For each alternative:
- common ingredients with the target (normalized, case-insensitive)
- price difference in percent, rounded half-up to an integer
- price status (cheaper / expensive / same), derived from the rounded
  percent so the two always agree
- savings (target price minus alternative price; positive = cheaper)
- interacting drugs listed for both medicines

Price fields stay None unless both prices are known (> 0).
"""

import math
from dataclasses import replace

from drugalts.interactions import common_interaction_drugs
from drugalts.models import Alternative, Comparison, Medicine, PriceStatus
from drugalts.recommend.normalize import normalize_ingredients


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def price_status_for(percent: int) -> PriceStatus:
    if percent < 0:
        return PriceStatus.CHEAPER
    if percent > 0:
        return PriceStatus.EXPENSIVE
    return PriceStatus.SAME


def compare(target: Medicine, candidate: Medicine) -> Comparison:
    """Build the comparison of one candidate against the target."""
    common = normalize_ingredients(target.ingredients) & normalize_ingredients(candidate.ingredients)
    interactions = common_interaction_drugs(target.interaction_drugs, candidate.interaction_drugs)

    if not (target.has_known_price and candidate.has_known_price):
        return Comparison(common_ingredients=common, common_interaction_drugs=interactions)

    percent = round_half_up((candidate.price - target.price) / target.price * 100)

    return Comparison(
        common_ingredients=common,
        price_difference_percent=percent,
        price_status=price_status_for(percent),
        savings=target.price - candidate.price,
        common_interaction_drugs=interactions,
    )


def enrich(target: Medicine, alternatives: list[Alternative]) -> list[Alternative]:
    """Return copies of the alternatives with comparisons attached."""
    return [replace(alt, comparison=compare(target, alt.medicine)) for alt in alternatives]
