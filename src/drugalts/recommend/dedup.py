"""
Collapse catalog rows that describe the same product.

The catalog often carries the same medicine several times (re-imports,
pack sizes). Two alternatives are duplicates when they share a canonical
key: lowercase name plus the sorted, lowercase ingredient list.
"""

from dataclasses import dataclass
from enum import Enum

from drugalts.models import Alternative, Medicine
from drugalts.logging import get_logger

logger = get_logger(__name__, component="dedup")

KEY_SEPARATOR = "::"


class DedupPolicy(str, Enum):
    """Which entry survives when several share a key."""
    # First entry in retrieval order wins, no field merging
    FIRST_SEEN = "first_seen"
    # Best scored entry wins, kept at the position of the first one
    HIGHEST_SCORE = "highest_score"


def canonical_key(medicine: Medicine) -> str:
    """Name and sorted ingredient list, lowercased and trimmed."""
    ingredients = "|".join(sorted(i.lower().strip() for i in medicine.ingredients))
    return f"{medicine.name.lower().strip()}{KEY_SEPARATOR}{ingredients}"


@dataclass
class DedupResult:
    alternatives: list[Alternative]
    removed: int


def deduplicate(
        alternatives: list[Alternative],
        policy: DedupPolicy = DedupPolicy.FIRST_SEEN,
) -> DedupResult:
    """
    Keep one alternative per canonical key.

    Args:
        alternatives: Scored alternatives in processing order
        policy: Which duplicate to keep

    Returns:
        DedupResult with survivors (original relative order) and removal count
    """
    kept: dict[str, Alternative] = {}

    for alt in alternatives:
        key = canonical_key(alt.medicine)
        existing = kept.get(key)
        if existing is None:
            kept[key] = alt
        elif policy == DedupPolicy.HIGHEST_SCORE and alt.score > existing.score:
            # dict keeps the slot of the first insertion
            kept[key] = alt

    survivors = list(kept.values())
    removed = len(alternatives) - len(survivors)

    if removed:
        logger.debug("duplicates_removed", removed=removed, kept=len(survivors), policy=policy.value)

    return DedupResult(alternatives=survivors, removed=removed)
