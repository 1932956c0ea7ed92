"""
Parse the interaction and side-effect payloads stored with each medicine.

The catalog keeps drug interactions as a JSON blob shaped like:

    {"drug": ["Warfarin", "Aspirin"], "brand": ["Coumadin"], "effect": ["bleeding"]}

Only the interacting drug names are used for ranking output, but the
brands and effects are kept for presentation.

Usage:
    from drugalts.interactions import parse_drug_interactions

    parsed = parse_drug_interactions(medicine_record["drugInteractions"])
    if parsed:
        print(parsed.drugs)
"""

import json
from dataclasses import dataclass, field
from typing import Any

from drugalts.logging import get_logger

logger = get_logger(__name__, component="interactions")


@dataclass(frozen=True)
class DrugInteractions:
    """Normalized interaction payload for one medicine."""
    drugs: tuple[str, ...] = field(default_factory=tuple)
    brands: tuple[str, ...] = field(default_factory=tuple)
    effects: tuple[str, ...] = field(default_factory=tuple)


def _string_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item).strip() for item in value if str(item).strip())


def parse_drug_interactions(raw: str | dict | None) -> DrugInteractions | None:
    """
    Parse a raw interaction payload.

    Args:
        raw: JSON text or an already-decoded mapping

    Returns:
        DrugInteractions, or None when the payload is empty or malformed
    """
    if not raw:
        return None

    if isinstance(raw, str):
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.debug("interaction_payload_invalid", error=str(e))
            return None
    else:
        payload = raw

    if not isinstance(payload, dict):
        logger.debug("interaction_payload_not_object", kind=type(payload).__name__)
        return None

    return DrugInteractions(
        drugs=_string_list(payload.get("drug")),
        brands=_string_list(payload.get("brand")),
        effects=_string_list(payload.get("effect")),
    )


def split_side_effects(text: str | None) -> list[str]:
    """Split a comma separated side-effect string into trimmed entries."""
    if not text:
        return []
    return [part.strip() for part in text.split(",") if part.strip()]


def common_interaction_drugs(
        first: list[str] | tuple[str, ...],
        second: list[str] | tuple[str, ...],
) -> frozenset[str]:
    """
    Interacting drugs listed for both medicines, case-insensitively.

    Each drug appears once, spelled as its first occurrence in `second`.
    """
    if not first or not second:
        return frozenset()
    wanted = {name.lower() for name in first}
    common: dict[str, str] = {}
    for name in second:
        key = name.lower()
        if key in wanted:
            common.setdefault(key, name)
    return frozenset(common.values())
