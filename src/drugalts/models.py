"""
Data classes shared by the catalog stores and the recommendation pipeline.

Everything here is a read-only projection of catalog data for the
duration of one request. Nothing is persisted or mutated by the engine.
"""

import json
import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from drugalts.errors import InvalidInputError
from drugalts.interactions import parse_drug_interactions, split_side_effects

# Fixed category enumeration of the catalog (spelling matches stored data)
CATEGORIES = (
    "Antibiotics",
    "Antimalaria",
    "Analgestics",
    "Supplements",
    "Steroids",
    "Other",
)
DEFAULT_CATEGORY = "Other"


class RetrievalTier(str, Enum):
    """Which retrieval tier produced a candidate."""
    INGREDIENT = "ingredient"
    CATEGORY = "category"
    GLOBAL = "global"


class PriceStatus(str, Enum):
    """Price of an alternative relative to the target."""
    CHEAPER = "cheaper"
    EXPENSIVE = "expensive"
    SAME = "same"


def _first(record: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return default


def _parse_price(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(price) or price < 0:
        return None
    return price


@dataclass(frozen=True)
class Medicine:
    """
    A catalog medicine.

    `ingredients` keeps the stored order and spelling; normalization
    happens in the scorer. A price of None or 0 means "unavailable".
    """
    id: str
    name: str
    composition: str = ""
    ingredients: tuple[str, ...] = ()
    manufacturer: str = ""
    price: float | None = None
    category: str = DEFAULT_CATEGORY
    prescription_required: bool = False
    sub_category: str = ""
    pack_size: str = ""
    usage: str = ""
    side_effects: str = ""
    drug_interactions: str = ""
    interaction_drugs: tuple[str, ...] = ()

    @property
    def has_known_price(self) -> bool:
        return self.price is not None and self.price > 0

    @property
    def side_effects_list(self) -> list[str]:
        return split_side_effects(self.side_effects)

    @classmethod
    def from_record(cls, record: dict) -> "Medicine":
        """
        Build a Medicine from a catalog record.

        Accepts both the camelCase keys of the catalog export and
        snake_case keys, plus `_id` or `id` for the identifier.
        """
        medicine_id = _first(record, "id", "_id", "medicine_id")
        if medicine_id is None:
            raise ValueError("Medicine record has no id")

        category = _first(record, "category", default=DEFAULT_CATEGORY)
        if category not in CATEGORIES:
            category = DEFAULT_CATEGORY

        raw_interactions = _first(record, "drugInteractions", "drug_interactions", default="")
        if isinstance(raw_interactions, dict):
            raw_interactions = json.dumps(raw_interactions)

        interaction_drugs = _first(record, "interaction_drugs", "interactionDrugs")
        if interaction_drugs is None:
            parsed = parse_drug_interactions(raw_interactions)
            interaction_drugs = parsed.drugs if parsed else ()

        return cls(
            id=str(medicine_id),
            name=str(_first(record, "name", default="")),
            composition=str(_first(record, "composition", default="")),
            ingredients=tuple(str(i) for i in _first(record, "ingredients", default=[]) or []),
            manufacturer=str(_first(record, "manufacturer", default="")),
            price=_parse_price(_first(record, "price")),
            category=category,
            prescription_required=bool(_first(record, "prescriptionRequired", "prescription_required", default=False)),
            sub_category=str(_first(record, "subCategory", "sub_category", default="")),
            pack_size=str(_first(record, "packSize", "pack_size", default="")),
            usage=str(_first(record, "usage", default="")),
            side_effects=str(_first(record, "sideEffects", "side_effects", default="")),
            drug_interactions=str(raw_interactions or ""),
            interaction_drugs=tuple(interaction_drugs),
        )

    def to_dict(self) -> dict:
        """Projected fields returned to callers."""
        return {
            "id": self.id,
            "name": self.name,
            "composition": self.composition,
            "ingredients": list(self.ingredients),
            "manufacturer": self.manufacturer,
            "price": self.price,
            "category": self.category,
            "prescription_required": self.prescription_required,
            "sub_category": self.sub_category,
            "side_effects": self.side_effects,
            "drug_interactions": self.drug_interactions,
        }


@dataclass(frozen=True)
class Candidate:
    """A medicine plus the tier that retrieved it (diagnostics only)."""
    medicine: Medicine
    tier: RetrievalTier


@dataclass(frozen=True)
class SimilarityResult:
    """Weighted similarity of a candidate to the target."""
    score: float
    ingredient_match: float
    category_match: bool
    same_name: bool = False


@dataclass(frozen=True)
class Comparison:
    """Presentation data comparing an alternative with the target."""
    common_ingredients: frozenset[str] = frozenset()
    price_difference_percent: int | None = None
    price_status: PriceStatus | None = None
    savings: float | None = None
    common_interaction_drugs: frozenset[str] = frozenset()

    def to_dict(self) -> dict:
        return {
            "common_ingredients": sorted(self.common_ingredients),
            "price_difference_percent": self.price_difference_percent,
            "price_status": self.price_status.value if self.price_status else None,
            "savings": self.savings,
            "common_interaction_drugs": sorted(self.common_interaction_drugs),
        }


@dataclass(frozen=True)
class Alternative:
    """A scored candidate, optionally enriched with a comparison."""
    candidate: Candidate
    similarity: SimilarityResult
    comparison: Comparison | None = None

    @property
    def medicine(self) -> Medicine:
        return self.candidate.medicine

    @property
    def score(self) -> float:
        return self.similarity.score

    def to_dict(self) -> dict:
        return {
            "medicine": self.medicine.to_dict(),
            "tier": self.candidate.tier.value,
            "similarity": {
                "score": self.similarity.score,
                "ingredient_match": self.similarity.ingredient_match,
                "category_match": self.similarity.category_match,
            },
            "comparison": self.comparison.to_dict() if self.comparison else None,
        }


@dataclass(frozen=True)
class AlternativesRequest:
    """
    A recommendation request.

    Validated on construction so that a bad request never reaches
    the catalog store.
    """
    target_id: str
    min_score: float = 0.3
    max_results: int = 10
    category: str | None = None
    max_price: float | None = None
    exclude_same_name: bool = True

    def __post_init__(self):
        if not isinstance(self.target_id, str) or not self.target_id.strip():
            raise InvalidInputError("target_id is required")

        if isinstance(self.min_score, bool) or not isinstance(self.min_score, (int, float)):
            raise InvalidInputError("min_score must be a number")
        if math.isnan(self.min_score) or not 0.0 <= self.min_score <= 1.0:
            raise InvalidInputError(f"min_score must be within [0, 1], got {self.min_score}")

        if isinstance(self.max_results, bool) or not isinstance(self.max_results, int):
            raise InvalidInputError("max_results must be an integer")
        if self.max_results <= 0:
            raise InvalidInputError(f"max_results must be positive, got {self.max_results}")

        if self.max_price is not None:
            if isinstance(self.max_price, bool) or not isinstance(self.max_price, (int, float)):
                raise InvalidInputError("max_price must be a number")
            if math.isnan(self.max_price) or self.max_price < 0:
                raise InvalidInputError(f"max_price must be non-negative, got {self.max_price}")

        if self.category is not None and not self.category.strip():
            raise InvalidInputError("category override must not be blank")


@dataclass
class RecommendationStats:
    """
    Per-request counters for observability.

    `tier_counts` holds the number of candidates each tier contributed
    after merging; `failed_tiers` lists optional tiers that errored or
    timed out and were skipped.
    """
    target_id: str
    tiers_run: list[str] = field(default_factory=list)
    tier_counts: dict[str, int] = field(default_factory=dict)
    failed_tiers: list[str] = field(default_factory=list)
    scored: int = 0
    dedup_removed: int = 0
    qualifying: int = 0
    final_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AlternativesResponse:
    """Result of one recommendation request."""
    target_medicine: Medicine
    alternatives: list[Alternative]
    message: str | None = None
    stats: RecommendationStats | None = None

    @property
    def count(self) -> int:
        return len(self.alternatives)

    def __len__(self) -> int:
        return len(self.alternatives)

    def __bool__(self) -> bool:
        return len(self.alternatives) > 0

    def to_dict(self) -> dict:
        data = {
            "target_medicine": self.target_medicine.to_dict(),
            "alternatives": [alt.to_dict() for alt in self.alternatives],
            "count": self.count,
        }
        if self.message:
            data["message"] = self.message
        if self.stats:
            data["stats"] = self.stats.to_dict()
        return data
