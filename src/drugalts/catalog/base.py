"""
Catalog store interface.

The recommendation pipeline only needs three read operations from the
medicine catalog. Backends implement them over whatever storage they
wrap; `MedicineFilter.matches` gives all of them the same filter
semantics.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from drugalts.models import Medicine


@dataclass(frozen=True)
class MedicineFilter:
    """
    Filter over catalog medicines. Empty fields do not constrain.

    ingredient_terms: match when any ingredient contains any term
                      (case-insensitive substring)
    category: exact category match
    max_price: price known and <= max_price
    exclude_id: never match this medicine id
    """
    exclude_id: str | None = None
    ingredient_terms: tuple[str, ...] = ()
    category: str | None = None
    max_price: float | None = None

    def matches(self, medicine: Medicine) -> bool:
        if self.exclude_id is not None and medicine.id == self.exclude_id:
            return False

        if self.category is not None and medicine.category != self.category:
            return False

        if self.max_price is not None:
            if medicine.price is None or medicine.price > self.max_price:
                return False

        if self.ingredient_terms:
            lowered = [ingredient.lower() for ingredient in medicine.ingredients]
            if not any(term.lower() in ingredient for term in self.ingredient_terms for ingredient in lowered):
                return False

        return True


class CatalogStore(ABC):
    """Abstract base class for medicine catalog backends."""

    @abstractmethod
    def find_by_id(self, medicine_id: str) -> Medicine | None:
        """Fetch one medicine, or None if the id is unknown."""
        pass

    @abstractmethod
    def find_many(self, medicine_filter: MedicineFilter, limit: int) -> list[Medicine]:
        """Up to `limit` medicines matching the filter."""
        pass

    @abstractmethod
    def random_sample(self, medicine_filter: MedicineFilter, size: int) -> list[Medicine]:
        """
        Approximately uniform sample without replacement.

        Returns min(size, number of matches) medicines.
        """
        pass

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
