"""
In-memory catalog store.

Holds the whole catalog in a dict. Used by the test suite and by the
CLI `--catalog` option to run recommendations against a JSONL export
without a Weaviate instance.

Usage:
    from drugalts.catalog.memory import InMemoryCatalogStore

    store = InMemoryCatalogStore.from_jsonl("data/medicines.jsonl")
    medicine = store.find_by_id("64f0c2...")
"""

import json
import random
from pathlib import Path
from typing import Iterable

from drugalts.catalog.base import CatalogStore, MedicineFilter
from drugalts.models import Medicine
from drugalts.logging import get_logger

logger = get_logger(__name__, component="memory_store")


def load_medicines_from_jsonl(input_path) -> list[Medicine]:
    """Load medicine records, one JSON object per line. Blank lines are skipped."""
    medicines = []
    with open(Path(input_path), encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            medicines.append(Medicine.from_record(json.loads(line)))

    return medicines


class InMemoryCatalogStore(CatalogStore):
    """
    Dict-backed catalog.

    Args:
        medicines: Initial catalog contents (later ids overwrite earlier ones)
        rng: Random source for sampling; pass a seeded Random for
             reproducible samples
    """

    def __init__(self, medicines: Iterable[Medicine] = (), rng: random.Random | None = None):
        self._medicines: dict[str, Medicine] = {}
        self.rng = rng or random.Random()
        for medicine in medicines:
            self.add(medicine)

    @classmethod
    def from_jsonl(cls, input_path, rng: random.Random | None = None) -> "InMemoryCatalogStore":
        medicines = load_medicines_from_jsonl(input_path)
        logger.info("catalog_loaded", path=str(input_path), count=len(medicines))
        return cls(medicines, rng=rng)

    def add(self, medicine: Medicine) -> None:
        self._medicines[medicine.id] = medicine

    def __len__(self) -> int:
        return len(self._medicines)

    def find_by_id(self, medicine_id: str) -> Medicine | None:
        return self._medicines.get(medicine_id)

    def find_many(self, medicine_filter: MedicineFilter, limit: int) -> list[Medicine]:
        results = []
        for medicine in self._medicines.values():
            if len(results) >= limit:
                break
            if medicine_filter.matches(medicine):
                results.append(medicine)
        return results

    def random_sample(self, medicine_filter: MedicineFilter, size: int) -> list[Medicine]:
        matches = [m for m in self._medicines.values() if medicine_filter.matches(m)]
        if len(matches) <= size:
            self.rng.shuffle(matches)
            return matches
        return self.rng.sample(matches, size)
