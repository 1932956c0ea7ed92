"""
Weaviate-backed medicine catalog.

This module provides:
- Connection management (context manager pattern)
- Batch indexing of medicine records
- Id lookups and filtered fetches for candidate retrieval
- Uniform random sampling (reservoir sampling over the collection iterator,
  Weaviate has no native random-sample query)

Usage:
    from drugalts.catalog.client import WeaviateCatalogStore

    with WeaviateCatalogStore() as store:
        store.index_medicines(medicines)
        target = store.find_by_id("64f0c2...")
"""

import math
import random
from typing import Iterable, TypeVar

import weaviate
from weaviate.classes.init import AdditionalConfig, Timeout
from weaviate.classes.query import Filter
from weaviate.util import generate_uuid5

from drugalts.catalog.base import CatalogStore, MedicineFilter
from drugalts.catalog.schema import (
    INGREDIENT_SEPARATOR,
    create_schema,
    delete_schema,
    get_collection_stats,
)
from drugalts.config import settings
from drugalts.models import Medicine
from drugalts.logging import get_logger

logger = get_logger(__name__, component="catalog")

T = TypeVar("T")

# Characters with wildcard meaning in Weaviate `like` patterns
_LIKE_SPECIAL = str.maketrans("", "", "*?" + INGREDIENT_SEPARATOR)


def _connect() -> weaviate.WeaviateClient:
    timeout = max(1, math.ceil(settings.store_timeout_seconds))
    return weaviate.connect_to_local(
        host=settings.weaviate_host,
        port=settings.weaviate_port,
        grpc_port=settings.weaviate_grpc_port,
        additional_config=AdditionalConfig(
            timeout=Timeout(init=timeout, query=timeout, insert=timeout * 6),
        ),
    )


def reservoir_sample(items: Iterable[T], size: int, rng: random.Random) -> list[T]:
    """
    Uniform sample without replacement from a stream of unknown length.

    Every item ends up in the result with probability size / n.
    """
    if size <= 0:
        return []

    reservoir: list[T] = []
    for seen, item in enumerate(items):
        if seen < size:
            reservoir.append(item)
        else:
            slot = rng.randint(0, seen)
            if slot < size:
                reservoir[slot] = item
    return reservoir


def medicine_to_properties(medicine: Medicine) -> dict:
    """Weaviate properties for a medicine. Unknown prices are left out."""
    properties = {
        "medicine_id": medicine.id,
        "name": medicine.name,
        "composition": medicine.composition,
        "ingredients": list(medicine.ingredients),
        "ingredients_text": INGREDIENT_SEPARATOR.join(i.lower() for i in medicine.ingredients),
        "manufacturer": medicine.manufacturer,
        "category": medicine.category,
        "prescription_required": medicine.prescription_required,
        "sub_category": medicine.sub_category,
        "pack_size": medicine.pack_size,
        "usage": medicine.usage,
        "side_effects": medicine.side_effects,
        "drug_interactions": medicine.drug_interactions,
        "interaction_drugs": list(medicine.interaction_drugs),
    }
    if medicine.price is not None:
        properties["price"] = medicine.price
    return properties


def properties_to_medicine(properties: dict) -> Medicine:
    """Inverse of medicine_to_properties."""
    price = properties.get("price")
    return Medicine(
        id=str(properties.get("medicine_id", "")),
        name=properties.get("name") or "",
        composition=properties.get("composition") or "",
        ingredients=tuple(properties.get("ingredients") or ()),
        manufacturer=properties.get("manufacturer") or "",
        price=float(price) if price is not None else None,
        category=properties.get("category") or "Other",
        prescription_required=bool(properties.get("prescription_required")),
        sub_category=properties.get("sub_category") or "",
        pack_size=properties.get("pack_size") or "",
        usage=properties.get("usage") or "",
        side_effects=properties.get("side_effects") or "",
        drug_interactions=properties.get("drug_interactions") or "",
        interaction_drugs=tuple(properties.get("interaction_drugs") or ()),
    )


def build_filters(medicine_filter: MedicineFilter) -> Filter | None:
    """Translate a MedicineFilter into a Weaviate filter (AND of clauses)."""
    filters = []

    if medicine_filter.exclude_id is not None:
        filters.append(Filter.by_property("medicine_id").not_equal(medicine_filter.exclude_id))

    if medicine_filter.category is not None:
        filters.append(Filter.by_property("category").equal(medicine_filter.category))

    if medicine_filter.max_price is not None:
        filters.append(Filter.by_property("price").less_or_equal(medicine_filter.max_price))

    term_filters = []
    for term in medicine_filter.ingredient_terms:
        cleaned = term.lower().translate(_LIKE_SPECIAL).strip()
        if cleaned:
            term_filters.append(Filter.by_property("ingredients_text").like(f"*{cleaned}*"))

    if term_filters:
        # Any term may match
        any_term = term_filters[0]
        for f in term_filters[1:]:
            any_term = any_term | f
        filters.append(any_term)

    if not filters:
        return None

    combined = filters[0]
    for f in filters[1:]:
        combined = combined & f

    return combined


class WeaviateCatalogStore(CatalogStore):
    """
    Medicine catalog stored in a Weaviate collection.

    The store manages its own Weaviate connection.

    Example:
        store = WeaviateCatalogStore()

        store.index_medicines(medicines)
        candidates = store.find_many(MedicineFilter(ingredient_terms=("paracetamol",)), limit=500)

        # Clean up when done
        store.close()
    """

    def __init__(
            self,
            client: weaviate.WeaviateClient | None = None,
            collection_name: str | None = None,
            rng: random.Random | None = None,
    ):
        """
        Initialize the catalog store.

        Args:
            client: Optional connected client. If not provided, connects to
                    the configured local Weaviate instance.
            collection_name: Defaults to settings.weaviate_collection
            rng: Random source used for sampling
        """
        self.client = client or _connect()
        self.collection_name = collection_name or settings.weaviate_collection
        self.rng = rng or random.Random()

        create_schema(self.client, self.collection_name)
        self.collection = self.client.collections.get(self.collection_name)

        logger.info("catalog_store_initialized", collection=self.collection_name)

    def close(self) -> None:
        """Close the Weaviate connection."""
        self.client.close()
        logger.debug("catalog_store_closed")

    def get_stats(self) -> dict:
        """Get collection statistics."""
        return get_collection_stats(self.client, self.collection_name)

    def index_medicines(self, medicines: list[Medicine]) -> int:
        """
        Batch insert medicines.

        Object UUIDs are derived from the medicine id, so re-indexing a
        record replaces it instead of duplicating it.

        Returns:
            Number of medicines successfully indexed
        """
        if not medicines:
            logger.warning("no_medicines_to_index")
            return 0

        logger.info("indexing_start", total=len(medicines))

        with self.collection.batch.dynamic() as batch:
            for medicine in medicines:
                batch.add_object(
                    properties=medicine_to_properties(medicine),
                    uuid=generate_uuid5(medicine.id),
                )

        failed = self.collection.batch.failed_objects
        for failure in failed[:10]:
            logger.warning("index_medicine_failed", error=failure.message)

        indexed = len(medicines) - len(failed)
        logger.info("indexing_complete", indexed=indexed, failed=len(failed))

        return indexed

    def find_by_id(self, medicine_id: str) -> Medicine | None:
        results = self.collection.query.fetch_objects(
            filters=Filter.by_property("medicine_id").equal(medicine_id),
            limit=1,
        )
        if not results.objects:
            return None
        return properties_to_medicine(results.objects[0].properties)

    def find_many(self, medicine_filter: MedicineFilter, limit: int) -> list[Medicine]:
        results = self.collection.query.fetch_objects(
            filters=build_filters(medicine_filter),
            limit=limit,
        )

        medicines = [properties_to_medicine(obj.properties) for obj in results.objects]
        logger.debug("find_many_complete", limit=limit, results=len(medicines))
        return medicines

    def random_sample(self, medicine_filter: MedicineFilter, size: int) -> list[Medicine]:
        """
        Sample by streaming the collection through a reservoir.

        This reads the whole collection once; filters are applied
        client-side with the same predicate the in-memory store uses.
        """
        stream = (
            medicine
            for medicine in (properties_to_medicine(obj.properties) for obj in self.collection.iterator())
            if medicine_filter.matches(medicine)
        )
        sample = reservoir_sample(stream, size, self.rng)

        logger.debug("random_sample_complete", size=size, results=len(sample))
        return sample

    def delete_all(self) -> None:
        """
        Delete all medicines from the collection.

        Use for testing or resetting the database.
        """
        delete_schema(self.client, self.collection_name)
        create_schema(self.client, self.collection_name)
        self.collection = self.client.collections.get(self.collection_name)

        logger.info("collection_reset", name=self.collection_name)
