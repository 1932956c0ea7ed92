"""
Medicine catalog storage.

This module handles:
- The CatalogStore interface used by candidate retrieval
- A Weaviate-backed store for the full catalog
- An in-memory store for tests and JSONL exports

Usage:
    from drugalts.catalog import WeaviateCatalogStore

    with WeaviateCatalogStore() as store:
        medicine = store.find_by_id("64f0c2...")
"""

from drugalts.catalog.base import CatalogStore, MedicineFilter
from drugalts.catalog.memory import InMemoryCatalogStore, load_medicines_from_jsonl
from drugalts.catalog.client import WeaviateCatalogStore

__all__ = [
    "CatalogStore",
    "MedicineFilter",
    "InMemoryCatalogStore",
    "load_medicines_from_jsonl",
    "WeaviateCatalogStore",
]
