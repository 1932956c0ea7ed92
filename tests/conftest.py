"""Pytest configuration and shared fixtures."""

import logging
import random

import pytest
import structlog


def pytest_configure(config):
    """Keep structlog output out of test and CLI output, before any test module is imported."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        cache_logger_on_first_use=False,
    )


def pytest_unconfigure(config):
    structlog.reset_defaults()


@pytest.fixture
def make_medicine():
    """Factory for catalog medicines with sensible defaults."""
    from drugalts.models import Medicine

    def _make(medicine_id: str, name: str | None = None, **fields) -> Medicine:
        fields.setdefault("ingredients", ())
        fields["ingredients"] = tuple(fields["ingredients"])
        fields.setdefault("manufacturer", "Generic Labs")
        fields.setdefault("category", "Analgestics")
        fields.setdefault("price", 100.0)
        if "interaction_drugs" in fields:
            fields["interaction_drugs"] = tuple(fields["interaction_drugs"])
        return Medicine(id=medicine_id, name=name or f"Medicine {medicine_id}", **fields)

    return _make


@pytest.fixture
def paracetamol(make_medicine):
    """Target medicine used by most scenarios."""
    return make_medicine(
        "target",
        name="Calpol 500",
        ingredients=["Paracetamol (500mg)"],
        manufacturer="GSK",
        category="Analgestics",
        price=100.0,
        interaction_drugs=["Warfarin", "Alcohol"],
    )


@pytest.fixture
def store_factory():
    """Build an in-memory store with a seeded random source."""
    from drugalts.catalog.memory import InMemoryCatalogStore

    def _build(*medicines, seed: int = 7) -> InMemoryCatalogStore:
        return InMemoryCatalogStore(medicines, rng=random.Random(seed))

    return _build


@pytest.fixture
def fast_limits():
    """Retrieval limits with a short store timeout for failure tests."""
    from drugalts.recommend.retriever import RetrievalLimits

    return RetrievalLimits(store_timeout_seconds=0.2)
