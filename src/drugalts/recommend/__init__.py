"""
Alternative medicine recommendation.

This module handles:
- Tiered candidate retrieval from the catalog
- Weighted similarity scoring
- Deduplication, ranking and enrichment
"""

from drugalts.recommend.dedup import DedupPolicy, canonical_key, deduplicate
from drugalts.recommend.enrich import compare, enrich
from drugalts.recommend.pipeline import AlternativesPipeline, find_alternatives
from drugalts.recommend.rank import rank
from drugalts.recommend.retriever import (
    CandidateRetriever,
    RetrievalLimits,
    RetrievalState,
    needs_category_expansion,
    needs_global_fallback,
)
from drugalts.recommend.similarity import SimilarityScorer, SimilarityWeights, jaccard

__all__ = [
    "AlternativesPipeline",
    "find_alternatives",
    "CandidateRetriever",
    "RetrievalLimits",
    "RetrievalState",
    "needs_category_expansion",
    "needs_global_fallback",
    "SimilarityScorer",
    "SimilarityWeights",
    "jaccard",
    "DedupPolicy",
    "canonical_key",
    "deduplicate",
    "rank",
    "compare",
    "enrich",
]
