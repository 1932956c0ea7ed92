"""
Weaviate schema for the medicine catalog.

Key design decisions:
1. No vectorizer: the catalog is queried with filters, not vectors
2. ingredients_text is a lowercase, field-tokenized copy of the
   ingredient list so `like "*term*"` acts as a substring match
3. medicine_id and category use "field" tokenization for exact filtering

Usage:
    from drugalts.catalog.schema import create_schema, delete_schema

    create_schema(client)  # Create the collection
    delete_schema(client)  # Delete (for reset)
"""

import weaviate
from weaviate.classes.config import Configure, DataType, Property, Tokenization

from drugalts.config import settings
from drugalts.logging import get_logger

logger = get_logger(__name__, component="schema")

# Separator between ingredients in ingredients_text
INGREDIENT_SEPARATOR = "|"


def get_schema_properties() -> list[Property]:
    """
    Define the properties (fields) of a medicine.

    Tokenization options:
    - WORD: Split on whitespace/punctuation (for keyword search)
    - FIELD: No splitting (for exact match/filtering and wildcards)
    """
    return [
        Property(
            name="medicine_id",
            data_type=DataType.TEXT,
            description="Catalog identifier",
            tokenization=Tokenization.FIELD,
        ),
        Property(
            name="name",
            data_type=DataType.TEXT,
            description="Brand / product name",
            tokenization=Tokenization.WORD,
        ),
        Property(
            name="composition",
            data_type=DataType.TEXT,
            description="Salt composition as printed on the pack",
            tokenization=Tokenization.WORD,
        ),
        Property(
            name="ingredients",
            data_type=DataType.TEXT_ARRAY,
            description="Active ingredients in stored order and spelling",
            tokenization=Tokenization.WORD,
        ),
        Property(
            name="ingredients_text",
            data_type=DataType.TEXT,
            description="Lowercase ingredients joined by '|', for substring filters",
            tokenization=Tokenization.FIELD,
        ),
        Property(
            name="manufacturer",
            data_type=DataType.TEXT,
            description="Manufacturer",
            tokenization=Tokenization.WORD,
        ),
        Property(
            name="price",
            data_type=DataType.NUMBER,
            description="Price; absent when unavailable",
        ),
        Property(
            name="category",
            data_type=DataType.TEXT,
            description="Catalog category",
            tokenization=Tokenization.FIELD,
        ),
        Property(
            name="prescription_required",
            data_type=DataType.BOOL,
            description="Whether a prescription is required",
        ),
        Property(
            name="sub_category",
            data_type=DataType.TEXT,
            description="Free-text sub category",
            tokenization=Tokenization.WORD,
        ),
        Property(
            name="pack_size",
            data_type=DataType.TEXT,
            description="Pack size label",
            skip_vectorization=True,
        ),
        Property(
            name="usage",
            data_type=DataType.TEXT,
            description="Usage description",
            tokenization=Tokenization.WORD,
        ),
        Property(
            name="side_effects",
            data_type=DataType.TEXT,
            description="Comma separated side effects",
            tokenization=Tokenization.WORD,
        ),
        Property(
            name="drug_interactions",
            data_type=DataType.TEXT,
            description="Raw interaction payload (JSON)",
            index_searchable=False,
        ),
        Property(
            name="interaction_drugs",
            data_type=DataType.TEXT_ARRAY,
            description="Parsed interacting drug names",
            tokenization=Tokenization.FIELD,
        ),
    ]


def create_schema(
        client: weaviate.WeaviateClient,
        name: str | None = None,
        delete_existing: bool = False,
) -> None:
    """
    Create the medicine collection in Weaviate.

    Args:
        client: Connected Weaviate client
        name: Collection name. Defaults to settings.weaviate_collection
        delete_existing: If True, delete existing collection first
    """
    name = name or settings.weaviate_collection

    if client.collections.exists(name):
        if delete_existing:
            logger.warning("deleting_existing_collection", name=name)
            client.collections.delete(name)
        else:
            logger.debug("collection_exists", name=name)
            return

    client.collections.create(
        name=name,
        description="Medicine catalog for alternative recommendations",
        properties=get_schema_properties(),
        vectorizer_config=Configure.Vectorizer.none(),
    )

    logger.info("collection_created", name=name)


def delete_schema(client: weaviate.WeaviateClient, name: str | None = None) -> None:
    """Delete the medicine collection."""
    name = name or settings.weaviate_collection

    if client.collections.exists(name):
        client.collections.delete(name)
        logger.info("collection_deleted", name=name)
    else:
        logger.info("collection_not_found", name=name)


def get_collection_stats(client: weaviate.WeaviateClient, name: str | None = None) -> dict:
    """
    Get statistics about the collection.

    Returns:
        Dict with count and other stats
    """
    name = name or settings.weaviate_collection

    if not client.collections.exists(name):
        return {"exists": False, "count": 0, "name": name}

    collection = client.collections.get(name)
    result = collection.aggregate.over_all(total_count=True)

    return {
        "exists": True,
        "count": result.total_count,
        "name": name,
    }
