"""
Ingredient normalization.

Catalog ingredient strings carry dosage noise: "Paracetamol (500mg)",
"Amoxycillin 250 mg", "Clavulanic Acid". Two views are derived from them:

- search terms: cleaned strings used for substring lookups in the catalog.
  Very short terms (<= 2 chars) are dropped since they match nearly
  every record.
- normalized sets: cleaned, lowercase sets used for Jaccard similarity,
  common-ingredient reporting and nothing else.

Usage:
    from drugalts.recommend.normalize import normalize_ingredients, search_terms

    normalize_ingredients(["Paracetamol (500mg)", "Caffeine 30 mg"])
    # frozenset({"paracetamol", "caffeine"})
"""

import re
from typing import Iterable

# Parenthetical annotations, usually strength: "(500mg)", "(IP)"
_PARENTHETICAL = re.compile(r"\([^)]*\)")

# Dose tokens: "500mg", "0.5 ml", "40 IU", "1% w/w"
_DOSE = re.compile(
    r"\d+(?:\.\d+)?\s*(?:mcg|mg|ml|g|iu|%|w/w|v/v)(?:\s*(?:w/w|v/v))?(?![a-z])",
    re.IGNORECASE,
)

_WHITESPACE = re.compile(r"\s+")

# Terms this short would turn a substring query into a full scan
MIN_SEARCH_TERM_LENGTH = 3


def clean_ingredient(ingredient: str) -> str:
    """
    Lowercase an ingredient and strip dosage annotations.

    Returns an empty string when nothing meaningful is left.
    """
    if not ingredient:
        return ""
    text = ingredient.lower()
    text = _PARENTHETICAL.sub(" ", text)
    text = _DOSE.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def normalize_ingredients(ingredients: Iterable[str]) -> frozenset[str]:
    """Normalized ingredient set used for similarity and comparison."""
    cleaned = (clean_ingredient(ingredient) for ingredient in ingredients or ())
    return frozenset(item for item in cleaned if item)


def search_terms(ingredients: Iterable[str]) -> list[str]:
    """
    Cleaned ingredient terms for catalog substring lookups.

    Order follows the input; duplicates and short terms are dropped.
    """
    terms: list[str] = []
    for ingredient in ingredients or ():
        term = clean_ingredient(ingredient)
        if len(term) >= MIN_SEARCH_TERM_LENGTH and term not in terms:
            terms.append(term)
    return terms
