"""
query_builder.py — search query strings from a (possibly partial) identity.

build_search_query() produces the single seed query for a recognition
request. Each search pass then derives its own variants from the seed's core
terms (the seed minus its "used for sale" / "for sale" suffix).
"""
from __future__ import annotations

import re
from typing import Optional

from identity_resolver import is_generic_term

FALLBACK_QUERY = "laptop for sale"

_SALE_SUFFIX_RE = re.compile(r"\s+(?:used\s+)?for\s+sale$", re.I)


def build_search_query(name: Optional[str], brand: Optional[str], model: Optional[str]) -> str:
    """
    Precedence:
      brand + model                       → "<brand> <model> used for sale"
      brand + specific name w/o brand     → "<brand> <name> used for sale"
                                            ("… for sale" for one-word names)
      brand + generic/absent name         → "Apple MacBook Pro used for sale" | "<brand> laptop used for sale"
      specific name                       → "<name> used for sale"
      nothing usable                      → "laptop for sale"
    """
    clean_name = "" if is_generic_term(name) else (name or "").strip()

    if brand and model:
        return f"{brand} {model} used for sale"

    if brand and clean_name and brand.lower() not in clean_name.lower():
        if len(clean_name.split()) >= 2:
            return f"{brand} {clean_name} used for sale"
        return f"{brand} {clean_name} for sale"

    if brand and not clean_name:
        if brand == "Apple":
            return "Apple MacBook Pro used for sale"
        return f"{brand} laptop used for sale"

    if clean_name:
        return f"{clean_name} used for sale"

    return FALLBACK_QUERY


def core_terms(query: str) -> str:
    """'Apple M1 Pro used for sale' → 'Apple M1 Pro'."""
    stripped = _SALE_SUFFIX_RE.sub("", query.strip())
    return stripped or query.strip()


def shopping_variants(query: str, condition: Optional[str] = None) -> list[str]:
    """Variants for the shopping pass, most specific first."""
    return [
        f"{query} for sale",
        f"{query} price",
        f"buy {query}" + (f" {condition}" if condition else ""),
        f"{query} marketplace",
    ]


def visual_variants(query: str, brand: Optional[str] = None) -> list[str]:
    """Variants for the broader web pass. Brand is prepended unless already present."""
    if brand and brand.lower() not in query.lower():
        return [
            f"{brand} {query} for sale price",
            f"{brand} {query} used marketplace",
            f"{query} {brand} buy",
        ]
    return [
        f"{query} for sale price",
        f"{query} used marketplace",
        f"buy {query}",
    ]
