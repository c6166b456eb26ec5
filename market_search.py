"""
market_search.py — public interface for market (price) search.

The rest of the code imports only from here:
  from market_search import search_products, visual_search, SearchHit

Two passes share one aggregation routine:

  search_products()  shopping pass — "<q> for sale", "<q> price", "buy <q> [cond]", …
  visual_search()    broader web pass — brand-aware variants, fewer queries

Aggregation rules (both passes):
  • queries run one after another; a failing query is logged and skipped
  • first occurrence of a link wins, later duplicates are dropped
  • min/max price filters apply when given
  • priceless hits survive only if their title mentions the query's first word
  • priced hits sort before priceless ones, otherwise service order is kept
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

import config
from errors import ConfigurationError, SearchQueryError
from query_builder import shopping_variants, visual_variants
from search_backends.base import SearchBackend, SearchHit, SearchResult
from text_signals import extract_merchant, extract_signals

logger = logging.getLogger(__name__)

__all__ = ["SearchHit", "search_products", "visual_search", "dedupe_by_link", "get_backend", "backend_name"]

VISUAL_MAX_QUERIES = 2
VISUAL_RESULTS_PER_QUERY = 5

_backend: Optional[SearchBackend] = None


def get_backend() -> SearchBackend:
    """Return the active backend, initialising it once on first call."""
    global _backend
    if _backend is not None:
        return _backend
    _backend = _build_backend()
    logger.info("Search backend: %s", _backend.name)
    return _backend


def backend_name() -> str:
    try:
        return get_backend().name
    except ConfigurationError:
        return "not configured"


def _build_backend() -> SearchBackend:
    """Raises ConfigurationError before any network call when keys are missing."""
    if not config.GOOGLE_SEARCH_API_KEY:
        raise ConfigurationError(
            "Google Custom Search is not configured. "
            "Set GOOGLE_API_KEY (or GOOGLE_SEARCH_API_KEY) in the environment."
        )
    if not config.GOOGLE_CUSTOM_SEARCH_ENGINE_ID:
        raise ConfigurationError("GOOGLE_CUSTOM_SEARCH_ENGINE_ID is required for market search")

    from search_backends.google_cse_backend import GoogleCustomSearchBackend
    return GoogleCustomSearchBackend(
        api_key=config.GOOGLE_SEARCH_API_KEY,
        engine_id=config.GOOGLE_CUSTOM_SEARCH_ENGINE_ID,
    )


# ── Hit construction / filtering ──────────────────────────────────────────────

def to_hit(result: SearchResult) -> SearchHit:
    """Run the text-signal extractors over one raw result."""
    text = result.snippet or result.title
    signals = extract_signals(text)
    return SearchHit(
        title=result.title,
        link=result.link,
        snippet=result.snippet,
        price=signals.price,
        currency=signals.currency,
        merchant=extract_merchant(result.display_link or result.link),
        condition=signals.condition,
        rating=signals.rating,
        review_count=signals.review_count,
        image_url=result.thumbnail_url,
    )


def dedupe_by_link(hits: Iterable[SearchHit]) -> list[SearchHit]:
    """Keep the first hit for every link, preserving order."""
    seen: set[str] = set()
    unique: list[SearchHit] = []
    for hit in hits:
        if hit.link in seen:
            continue
        seen.add(hit.link)
        unique.append(hit)
    return unique


def _looks_relevant(hit: SearchHit, query: str) -> bool:
    words = query.split()
    return bool(words) and words[0].lower() in hit.title.lower()


def _passes_price_filters(
    hit: SearchHit,
    min_price: Optional[float],
    max_price: Optional[float],
) -> bool:
    if min_price and (hit.price is None or hit.price < min_price):
        return False
    if max_price and hit.price is not None and hit.price > max_price:
        return False
    return True


# ── Shared aggregation ────────────────────────────────────────────────────────

async def _aggregate(
    backend: SearchBackend,
    queries: list[str],
    *,
    relevance_query: str,
    per_query: int,
    max_results: int,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> list[SearchHit]:
    seen: set[str] = set()
    hits: list[SearchHit] = []

    for i, query in enumerate(queries):
        if i and config.SEARCH_QUERY_DELAY:
            await asyncio.sleep(config.SEARCH_QUERY_DELAY)
        try:
            results = await backend.search(query, per_query)
        except SearchQueryError as exc:
            logger.warning("[%s] Query '%s' failed — skipping: %s", backend.name, query, exc)
            continue
        except Exception as exc:
            logger.warning("[%s] Query '%s' raised %s — skipping: %s",
                           backend.name, query, type(exc).__name__, exc)
            continue

        kept = 0
        for result in results:
            if result.link in seen:
                continue
            seen.add(result.link)

            hit = to_hit(result)
            if not _passes_price_filters(hit, min_price, max_price):
                continue
            if not hit.has_price and not _looks_relevant(hit, relevance_query):
                continue
            hits.append(hit)
            kept += 1
        logger.info("[%s] '%s' → %d results, %d kept", backend.name, query, len(results), kept)

    # sort() is stable: order within each group is preserved
    hits.sort(key=lambda h: 0 if h.has_price else 1)
    return hits[:max_results]


# ── Public search functions ────────────────────────────────────────────────────

async def search_products(
    query: str,
    max_results: Optional[int] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    condition: Optional[str] = None,
) -> list[SearchHit]:
    """
    Shopping pass: search several "for sale" phrasings of query.

    Args:
        query:       core search terms, e.g. "Apple MacBook Pro M1".
        max_results: how many hits to return (default config.MAX_SEARCH_RESULTS).
        min_price:   drop hits cheaper than this (and hits with no price).
        max_price:   drop priced hits above this.
        condition:   appended to the "buy …" variant, e.g. "used".

    Returns:
        Deduplicated SearchHit list, priced hits first. Empty when every query failed.

    Raises:
        ConfigurationError when search keys are missing.
    """
    backend = get_backend()
    max_results = max_results or config.MAX_SEARCH_RESULTS
    per_query = max(1, min(max_results // 2, 5))
    queries = shopping_variants(query, condition)[: config.MAX_SEARCH_QUERIES]

    return await _aggregate(
        backend,
        queries,
        relevance_query=query,
        per_query=per_query,
        max_results=max_results,
        min_price=min_price,
        max_price=max_price,
    )


async def visual_search(
    query: str,
    brand: Optional[str] = None,
    max_results: Optional[int] = None,
) -> list[SearchHit]:
    """
    Broader web pass used when the shopping pass finds too little.
    Same aggregation rules, brand-aware variants, two queries of five results.
    """
    backend = get_backend()
    queries = visual_variants(query, brand)[:VISUAL_MAX_QUERIES]

    return await _aggregate(
        backend,
        queries,
        relevance_query=query,
        per_query=VISUAL_RESULTS_PER_QUERY,
        max_results=max_results or config.MAX_SEARCH_RESULTS,
    )
