"""
recognizer.py — the photo → listing-draft pipeline.

  recognize(image)
    1. check configuration            (ConfigurationError → fatal)
    2. annotate the photo             (AnnotationServiceError → fatal)
    3. resolve identity               identity_resolver.resolve_identity
    4. build the seed query           query_builder.build_search_query
    5. shopping pass                  only for specific identities
    6. visual pass                    when shopping found fewer than 3 hits
    7. + up to 3 pages that carry the same photo (no price)
    8. dedupe by link, synthesize prices
    9. description / category / condition / specifications

Fatal errors reach the caller as one RecognitionError chained to the cause.
Search failures never do: a request whose searches all failed still gets a
result, just with zero prices.

Also exposes the price-research helpers used by the API server:
get_market_analysis(), get_price_comparison(), search_similar().
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import config
import market_search
from description_generator import generate_description, infer_category, infer_condition
from errors import AnnotationServiceError, ConfigurationError, RecognitionError
from identity_resolver import resolve_identity
from image_analyzer import ImageAnalysis, Identity
from pricing import (
    MarketAnalysis,
    PriceComparison,
    PriceSummary,
    average_price,
    market_analysis,
    price_comparison,
    summarize_prices,
)
from providers import manager as providers_manager
from providers.base import ImageInput
from query_builder import build_search_query, core_terms
from search_backends.base import SearchHit
from text_signals import extract_currency, extract_merchant, extract_platform, extract_specifications

logger = logging.getLogger(__name__)

# Below this many shopping hits the broader visual pass is added
MIN_SHOPPING_HITS = 3
# A shopping average under this is not trusted on its own
MIN_PLAUSIBLE_AVERAGE = 10
MATCHING_PAGES_LIMIT = 3


@dataclass(frozen=True)
class SimilarItem:
    title: str
    price: float
    platform: str
    url: str

    def to_dict(self) -> dict:
        return {"title": self.title, "price": self.price, "platform": self.platform, "url": self.url}


@dataclass(frozen=True)
class RecognitionResult:
    recognized_item: str
    confidence: float
    brand: Optional[str]
    model: Optional[str]
    market_price: float
    suggested_price: float
    description: str
    category: str
    condition: str
    specifications: dict[str, str] = field(default_factory=dict)
    similar_items: list[SimilarItem] = field(default_factory=list)
    price_summary: PriceSummary = field(default_factory=PriceSummary)

    def to_dict(self) -> dict:
        return {
            "recognizedItem": self.recognized_item,
            "confidence":     self.confidence,
            "brand":          self.brand,
            "model":          self.model,
            "marketPrice":    self.market_price,
            "suggestedPrice": self.suggested_price,
            "description":    self.description,
            "category":       self.category,
            "condition":      self.condition,
            "specifications": dict(self.specifications),
            "similarItems":   [item.to_dict() for item in self.similar_items],
            "priceSummary":   self.price_summary.to_dict(),
        }


# ── Pipeline steps ────────────────────────────────────────────────────────────

def _check_configuration() -> None:
    """Build both clients up front so a missing key fails before any HTTP call."""
    providers_manager.get_provider()
    market_search.get_backend()


def _page_hits(analysis: ImageAnalysis) -> list[SearchHit]:
    """Pages carrying the same photo, as priceless candidates."""
    return [
        SearchHit(
            title=page.title,
            link=page.url,
            snippet="",
            price=None,
            currency=extract_currency(page.title),
            merchant=extract_merchant(page.url),
        )
        for page in analysis.matching_pages[:MATCHING_PAGES_LIMIT]
    ]


async def _gather_market_hits(
    analysis: ImageAnalysis,
    identity: Identity,
    seed_query: str,
) -> tuple[list[SearchHit], list[SearchHit]]:
    """Returns (shopping hits, combined deduplicated hits)."""
    core = core_terms(seed_query)

    shopping: list[SearchHit] = []
    if identity.is_specific:
        shopping = await market_search.search_products(
            core,
            max_results=config.MAX_SEARCH_RESULTS,
            condition="used",
        )
        logger.info("Shopping pass for '%s' → %d hits", core, len(shopping))

    visual: list[SearchHit] = []
    if len(shopping) < MIN_SHOPPING_HITS:
        visual = await market_search.visual_search(core, identity.brand)
        logger.info("Visual pass for '%s' → %d hits", core, len(visual))

    combined = market_search.dedupe_by_link([*shopping, *visual, *_page_hits(analysis)])
    return shopping, combined


def synthesize_prices(shopping: list[SearchHit], combined: list[SearchHit]) -> PriceSummary:
    """
    Min/max/histogram come from the combined hits. The average prefers the
    shopping pass and falls back to the combined hits when the shopping
    average is missing or implausibly low.
    """
    summary = summarize_prices(combined)
    shopping_average = average_price(shopping)
    if shopping_average >= MIN_PLAUSIBLE_AVERAGE:
        return summary.with_average(shopping_average)
    return summary


def _similar_items(hits: list[SearchHit]) -> list[SimilarItem]:
    return [
        SimilarItem(
            title=hit.title,
            price=hit.price or 0,
            platform=extract_platform(hit.link),
            url=hit.link,
        )
        for hit in hits[: config.SIMILAR_ITEMS_LIMIT]
    ]


# ── Public API ────────────────────────────────────────────────────────────────

async def recognize(image: ImageInput) -> RecognitionResult:
    """
    Recognize the item in a photo and draft a listing for it.

    Args:
        image: raw bytes or a base64 string (a data-URL prefix is fine).

    Raises:
        RecognitionError — configuration missing or image annotation failed.
    """
    try:
        _check_configuration()
        analysis = await providers_manager.analyse_image(image)
    except (ConfigurationError, AnnotationServiceError) as exc:
        logger.error("Recognition failed: %s", exc)
        raise RecognitionError(f"Failed to recognize item: {exc}") from exc

    identity = resolve_identity(analysis)
    seed_query = build_search_query(identity.name, identity.brand, identity.model)
    logger.info("Seed query: '%s'", seed_query)

    shopping, combined = await _gather_market_hits(analysis, identity, seed_query)
    summary = synthesize_prices(shopping, combined)
    if not summary.sample_size:
        logger.info("No price signal found for '%s'", identity.name)

    return RecognitionResult(
        recognized_item=identity.name,
        confidence=identity.confidence,
        brand=identity.brand,
        model=identity.model,
        market_price=summary.average,
        suggested_price=summary.suggested_price,
        description=generate_description(analysis, identity.name, identity.brand),
        category=infer_category(analysis.labels, analysis.web_entities),
        condition=infer_condition(analysis.labels, analysis.ocr_text),
        specifications=extract_specifications(analysis.ocr_text),
        similar_items=_similar_items(combined),
        price_summary=summary,
    )


async def search_similar(
    query: str,
    max_results: Optional[int] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    condition: Optional[str] = None,
) -> list[SearchHit]:
    """Direct shopping search. Raises ConfigurationError when search keys are missing."""
    return await market_search.search_products(
        query,
        max_results=max_results,
        min_price=min_price,
        max_price=max_price,
        condition=condition,
    )


async def get_price_comparison(product_name: str, brand: Optional[str] = None) -> PriceComparison:
    query = f"{brand} {product_name}" if brand else product_name
    hits = await market_search.search_products(query, max_results=20)
    return price_comparison(hits)


async def get_market_analysis(item_name: str, brand: Optional[str] = None) -> MarketAnalysis:
    query = f"{brand} {item_name}" if brand else item_name
    hits = await market_search.search_products(query, max_results=20)
    return market_analysis(hits)
