"""
pricing.py — turns noisy search hits into a price recommendation.

  summarize_prices()  average / min / max / suggested price / bucket histogram
  market_analysis()   suggested + market price, histogram, top merchants
  price_comparison()  average / min / max alongside the hits themselves

Hits without a price are ignored for every number here. No priced hits at all
is a normal outcome: everything comes back as zero / empty.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Iterable

from search_backends.base import SearchHit
from text_signals import is_valid_price

# List 10% under the market average to sell faster
COMPETITIVE_DISCOUNT = 0.9

# (lower bound inclusive, upper bound exclusive)
PRICE_BUCKETS: list[tuple[float, float]] = [
    (0, 50),
    (50, 100),
    (100, 200),
    (200, 500),
    (500, 1000),
    (1000, math.inf),
]
OPEN_BUCKET_LABEL = 1000


@dataclass(frozen=True)
class PriceSummary:
    average: float = 0.0
    min: float = 0.0
    max: float = 0.0
    suggested_price: float = 0.0
    distribution: list[tuple[int, int]] = field(default_factory=list)   # (bucket upper bound, count)
    sample_size: int = 0

    def with_average(self, average: float) -> "PriceSummary":
        """Same summary with a different average (suggested price follows)."""
        return replace(self, average=average, suggested_price=suggested_price(average))

    def to_dict(self) -> dict:
        return {
            "averagePrice":      self.average,
            "minPrice":          self.min,
            "maxPrice":          self.max,
            "suggestedPrice":    self.suggested_price,
            "priceDistribution": [{"price": p, "count": c} for p, c in self.distribution],
            "sampleSize":        self.sample_size,
        }


@dataclass(frozen=True)
class MarketAnalysis:
    suggested_price: float
    market_price: float
    distribution: list[tuple[int, int]]
    top_merchants: list[tuple[str, float]]

    def to_dict(self) -> dict:
        return {
            "suggestedPrice":    self.suggested_price,
            "marketPrice":       self.market_price,
            "priceDistribution": [{"price": p, "count": c} for p, c in self.distribution],
            "topMerchants":      [{"merchant": m, "averagePrice": a} for m, a in self.top_merchants],
        }


@dataclass(frozen=True)
class PriceComparison:
    average_price: float
    min_price: float
    max_price: float
    results: list[SearchHit]

    def to_dict(self) -> dict:
        return {
            "averagePrice": self.average_price,
            "minPrice":     self.min_price,
            "maxPrice":     self.max_price,
            "priceRange":   {"min": self.min_price, "max": self.max_price},
            "results":      [hit.to_dict() for hit in self.results],
        }


# ── Core maths ────────────────────────────────────────────────────────────────

def suggested_price(average: float) -> float:
    return round(average * COMPETITIVE_DISCOUNT, 2)


def _prices(hits: Iterable[SearchHit]) -> list[float]:
    return sorted(hit.price for hit in hits if is_valid_price(hit.price))


def price_distribution(prices: list[float]) -> list[tuple[int, int]]:
    distribution = []
    for low, high in PRICE_BUCKETS:
        label = OPEN_BUCKET_LABEL if math.isinf(high) else int(high)
        distribution.append((label, sum(1 for p in prices if low <= p < high)))
    return distribution


def average_price(hits: Iterable[SearchHit]) -> float:
    prices = _prices(hits)
    return sum(prices) / len(prices) if prices else 0.0


def summarize_prices(hits: Iterable[SearchHit]) -> PriceSummary:
    prices = _prices(hits)
    if not prices:
        return PriceSummary()

    average = sum(prices) / len(prices)
    return PriceSummary(
        average=average,
        min=prices[0],
        max=prices[-1],
        suggested_price=suggested_price(average),
        distribution=price_distribution(prices),
        sample_size=len(prices),
    )


def top_merchants(hits: Iterable[SearchHit], limit: int = 5) -> list[tuple[str, float]]:
    """Average price per merchant, most expensive first."""
    by_merchant: dict[str, list[float]] = {}
    for hit in hits:
        if is_valid_price(hit.price):
            by_merchant.setdefault(hit.merchant, []).append(hit.price)

    averages = [(merchant, sum(p) / len(p)) for merchant, p in by_merchant.items()]
    averages.sort(key=lambda pair: pair[1], reverse=True)
    return averages[:limit]


def market_analysis(hits: list[SearchHit]) -> MarketAnalysis:
    summary = summarize_prices(hits)
    if not summary.sample_size:
        return MarketAnalysis(suggested_price=0.0, market_price=0.0, distribution=[], top_merchants=[])
    return MarketAnalysis(
        suggested_price=summary.suggested_price,
        market_price=round(summary.average, 2),
        distribution=summary.distribution,
        top_merchants=top_merchants(hits),
    )


def price_comparison(hits: list[SearchHit]) -> PriceComparison:
    summary = summarize_prices(hits)
    return PriceComparison(
        average_price=summary.average,
        min_price=summary.min,
        max_price=summary.max,
        results=list(hits),
    )
