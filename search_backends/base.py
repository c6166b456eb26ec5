"""
Abstract base for web search backends.

A backend returns raw SearchResult records; market_search.py turns them into
SearchHit objects by running the text-signal extractors over each snippet.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from text_signals import extract_platform


@dataclass(frozen=True)
class SearchResult:
    """One organic result exactly as the search service returned it."""
    title: str
    link: str
    snippet: str
    display_link: str = ""
    thumbnail_url: Optional[str] = None


@dataclass(frozen=True)
class SearchHit:
    title: str
    link: str                       # dedup key
    snippet: str
    price: Optional[float]          # always 0.01 <= price < 1,000,000 when set
    currency: str
    merchant: str
    condition: Optional[str] = None
    rating: Optional[float] = None  # 0–5
    review_count: Optional[int] = None
    image_url: Optional[str] = None

    @property
    def has_price(self) -> bool:
        return self.price is not None

    @property
    def platform(self) -> str:
        return extract_platform(self.link)

    def to_dict(self) -> dict:
        return {
            "title":     self.title,
            "price":     self.price or 0,
            "currency":  self.currency,
            "link":      self.link,
            "image":     self.image_url,
            "merchant":  self.merchant,
            "condition": self.condition,
            "rating":    self.rating,
            "reviews":   self.review_count,
        }


class SearchBackend(ABC):
    """All backends must implement this interface."""

    @abstractmethod
    async def search(self, query: str, max_results: int) -> list[SearchResult]:
        """
        Run one query. Returns up to max_results results in service order.
        Must raise SearchQueryError when the call fails.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name for logs/display."""
        ...
