"""
Tests for recognizer.py.

Covers:
  - recognize(): end-to-end with the Vision call and searches mocked
  - shopping pass only for specific identities, visual pass below 3 hits
  - matching pages as priceless candidates, dedup by link
  - search failures never escape, including malformed service payloads;
    fatal errors become RecognitionError
  - synthesize_prices(): shopping average vs. combined fallback
  - price-research helpers
"""
from __future__ import annotations

from typing import Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import config
import market_search
import providers.manager as manager_mod
import recognizer
from errors import AnnotationServiceError, ConfigurationError, RecognitionError, SearchQueryError
from image_analyzer import Annotation, ImageAnalysis, MatchingPage
from search_backends.base import SearchBackend, SearchHit, SearchResult

MACBOOK_ANALYSIS = ImageAnalysis(
    labels=[Annotation("Laptop", 0.97), Annotation("Computer", 0.93)],
    ocr_text="MacBook Pro M1 Pro 16GB",
    web_entities=[Annotation("MacBook Pro", 1.1)],
    logos=[Annotation("Apple", 0.9)],
)


def make_hit(link: str, price: Optional[float] = None, title: str = "MacBook Pro") -> SearchHit:
    return SearchHit(
        title=title,
        link=link,
        snippet="",
        price=price,
        currency="USD",
        merchant="ebay",
    )


@pytest.fixture
def pipeline(monkeypatch):
    """Mock the Vision call and both search passes; tests adjust return values."""
    analyse = AsyncMock(return_value=MACBOOK_ANALYSIS)
    shopping = AsyncMock(return_value=[])
    visual = AsyncMock(return_value=[])
    monkeypatch.setattr(manager_mod, "analyse_image", analyse)
    monkeypatch.setattr(market_search, "search_products", shopping)
    monkeypatch.setattr(market_search, "visual_search", visual)
    return analyse, shopping, visual


# ── recognize() ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestRecognize:
    async def test_macbook_end_to_end(self, pipeline):
        analyse, shopping, visual = pipeline
        shopping.return_value = [
            make_hit("https://ebay.com/1", 900),
            make_hit("https://ebay.com/2", 1000),
            make_hit("https://swappa.com/3", 1100),
        ]

        result = await recognizer.recognize("data:image/jpeg;base64,YWJj")

        analyse.assert_awaited_once_with("data:image/jpeg;base64,YWJj")
        shopping.assert_awaited_once_with("Apple M1 Pro", max_results=10, condition="used")
        visual.assert_not_awaited()

        assert "MacBook Pro" in result.recognized_item
        assert result.brand == "Apple"
        assert result.model == "M1 Pro"
        assert result.confidence == 0.95
        assert result.market_price == 1000
        assert result.suggested_price == 900.0
        assert result.category == "Electronics"
        assert result.condition == "used"
        assert result.specifications["storage"] == "16GB"
        assert [item.platform for item in result.similar_items] == ["eBay", "eBay", "Google"]

    async def test_all_searches_empty_still_returns_result(self, pipeline):
        result = await recognizer.recognize(b"jpeg")

        assert result.market_price == 0
        assert result.suggested_price == 0
        assert result.similar_items == []
        assert result.description.startswith("Apple MacBook Pro")
        assert result.price_summary.distribution == []

    async def test_visual_pass_when_shopping_finds_few(self, pipeline):
        _, shopping, visual = pipeline
        shopping.return_value = [make_hit("https://ebay.com/1", 900)]
        visual.return_value = [make_hit("https://ebay.com/1", 900), make_hit("https://ebay.com/2", 1100)]

        result = await recognizer.recognize(b"jpeg")

        visual.assert_awaited_once_with("Apple M1 Pro", "Apple")
        assert [item.url for item in result.similar_items] == ["https://ebay.com/1", "https://ebay.com/2"]
        # shopping average (900) is plausible, so it wins over the combined one
        assert result.market_price == 900
        assert result.price_summary.max == 1100

    async def test_vague_identity_skips_shopping_pass(self, pipeline):
        analyse, shopping, visual = pipeline
        analyse.return_value = ImageAnalysis(labels=[Annotation("Chair", 0.6)])

        result = await recognizer.recognize(b"jpeg")

        shopping.assert_not_awaited()
        visual.assert_awaited_once_with("Chair", None)
        assert result.recognized_item == "Chair"
        assert result.category == "Furniture"

    async def test_matching_pages_added_without_price(self, pipeline):
        analyse, _, visual = pipeline
        analyse.return_value = ImageAnalysis(
            best_guess_labels=["Vintage Rolex"],
            matching_pages=[
                MatchingPage(url="https://a.com/1", title="Rolex 1680"),
                MatchingPage(url="https://b.com/2", title="Rolex Submariner"),
                MatchingPage(url="https://c.com/3", title="Rolex Date"),
                MatchingPage(url="https://d.com/4", title="Rolex Datejust"),
            ],
        )
        visual.return_value = [make_hit("https://a.com/1", 6500, title="Rolex 1680 $6,500")]

        result = await recognizer.recognize(b"jpeg")

        assert [(i.url, i.price) for i in result.similar_items] == [
            ("https://a.com/1", 6500),
            ("https://b.com/2", 0),
            ("https://c.com/3", 0),
        ]

    async def test_similar_items_capped(self, pipeline):
        _, shopping, _ = pipeline
        shopping.return_value = [make_hit(f"https://ebay.com/{i}", 100 + i) for i in range(12)]

        result = await recognizer.recognize(b"jpeg")
        assert len(result.similar_items) == config.SIMILAR_ITEMS_LIMIT

    async def test_annotation_failure_is_wrapped(self, pipeline):
        analyse, shopping, _ = pipeline
        analyse.side_effect = AnnotationServiceError("Google Vision API error 500: boom")

        with pytest.raises(RecognitionError, match="Failed to recognize item") as exc_info:
            await recognizer.recognize(b"jpeg")

        assert isinstance(exc_info.value.__cause__, AnnotationServiceError)
        shopping.assert_not_awaited()

    async def test_missing_search_config_fails_before_vision_call(self, pipeline, monkeypatch):
        analyse, _, _ = pipeline
        monkeypatch.setattr(config, "GOOGLE_CUSTOM_SEARCH_ENGINE_ID", "")

        with pytest.raises(RecognitionError) as exc_info:
            await recognizer.recognize(b"jpeg")

        assert isinstance(exc_info.value.__cause__, ConfigurationError)
        analyse.assert_not_awaited()

    async def test_missing_vision_key(self, pipeline, monkeypatch):
        monkeypatch.setattr(config, "GOOGLE_VISION_API_KEY", "")
        with pytest.raises(RecognitionError):
            await recognizer.recognize(b"jpeg")

    async def test_to_dict(self, pipeline):
        _, shopping, _ = pipeline
        shopping.return_value = [make_hit(f"https://ebay.com/{i}", 1000) for i in range(3)]

        data = (await recognizer.recognize(b"jpeg")).to_dict()

        assert set(data) == {
            "recognizedItem", "confidence", "brand", "model", "marketPrice", "suggestedPrice",
            "description", "category", "condition", "specifications", "similarItems", "priceSummary",
        }
        assert data["similarItems"][0] == {
            "title": "MacBook Pro", "price": 1000, "platform": "eBay", "url": "https://ebay.com/0",
        }


# ── synthesize_prices() ───────────────────────────────────────────────────────

class TestSynthesizePrices:
    def test_shopping_average_preferred(self):
        shopping = [make_hit("a", 100), make_hit("b", 200)]
        combined = shopping + [make_hit("c", 1000)]
        summary = recognizer.synthesize_prices(shopping, combined)
        assert summary.average == 150
        assert summary.suggested_price == 135.0
        assert (summary.min, summary.max) == (100, 1000)

    def test_implausible_shopping_average_falls_back(self):
        shopping = [make_hit("a", 5)]
        combined = shopping + [make_hit("b", 200), make_hit("c", 400)]
        summary = recognizer.synthesize_prices(shopping, combined)
        assert summary.average == pytest.approx(605 / 3)
        assert summary.min == 5

    def test_no_shopping_prices_uses_combined(self):
        combined = [make_hit("a", 300), make_hit("b")]
        assert recognizer.synthesize_prices([], combined).average == 300

    def test_nothing_priced(self):
        summary = recognizer.synthesize_prices([], [make_hit("a")])
        assert summary.average == summary.suggested_price == 0


# ── Price-research helpers ────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestPriceResearch:
    async def test_price_comparison_query(self, pipeline):
        _, shopping, _ = pipeline
        shopping.return_value = [make_hit("a", 200), make_hit("b", 400)]

        comparison = await recognizer.get_price_comparison("MacBook Pro", "Apple")

        shopping.assert_awaited_once_with("Apple MacBook Pro", max_results=20)
        assert comparison.average_price == 300

    async def test_market_analysis_without_brand(self, pipeline):
        _, shopping, _ = pipeline
        shopping.return_value = [make_hit("a", 50, title="Bike"), make_hit("b", 150, title="Bike")]

        analysis = await recognizer.get_market_analysis("Road bike")

        shopping.assert_awaited_once_with("Road bike", max_results=20)
        assert analysis.market_price == 100
        assert analysis.suggested_price == 90.0

    async def test_search_similar_passes_filters(self, pipeline):
        _, shopping, _ = pipeline
        await recognizer.search_similar("iPhone 12", max_results=5, min_price=100, condition="used")
        shopping.assert_awaited_once_with(
            "iPhone 12", max_results=5, min_price=100, max_price=None, condition="used",
        )


# ── Failing search service ────────────────────────────────────────────────────

class FailingBackend(SearchBackend):
    def __init__(self, error: Exception) -> None:
        self.error = error
        self.queries: list[str] = []

    @property
    def name(self) -> str:
        return "Failing"

    async def search(self, query: str, max_results: int) -> list[SearchResult]:
        self.queries.append(query)
        raise self.error


@pytest.mark.asyncio
class TestSearchFailuresNeverEscape:
    @pytest.fixture
    def vision(self, monkeypatch):
        monkeypatch.setattr(manager_mod, "analyse_image", AsyncMock(return_value=MACBOOK_ANALYSIS))

    async def test_every_query_failing(self, vision, monkeypatch):
        backend = FailingBackend(SearchQueryError("Apple M1 Pro for sale", "Custom Search error 500"))
        monkeypatch.setattr(market_search, "_backend", backend)

        result = await recognizer.recognize(b"jpeg")

        # three shopping queries, then two visual ones
        assert len(backend.queries) == 5
        assert result.market_price == 0
        assert result.suggested_price == 0
        assert result.similar_items == []
        assert result.brand == "Apple"

    async def test_malformed_custom_search_payload(self, vision):
        mock_resp = MagicMock()
        mock_resp.status = 200
        mock_resp.json = AsyncMock(return_value={"items": [
            {"link": "https://www.ebay.com/itm/1", "title": 5, "snippet": "MacBook Pro $1,000"},
            {"link": "https://www.ebay.com/itm/2", "pagemap": {"cse_image": ["oops"]}},
        ]})
        mock_resp.__aenter__ = AsyncMock(return_value=mock_resp)
        mock_resp.__aexit__ = AsyncMock(return_value=False)
        session = MagicMock()
        session.get = MagicMock(return_value=mock_resp)
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=False)

        with patch("search_backends.google_cse_backend.aiohttp.ClientSession", return_value=session):
            result = await recognizer.recognize(b"jpeg")

        assert result.market_price == 1000
        assert [item.url for item in result.similar_items] == ["https://www.ebay.com/itm/1"]
