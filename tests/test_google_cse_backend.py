"""
Tests for search_backends/google_cse_backend.py.

Covers:
  - _parse_item: happy path, missing snippet, missing link, thumbnails, malformed fields
  - search(): request parameters, HTTP success, HTTP error, network error
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from errors import SearchQueryError
from search_backends.google_cse_backend import GoogleCustomSearchBackend, _parse_item


@pytest.fixture
def backend():
    return GoogleCustomSearchBackend(api_key="test-search-key", engine_id="test-cx")


def raw_item(**overrides) -> dict:
    base = {
        "title": "MacBook Pro M1 - $899",
        "link": "https://www.ebay.com/itm/111",
        "displayLink": "www.ebay.com",
        "snippet": "Used MacBook Pro M1, $899 obo. Great shape.",
        "pagemap": {"cse_image": [{"src": "https://i.ebayimg.com/111.jpg"}]},
    }
    base.update(overrides)
    return base


# ── _parse_item ────────────────────────────────────────────────────────────────

class TestParseItem:
    def test_happy_path(self):
        result = _parse_item(raw_item())
        assert result.title == "MacBook Pro M1 - $899"
        assert result.link == "https://www.ebay.com/itm/111"
        assert result.display_link == "www.ebay.com"
        assert result.snippet.startswith("Used MacBook Pro M1")
        assert result.thumbnail_url == "https://i.ebayimg.com/111.jpg"

    def test_missing_snippet_uses_title(self):
        raw = raw_item()
        del raw["snippet"]
        assert _parse_item(raw).snippet == "MacBook Pro M1 - $899"

    def test_og_image_fallback(self):
        raw = raw_item(pagemap={"metatags": [{"og:image": "https://cdn.example/og.jpg"}]})
        assert _parse_item(raw).thumbnail_url == "https://cdn.example/og.jpg"

    def test_no_pagemap(self):
        raw = raw_item()
        del raw["pagemap"]
        assert _parse_item(raw).thumbnail_url is None

    def test_missing_link_returns_none(self):
        assert _parse_item(raw_item(link="")) is None

    def test_bad_data_returns_none(self):
        assert _parse_item(None) is None  # type: ignore

    def test_non_string_fields_ignored(self):
        result = _parse_item(raw_item(title=5, snippet=None, displayLink=["www.ebay.com"]))
        assert result.title == ""
        assert result.snippet == ""
        assert result.display_link == ""

    @pytest.mark.parametrize("pagemap", [
        {"cse_image": ["oops"]},
        {"cse_image": "oops", "metatags": [None]},
        ["not", "a", "dict"],
    ])
    def test_malformed_pagemap_has_no_thumbnail(self, pagemap):
        assert _parse_item(raw_item(pagemap=pagemap)).thumbnail_url is None

    def test_non_string_link_returns_none(self):
        assert _parse_item(raw_item(link={"href": "https://ebay.com"})) is None


# ── search() HTTP call ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSearch:
    def _fake_session(self, items: list[dict], status: int = 200):
        mock_resp = MagicMock()
        mock_resp.status = status
        mock_resp.json = AsyncMock(return_value={"items": items})
        mock_resp.text = AsyncMock(return_value="quota exceeded")
        mock_resp.__aenter__ = AsyncMock(return_value=mock_resp)
        mock_resp.__aexit__ = AsyncMock(return_value=False)

        mock_session = MagicMock()
        mock_session.get = MagicMock(return_value=mock_resp)
        mock_session.__aenter__ = AsyncMock(return_value=mock_session)
        mock_session.__aexit__ = AsyncMock(return_value=False)
        return mock_session

    async def test_successful_search_returns_results(self, backend):
        items = [raw_item(link=f"https://www.ebay.com/itm/{i}") for i in range(4)]
        session = self._fake_session(items)

        with patch("search_backends.google_cse_backend.aiohttp.ClientSession", return_value=session):
            results = await backend.search("MacBook Pro M1 for sale", max_results=5)

        assert [r.link for r in results] == [f"https://www.ebay.com/itm/{i}" for i in range(4)]

    async def test_request_parameters(self, backend):
        session = self._fake_session([])

        with patch("search_backends.google_cse_backend.aiohttp.ClientSession", return_value=session):
            await backend.search("iPhone 12 price", max_results=25)

        params = session.get.call_args.kwargs["params"]
        assert params["key"] == "test-search-key"
        assert params["cx"] == "test-cx"
        assert params["q"] == "iPhone 12 price"
        assert params["num"] == "10"   # API maximum
        assert params["safe"] == "active"

    async def test_no_items_key(self, backend):
        session = self._fake_session([])
        session.get.return_value.json = AsyncMock(return_value={"searchInformation": {}})

        with patch("search_backends.google_cse_backend.aiohttp.ClientSession", return_value=session):
            assert await backend.search("nothing", max_results=5) == []

    async def test_http_error_raises_search_query_error(self, backend):
        session = self._fake_session([], status=429)

        with patch("search_backends.google_cse_backend.aiohttp.ClientSession", return_value=session):
            with pytest.raises(SearchQueryError, match="429") as exc_info:
                await backend.search("keyboard", max_results=5)

        assert exc_info.value.query == "keyboard"

    async def test_network_error_raises_search_query_error(self, backend):
        session = self._fake_session([])
        session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("connection reset"))

        with patch("search_backends.google_cse_backend.aiohttp.ClientSession", return_value=session):
            with pytest.raises(SearchQueryError, match="connection reset"):
                await backend.search("keyboard", max_results=5)

    async def test_max_results_limit(self, backend):
        items = [raw_item(link=f"https://www.ebay.com/itm/{i}") for i in range(10)]
        session = self._fake_session(items)

        with patch("search_backends.google_cse_backend.aiohttp.ClientSession", return_value=session):
            results = await backend.search("keyboard", max_results=3)

        assert len(results) == 3

    async def test_malformed_items_are_skipped(self, backend):
        items = ["oops", {"link": "https://www.ebay.com/itm/1", "title": 5, "pagemap": {"cse_image": ["oops"]}}]
        session = self._fake_session(items)

        with patch("search_backends.google_cse_backend.aiohttp.ClientSession", return_value=session):
            results = await backend.search("keyboard", max_results=5)

        assert [r.link for r in results] == ["https://www.ebay.com/itm/1"]
        assert results[0].thumbnail_url is None

    async def test_items_not_a_list_raises_search_query_error(self, backend):
        session = self._fake_session([])
        session.get.return_value.json = AsyncMock(return_value={"items": {"link": "x"}})

        with patch("search_backends.google_cse_backend.aiohttp.ClientSession", return_value=session):
            with pytest.raises(SearchQueryError, match="malformed items"):
                await backend.search("keyboard", max_results=5)
