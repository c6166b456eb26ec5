"""
Google Custom Search JSON API backend.

API docs: https://developers.google.com/custom-search/v1/reference/rest/v1/cse/list

Needs two settings:
  GOOGLE_SEARCH_API_KEY (or GOOGLE_API_KEY) → "key"
  GOOGLE_CUSTOM_SEARCH_ENGINE_ID            → "cx", the Programmable Search engine id

The API returns at most 10 items per call ("num" must be 1–10).
Snippets carry the only price signal we get, so no item fields are dropped here.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

import config
from errors import SearchQueryError
from search_backends.base import SearchBackend, SearchResult

logger = logging.getLogger(__name__)

CUSTOM_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
MAX_NUM = 10


class GoogleCustomSearchBackend(SearchBackend):

    def __init__(self, api_key: str, engine_id: str) -> None:
        self._key = api_key
        self._cx  = engine_id

    @property
    def name(self) -> str:
        return "Google Custom Search"

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        params = {
            "key":  self._key,
            "cx":   self._cx,
            "q":    query,
            "num":  str(max(1, min(max_results, MAX_NUM))),
            "safe": "active",
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    CUSTOM_SEARCH_URL,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=config.SEARCH_TIMEOUT),
                ) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        raise SearchQueryError(query, f"Custom Search error {resp.status}: {text[:200]}")
                    data = await resp.json()
        except aiohttp.ClientError as exc:
            raise SearchQueryError(query, str(exc)) from exc
        except asyncio.TimeoutError as exc:
            raise SearchQueryError(query, "timed out") from exc
        except ValueError as exc:
            raise SearchQueryError(query, f"invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise SearchQueryError(query, "malformed response body")
        items = data.get("items") or []
        if not isinstance(items, list):
            raise SearchQueryError(query, "malformed items list")

        results = [r for r in (_parse_item(item) for item in items) if r]
        logger.info("Custom Search returned %d results for '%s'", len(results), query)
        return results[:max_results]


# ── Helpers ────────────────────────────────────────────────────────────────────

def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _parse_item(raw: dict) -> Optional[SearchResult]:
    if not raw or not isinstance(raw, dict):
        return None
    link = raw.get("link")
    if not link or not isinstance(link, str):
        return None

    title = _text(raw.get("title"))
    pagemap = raw.get("pagemap")
    return SearchResult(
        title=title,
        link=link,
        # Some results come back without a snippet; the title is the next best text
        snippet=_text(raw.get("snippet")) or title,
        display_link=_text(raw.get("displayLink")),
        thumbnail_url=_thumbnail(pagemap if isinstance(pagemap, dict) else {}),
    )


def _thumbnail(pagemap: dict) -> Optional[str]:
    for image in _dicts(pagemap.get("cse_image")):
        if image.get("src"):
            return image["src"]
    for tags in _dicts(pagemap.get("metatags")):
        if tags.get("og:image"):
            return tags["og:image"]
    return None


def _dicts(value) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]
