"""
Shared pytest fixtures.

Every test gets known Google settings, no inter-query delay and fresh
provider/backend caches, so tests are isolated from each other and from
whatever is in the developer's .env.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def test_config(monkeypatch):
    import config
    import market_search
    import providers.manager as manager_mod

    monkeypatch.setattr(config, "GOOGLE_API_KEY", "test-google-key")
    monkeypatch.setattr(config, "GOOGLE_VISION_API_KEY", "test-vision-key")
    monkeypatch.setattr(config, "GOOGLE_SEARCH_API_KEY", "test-search-key")
    monkeypatch.setattr(config, "GOOGLE_CUSTOM_SEARCH_ENGINE_ID", "test-cx")
    monkeypatch.setattr(config, "SEARCH_QUERY_DELAY", 0.0)
    monkeypatch.setattr(config, "MAX_SEARCH_RESULTS", 10)
    monkeypatch.setattr(config, "MAX_SEARCH_QUERIES", 3)

    # Cached clients would keep the previous test's keys
    monkeypatch.setattr(market_search, "_backend", None)
    monkeypatch.setattr(manager_mod, "_provider", None)
    yield config
