"""
Central configuration — reads from .env file.

Every setting is a module attribute so that code reading config.X always sees
the current value (tests monkeypatch these directly).

Keys:
  GOOGLE_API_KEY                  — shared key for Vision + Custom Search
  GOOGLE_VISION_API_KEY           — optional override for the Vision API
  GOOGLE_SEARCH_API_KEY           — optional override for Custom Search
  GOOGLE_CUSTOM_SEARCH_ENGINE_ID  — the "cx" engine id (required for search)
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ── Google Cloud Vision (image annotation) ────────────────────────────────────
GOOGLE_API_KEY: str | None = os.getenv("GOOGLE_API_KEY") or None

GOOGLE_VISION_API_KEY: str | None = os.getenv("GOOGLE_VISION_API_KEY") or GOOGLE_API_KEY

# ── Google Custom Search (web / shopping search) ──────────────────────────────
# GOOGLE_SHOPPING_API_KEY is accepted as an older alias.
GOOGLE_SEARCH_API_KEY: str | None = (
    os.getenv("GOOGLE_SEARCH_API_KEY")
    or os.getenv("GOOGLE_SHOPPING_API_KEY")
    or GOOGLE_API_KEY
)
GOOGLE_CUSTOM_SEARCH_ENGINE_ID: str | None = os.getenv("GOOGLE_CUSTOM_SEARCH_ENGINE_ID") or None

# ── Search behaviour ──────────────────────────────────────────────────────────
MAX_SEARCH_RESULTS: int  = int(os.getenv("MAX_SEARCH_RESULTS", "10"))
# Queries are issued one after another; Custom Search rate-limits bursts.
MAX_SEARCH_QUERIES: int  = int(os.getenv("MAX_SEARCH_QUERIES", "3"))
SEARCH_QUERY_DELAY: float = float(os.getenv("SEARCH_QUERY_DELAY", "0.2"))
SIMILAR_ITEMS_LIMIT: int = int(os.getenv("SIMILAR_ITEMS_LIMIT", "8"))

# ── HTTP timeouts (seconds) ───────────────────────────────────────────────────
VISION_TIMEOUT: float = float(os.getenv("VISION_TIMEOUT", "30"))
SEARCH_TIMEOUT: float = float(os.getenv("SEARCH_TIMEOUT", "15"))

# ── API server ────────────────────────────────────────────────────────────────
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8080"))

# Log file directory
DATA_DIR: str = os.getenv("DATA_DIR", "data")


def is_vision_configured() -> bool:
    return bool(GOOGLE_VISION_API_KEY)


def is_search_configured() -> bool:
    return bool(GOOGLE_SEARCH_API_KEY and GOOGLE_CUSTOM_SEARCH_ENGINE_ID)
