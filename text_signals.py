"""
text_signals.py — pulls structured signals out of free text.

Used on search-result snippets (price, currency, condition, rating, reviews)
and on OCR text (model numbers, specifications).

Every extractor is best-effort: no match → None, never an exception.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

# Any price outside [MIN_PRICE, MAX_PRICE) is treated as "no price".
# One cent is the smallest amount a listing can carry.
MIN_PRICE = 0.01
MAX_PRICE = 1_000_000

# ── Price patterns ────────────────────────────────────────────────────────────
# "1,299.00" | "1299.00" | "450"
_AMOUNT = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
_SYMBOL = r"[$€£]"

# Tried in this order; the first pattern whose value is in range wins.
PRICE_PATTERNS: list[re.Pattern] = [
    re.compile(_SYMBOL + r"\s?" + _AMOUNT),                                    # $99.99
    re.compile(_AMOUNT + r"\s*(?:USD|dollars?)\b", re.I),                      # 99.99 USD
    re.compile(r"price[:\s]*" + _SYMBOL + "?" + _AMOUNT, re.I),                # price: 99.99
    re.compile(_AMOUNT + r"\s*(?:USD|EUR|GBP|dollars?|euros?|pounds?)\b", re.I),
    re.compile(r"\blisted\b.*?" + _SYMBOL + _AMOUNT, re.I),                    # listed for $99
    re.compile(r"\bselling\b.*?" + _SYMBOL + _AMOUNT, re.I),                   # selling for $99
    re.compile(_AMOUNT + r"\s*(?:for sale|on sale)", re.I),                    # 99 for sale
    re.compile(r"\bonly\s*" + _SYMBOL + "?" + _AMOUNT, re.I),                  # only $99
    re.compile(_SYMBOL + _AMOUNT + r"\s*(?:obo|or best offer)", re.I),         # $99 obo
]

CONDITION_VOCABULARY = ["new", "used", "refurbished", "like new", "excellent", "good", "fair"]

_RATING_RE  = re.compile(r"(\d(?:\.\d+)?)\s*(?:out of|/)\s*5\b|rating[:\s]+(\d(?:\.\d+)?)", re.I)
_REVIEWS_RE = re.compile(r"(\d[\d,]*)\s*(?:reviews?|ratings?)\b", re.I)

# Declared order matters: first match wins.
MODEL_PATTERNS: list[re.Pattern] = [
    re.compile(r"\b(iPhone\s+\d+[A-Z]?(?:\s+Pro(?:\s+Max)?)?)", re.I),
    re.compile(r"\b(MacBook\s+(?:Pro|Air)(?:\s+\d+)?)", re.I),
    re.compile(r"\b(M\d+(?:\s+Pro|\s+Max)?)\b", re.I),          # Apple Silicon chips
    re.compile(r"\b(Galaxy\s+S\d+)", re.I),
    re.compile(r"\b(Galaxy\s+Note\s+\d+)", re.I),
    re.compile(r"\b(Pixel\s+\d+)", re.I),
    re.compile(r"\b(iPad(?:\s+(?:Pro|Air|Mini))?(?:\s+\d+)?)", re.I),
]

SPEC_PATTERNS: dict[str, re.Pattern] = {
    "storage": re.compile(r"(\d+)\s*(GB|TB|MB)", re.I),
    "ram":     re.compile(r"(\d+)\s*GB\s*(RAM|memory)", re.I),
    "screen":  re.compile(r"(\d+\.?\d*)\s*(inch|\")", re.I),
    "color":   re.compile(r"\b(black|white|silver|gold|blue|red|green|yellow|pink)\b", re.I),
}

PLATFORM_HOSTS: list[tuple[str, str]] = [
    ("ebay",       "eBay"),
    ("facebook",   "Facebook"),
    ("marketplace", "Facebook"),
    ("amazon",     "Amazon"),
    ("mercari",    "Mercari"),
    ("offerup",    "OfferUp"),
    ("craigslist", "Craigslist"),
    ("etsy",       "Etsy"),
]


@dataclass(frozen=True)
class TextSignals:
    price: Optional[float]
    currency: str
    condition: Optional[str]
    rating: Optional[float]
    review_count: Optional[int]


def is_valid_price(value: Optional[float]) -> bool:
    return value is not None and MIN_PRICE <= value < MAX_PRICE


def _to_number(raw: str) -> Optional[float]:
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


# ── Extractors ────────────────────────────────────────────────────────────────

def extract_price(text: Optional[str]) -> Optional[float]:
    """Return the first in-range price found by PRICE_PATTERNS, or None."""
    if not text:
        return None
    for pattern in PRICE_PATTERNS:
        m = pattern.search(text)
        if not m:
            continue
        value = _to_number(m.group(1))
        if is_valid_price(value):
            return value
    return None


def extract_currency(text: Optional[str]) -> str:
    if not text:
        return "USD"
    lower = text.lower()
    if "$" in text or "usd" in lower or "dollar" in lower:
        return "USD"
    if "€" in text or "eur" in lower or "euro" in lower:
        return "EUR"
    if "£" in text or "gbp" in lower or "pound" in lower:
        return "GBP"
    return "USD"


def extract_condition(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    lower = text.lower()
    for condition in CONDITION_VOCABULARY:
        if condition in lower:
            return condition
    return None


def extract_rating(text: Optional[str]) -> Optional[float]:
    if not text:
        return None
    m = _RATING_RE.search(text)
    if not m:
        return None
    rating = _to_number(m.group(1) or m.group(2))
    if rating is not None and 0 <= rating <= 5:
        return rating
    return None


def extract_review_count(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    m = _REVIEWS_RE.search(text)
    if not m:
        return None
    return int(m.group(1).replace(",", ""))


def extract_signals(text: Optional[str]) -> TextSignals:
    """Run every snippet extractor over text."""
    return TextSignals(
        price=extract_price(text),
        currency=extract_currency(text),
        condition=extract_condition(text),
        rating=extract_rating(text),
        review_count=extract_review_count(text),
    )


def extract_model(text: Optional[str]) -> Optional[str]:
    """Model string like 'iPhone 13 Pro', 'MacBook Air', 'M2 Max', 'Pixel 7'."""
    if not text:
        return None
    for pattern in MODEL_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1).strip()
    return None


def extract_specifications(text: Optional[str]) -> dict[str, str]:
    specs: dict[str, str] = {}
    if not text:
        return specs
    for key, pattern in SPEC_PATTERNS.items():
        m = pattern.search(text)
        if m:
            specs[key] = m.group(0)
    return specs


# ── URL helpers ───────────────────────────────────────────────────────────────

def extract_merchant(url: Optional[str]) -> str:
    """'https://www.ebay.com/itm/1' → 'ebay'."""
    if not url:
        return "Unknown"
    try:
        hostname = urlparse(url if "//" in url else f"//{url}").hostname or ""
    except ValueError:
        return "Unknown"
    hostname = re.sub(r"^www\.", "", hostname)
    return hostname.split(".")[0] or "Unknown"


def extract_platform(url: Optional[str]) -> str:
    """Marketplace display name for a result URL; 'Google' when unknown."""
    if not url:
        return "Google"
    try:
        hostname = (urlparse(url).hostname or "").lower()
    except ValueError:
        return "Google"
    for needle, platform in PLATFORM_HOSTS:
        if needle in hostname:
            return platform
    return "Google"
