"""
identity_resolver.py — turns an ImageAnalysis into one best-guess Identity.

Resolution is an ordered list of rules (RULES). Each rule either claims the
identity — returning (name, confidence) — or returns None to pass to the next.
The first rule to claim wins, so a rule can never be overridden by one below it:

  text            OCR text names a product family        0.95
  web_entity      a top web entity names a family        0.90
  branded_context brand + laptop/computer context        0.85 / 0.80 / score / 0.70
  best_guess      non-generic web "best guess" label     0.85
  top_web_entity  first web entity                       score or 0.75
  top_object      first localized object                 score or 0.70
  top_label       first label                            score or 0.60
  unknown         "Unknown Item"                         0.50
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from image_analyzer import Annotation, Identity, ImageAnalysis
from text_signals import extract_model

logger = logging.getLogger(__name__)

GENERIC_TERMS = [
    "netbook", "laptop", "computer", "device", "electronic",
    "product", "item", "object", "thing",
]

KNOWN_BRANDS = [
    "Apple", "Samsung", "Google", "Microsoft", "Sony", "Canon", "Nikon",
    "Rolex", "Omega", "Fender", "Gibson", "Dewalt", "Makita", "Tiffany",
    "Dell", "HP", "Lenovo", "Asus", "Acer", "LG", "Panasonic", "Bose",
    "JBL", "Beats", "Nike", "Adidas", "Gucci", "Prada", "Louis Vuitton",
]

COMPUTER_CONTEXT_KEYWORDS = [
    "macbook", "laptop", "notebook", "netbook", "computer", "chromebook", "ultrabook",
]

# Laptop product lines per brand, used when no family name appears in OCR text.
BRAND_FAMILIES: dict[str, list[str]] = {
    "Dell":      ["XPS", "Inspiron", "Latitude", "Alienware", "Precision", "Vostro"],
    "HP":        ["Spectre", "Envy", "Pavilion", "EliteBook", "ProBook", "Omen"],
    "Lenovo":    ["ThinkPad", "IdeaPad", "Yoga", "Legion"],
    "Asus":      ["ZenBook", "VivoBook", "ROG"],
    "Acer":      ["Aspire", "Swift", "Predator", "Nitro"],
    "Microsoft": ["Surface Laptop", "Surface Book", "Surface Pro"],
    "Samsung":   ["Galaxy Book"],
    "Google":    ["Pixelbook"],
}

# ── Family patterns ───────────────────────────────────────────────────────────
_MACBOOK_RE = re.compile(r"(MacBook\s+(?:Pro|Air)(?:\s+\d+\b)?(?:\s+M\d+\b)?(?:\s+Pro\b)?)", re.I)
_IPHONE_RE  = re.compile(r"(iPhone\s+(?:\d+|SE|XR|XS|X)\b(?:\s+(?:Pro\s+Max|Pro|Plus|Mini)\b)?)", re.I)
_IPAD_RE    = re.compile(r"(iPad(?:\s+(?:Pro|Air|Mini))?(?:\s+\d+(?:\.\d)?\b)?)", re.I)
_GALAXY_RE  = re.compile(r"(Galaxy\s+(?:S|Note|Tab|Z|Fold)\s?\d+(?:\s+(?:Ultra|Plus|FE)\b)?)", re.I)
_PIXEL_RE   = re.compile(r"(Pixel\s+\d+a?(?:\s+(?:Pro|XL)\b)?)", re.I)

_CHIP_RE    = re.compile(r"\b(M\d+(?:\s*(?:Pro|Max))?)\b", re.I)
_CPU_RE     = re.compile(r"\b(Core\s+i[3579]|Ryzen\s+[3579])\b", re.I)
_SIZE_RE    = re.compile(r"\b(\d{2}(?:\.\d)?)\s*(?:\"|'|-?\s?inch(?:es)?\b)", re.I)
_MEMORY_RE  = re.compile(r"\b(\d+\s?GB)\b", re.I)
_RAM_RE     = re.compile(r"\b(\d+\s?GB\s*(?:RAM|memory))\b", re.I)


@dataclass(frozen=True)
class ProductMatch:
    name: str
    brand: Optional[str] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class ResolverContext:
    """Signals computed once per analysis and shared by every rule."""
    analysis: ImageAnalysis
    brand: Optional[str]
    model: Optional[str]
    text_match: Optional[ProductMatch]
    web_match: Optional[ProductMatch]


Rule = Callable[[ResolverContext], Optional[tuple[str, float]]]


# ── Helpers ────────────────────────────────────────────────────────────────────

def is_generic_term(term: Optional[str]) -> bool:
    """True for 'laptop', 'Laptop computer', 'electronic device' … (too vague to search for)."""
    if not term:
        return True
    lower = term.strip().lower()
    return any(
        lower == generic or re.search(rf"\b{generic}\s", lower)
        for generic in GENERIC_TERMS
    )


def _contains_word(text: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word.lower())}\b", text) is not None


def extract_brand(labels: list[Annotation], text: str) -> Optional[str]:
    """Brand keyword scan over labels + OCR text (logos are checked by the caller)."""
    search_text = (" ".join(label.text for label in labels) + " " + (text or "")).lower()

    # Product family names imply the brand
    if any(k in search_text for k in ("macbook", "iphone", "ipad")) or _contains_word(search_text, "apple"):
        return "Apple"
    if "galaxy" in search_text or "samsung" in search_text:
        return "Samsung"
    if "pixel" in search_text or (
        "google" in search_text and ("phone" in search_text or "tablet" in search_text)
    ):
        return "Google"

    for brand in KNOWN_BRANDS:
        if _contains_word(search_text, brand):
            return brand
    return None


def _append_tokens(name: str, tokens: list[Optional[str]]) -> str:
    for token in tokens:
        if token and token.lower() not in name.lower():
            name = f"{name} {token}"
    return name


def _size_token(text: str) -> Optional[str]:
    m = _SIZE_RE.search(text)
    return f'{m.group(1)}"' if m else None


def _group(pattern: re.Pattern, text: str) -> Optional[str]:
    m = pattern.search(text)
    return m.group(1).strip() if m else None


def extract_product_from_text(text: str, brand: Optional[str] = None) -> Optional[ProductMatch]:
    """Product family + model from OCR text (most reliable signal when present)."""
    if not text or len(text) < 5:
        return None

    lower = text.lower()
    brand_lower = (brand or "").lower()

    if "macbook" in lower or brand_lower == "apple":
        family = _group(_MACBOOK_RE, text)
        if family:
            chip = _group(_CHIP_RE, text)
            name = _append_tokens(family, [chip, _size_token(text), _group(_MEMORY_RE, text)])
            return ProductMatch(name=name, brand="Apple", model=chip)

    if "iphone" in lower or (brand_lower == "apple" and "phone" in lower):
        name = _group(_IPHONE_RE, text)
        if name:
            return ProductMatch(name=name, brand="Apple", model=name)

    if "ipad" in lower:
        name = _group(_IPAD_RE, text)
        if name:
            return ProductMatch(name=name, brand="Apple", model=name)

    if "galaxy" in lower or brand_lower == "samsung":
        name = _group(_GALAXY_RE, text)
        if name:
            return ProductMatch(name=name, brand="Samsung", model=name)

    if "pixel" in lower or brand_lower == "google":
        name = _group(_PIXEL_RE, text)
        if name:
            return ProductMatch(name=name, brand="Google", model=name)

    if brand:
        m = re.search(rf"({re.escape(brand)}[ \t]+[A-Za-z0-9 \t]+)", text, re.I)
        if m and len(m.group(1).split()) <= 5:
            return ProductMatch(name=" ".join(m.group(1).split()), brand=brand)

    return None


def extract_product_from_web_entities(
    web_entities: list[Annotation],
    brand: Optional[str] = None,
) -> Optional[ProductMatch]:
    """Same family detection as OCR text, over the top 5 web entities."""
    for entity in web_entities[:5]:
        desc = entity.text
        lower = desc.lower()

        if "macbook" in lower:
            family = _group(_MACBOOK_RE, desc)
            if family:
                return ProductMatch(name=family, brand="Apple", model=_group(_CHIP_RE, desc))
            return ProductMatch(name="MacBook", brand="Apple")

        if "iphone" in lower:
            name = _group(_IPHONE_RE, desc)
            return ProductMatch(name=name or "iPhone", brand="Apple", model=name)

        if "ipad" in lower:
            name = _group(_IPAD_RE, desc)
            return ProductMatch(name=name or "iPad", brand="Apple", model=name)

        # "Galaxy" and "Pixel" alone are too ambiguous (astronomy, pixel art)
        name = _group(_GALAXY_RE, desc)
        if name:
            return ProductMatch(name=name, brand="Samsung", model=name)
        name = _group(_PIXEL_RE, desc)
        if name:
            return ProductMatch(name=name, brand="Google", model=name)

        if brand and brand.lower() in lower:
            m = re.search(rf"({re.escape(brand)}[^,]+)", desc, re.I)
            if m and len(m.group(1).split()) <= 6:
                return ProductMatch(name=m.group(1).strip(), brand=brand)

    return None


def has_computer_context(analysis: ImageAnalysis) -> bool:
    combined = analysis.combined_text(lower=True)
    return any(keyword in combined for keyword in COMPUTER_CONTEXT_KEYWORDS)


def construct_branded_product(
    analysis: ImageAnalysis,
    brand: str,
    model: Optional[str] = None,
) -> Optional[str]:
    """
    Build a product name from tokens scattered across labels, objects, web
    entities and OCR text — e.g. "MacBook Pro M1 Pro 14\"" or "Dell XPS 15 16GB RAM".
    Returns None when no product line for the brand can be found.
    """
    combined = analysis.combined_text()
    lower = combined.lower()

    if "macbook" in lower:
        product = "MacBook"
        if _contains_word(lower, "pro"):
            product = "MacBook Pro"
        elif _contains_word(lower, "air"):
            product = "MacBook Air"
        chip = model or _group(_CHIP_RE, combined)
        return _append_tokens(product, [chip, _size_token(combined), _group(_RAM_RE, combined)])

    if "iphone" in lower:
        return _group(_IPHONE_RE, combined) or "iPhone"

    if "ipad" in lower:
        return _group(_IPAD_RE, combined) or "iPad"

    for family in BRAND_FAMILIES.get(brand, []):
        if family.lower() in lower:
            return _append_tokens(
                f"{brand} {family}",
                [_group(_CPU_RE, combined), _size_token(combined), _group(_RAM_RE, combined)],
            )

    return None


def _score_or(annotation: Annotation, default: float) -> float:
    # A zero score is as good as no score
    return min(annotation.score, 1.0) if annotation.score else default


# ── Rules (evaluated in order) ────────────────────────────────────────────────

def _from_text(ctx: ResolverContext) -> Optional[tuple[str, float]]:
    if ctx.text_match:
        return ctx.text_match.name, 0.95
    return None


def _from_web_entity(ctx: ResolverContext) -> Optional[tuple[str, float]]:
    if ctx.web_match:
        return ctx.web_match.name, 0.90
    return None


def _from_branded_context(ctx: ResolverContext) -> Optional[tuple[str, float]]:
    if not ctx.brand or not has_computer_context(ctx.analysis):
        return None

    constructed = construct_branded_product(ctx.analysis, ctx.brand, ctx.model)
    if constructed:
        return constructed, 0.85

    best_guess = ctx.analysis.best_guess_labels[0] if ctx.analysis.best_guess_labels else None
    if best_guess and "netbook" not in best_guess.lower():
        return best_guess, 0.80

    if ctx.analysis.web_entities:
        top = ctx.analysis.web_entities[0]
        return top.text, _score_or(top, 0.75)

    return f"{ctx.brand} Laptop", 0.70


def _from_best_guess(ctx: ResolverContext) -> Optional[tuple[str, float]]:
    labels = ctx.analysis.best_guess_labels
    if labels and not is_generic_term(labels[0]):
        return labels[0], 0.85
    return None


def _from_top_web_entity(ctx: ResolverContext) -> Optional[tuple[str, float]]:
    if ctx.analysis.web_entities:
        top = ctx.analysis.web_entities[0]
        return top.text, _score_or(top, 0.75)
    return None


def _from_top_object(ctx: ResolverContext) -> Optional[tuple[str, float]]:
    if ctx.analysis.objects:
        top = ctx.analysis.objects[0]
        return top.text, _score_or(top, 0.70)
    return None


def _from_top_label(ctx: ResolverContext) -> Optional[tuple[str, float]]:
    if ctx.analysis.labels:
        top = ctx.analysis.labels[0]
        return top.text, _score_or(top, 0.60)
    return None


def _unknown(ctx: ResolverContext) -> Optional[tuple[str, float]]:
    return "Unknown Item", 0.50


RULES: list[tuple[str, Rule]] = [
    ("text",            _from_text),
    ("web_entity",      _from_web_entity),
    ("branded_context", _from_branded_context),
    ("best_guess",      _from_best_guess),
    ("top_web_entity",  _from_top_web_entity),
    ("top_object",      _from_top_object),
    ("top_label",       _from_top_label),
    ("unknown",         _unknown),
]


# ── Public API ────────────────────────────────────────────────────────────────

def build_context(analysis: ImageAnalysis) -> ResolverContext:
    # Logos are the most direct brand signal; keyword scan is the fallback
    brand = analysis.logos[0].text if analysis.logos else extract_brand(analysis.labels, analysis.ocr_text)
    text_match = extract_product_from_text(analysis.ocr_text, brand)
    web_match = extract_product_from_web_entities(analysis.web_entities, brand)

    model = (
        (text_match.model if text_match else None)
        or extract_model(analysis.ocr_text)
        or (web_match.model if web_match else None)
    )
    return ResolverContext(
        analysis=analysis,
        brand=brand,
        model=model,
        text_match=text_match,
        web_match=web_match,
    )


def resolve_identity(
    analysis: ImageAnalysis,
    rules: list[tuple[str, Rule]] = RULES,
) -> Identity:
    """Run the rule chain and return the first identity claimed."""
    ctx = build_context(analysis)

    name, confidence, source = "Unknown Item", 0.50, "unknown"
    for rule_name, rule in rules:
        outcome = rule(ctx)
        if outcome:
            name, confidence = outcome
            source = rule_name
            break

    brand = ctx.brand
    if not brand:
        for match in (ctx.text_match, ctx.web_match):
            if match and match.brand:
                brand = match.brand
                break

    identity = Identity(
        name=name,
        brand=brand,
        model=ctx.model,
        confidence=max(0.0, min(confidence, 1.0)),
        source=source,
    )
    logger.info(
        "Identity '%s' (brand=%s model=%s) via %s — confidence %.2f",
        identity.name, identity.brand, identity.model, identity.source, identity.confidence,
    )
    return identity
