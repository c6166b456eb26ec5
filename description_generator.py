"""
description_generator.py — listing description, category and condition.

Everything here works from the ImageAnalysis alone, so a listing draft can be
produced even when every price search failed.

The keyword tables are ordered: the first matching row wins. Each inference
function accepts its own table for callers that need a different vocabulary.
"""
from __future__ import annotations

from typing import Optional

from image_analyzer import Annotation, ImageAnalysis

MAX_DESCRIPTION_LENGTH = 500
OCR_PREVIEW_LENGTH = 150

GENERIC_LABELS = {"product", "object", "thing", "item", "goods"}
QUALITY_WORDS = {"new", "used", "vintage", "modern", "antique", "refurbished", "excellent", "good"}

CATEGORY_KEYWORDS: list[tuple[str, list[str]]] = [
    ("Electronics", ["phone", "smartphone", "iphone", "android", "tablet", "ipad"]),
    ("Electronics", ["laptop", "computer", "macbook", "desktop", "pc"]),
    ("Electronics", ["camera", "lens", "dslr", "mirrorless"]),
    ("Electronics", ["headphone", "earbud", "speaker", "audio"]),
    ("Electronics", ["tv", "television", "monitor", "display"]),
    ("Jewelry", ["watch", "timepiece", "rolex", "omega"]),
    ("Jewelry", ["ring", "necklace", "bracelet", "jewelry", "gold", "silver", "diamond"]),
    ("Musical Instruments", ["guitar", "piano", "violin", "instrument", "drum", "bass"]),
    ("Tools", ["drill", "tool", "saw", "wrench", "screwdriver"]),
    ("Clothing & Accessories", ["shirt", "pants", "dress", "shoe", "jacket", "bag", "purse"]),
    ("Furniture", ["chair", "table", "sofa", "couch", "desk", "bed"]),
    ("Sports & Outdoors", ["bike", "bicycle", "skateboard", "snowboard", "ski", "golf"]),
    ("Books & Media", ["book", "dvd", "cd", "vinyl", "record"]),
]
DEFAULT_CATEGORY = "Electronics"

CONDITION_KEYWORDS: list[tuple[str, list[str]]] = [
    ("new",       ["new", "unopened", "sealed"]),
    ("like new",  ["like new", "excellent", "mint"]),
    ("very good", ["very good", "great condition"]),
    ("good",      ["good", "decent"]),
    ("fair",      ["fair", "acceptable"]),
    ("poor",      ["poor", "damaged", "broken"]),
]
DEFAULT_CONDITION = "used"


def _first_match(text: str, table: list[tuple[str, list[str]]]) -> Optional[str]:
    for value, keywords in table:
        if any(keyword in text for keyword in keywords):
            return value
    return None


def infer_category(
    labels: list[Annotation],
    web_entities: list[Annotation],
    table: list[tuple[str, list[str]]] = CATEGORY_KEYWORDS,
) -> str:
    all_text = " ".join(a.text.lower() for a in [*labels, *web_entities])
    return _first_match(all_text, table) or DEFAULT_CATEGORY


def infer_condition(
    labels: list[Annotation],
    ocr_text: str,
    table: list[tuple[str, list[str]]] = CONDITION_KEYWORDS,
) -> str:
    all_text = " ".join([*(a.text.lower() for a in labels), (ocr_text or "").lower()])
    return _first_match(all_text, table) or DEFAULT_CONDITION


def generate_description(analysis: ImageAnalysis, name: str, brand: Optional[str] = None) -> str:
    """
    "<brand> <name> - <top labels>. <top web entity>. <OCR preview> Condition: <word>"

    Each part is added only when present. Whitespace is collapsed and the
    result is capped at 500 characters.
    """
    description = name
    # Names like "Apple Watch" already carry the brand
    if brand and brand.lower() not in name.lower():
        description = f"{brand} {description}"

    top_labels = [
        label.text for label in analysis.labels[:3]
        if label.text.lower() not in GENERIC_LABELS
    ]
    if top_labels:
        description += f" - {', '.join(top_labels)}"

    if analysis.web_entities:
        top_entity = analysis.web_entities[0].text
        if top_entity and top_entity != name:
            description += f". {top_entity}"

    if analysis.ocr_text:
        preview = analysis.ocr_text[:OCR_PREVIEW_LENGTH]
        # Fewer words than that is usually OCR noise (serial numbers, logos)
        if len(preview.split()) > 3:
            description += f". {preview}"

    quality = [label.text for label in analysis.labels if label.text.lower() in QUALITY_WORDS]
    if quality:
        description += f" Condition: {quality[0]}"

    description = " ".join(description.split())
    if len(description) > MAX_DESCRIPTION_LENGTH:
        description = description[: MAX_DESCRIPTION_LENGTH - 3] + "..."

    return description or f"{name} - Product for sale"
