"""
image_analyzer.py — canonical home of the types that flow through recognition.

ImageAnalysis is produced by providers/ (the Vision API client) and consumed by
identity_resolver.py, description_generator.py and recognizer.py.
Identity is produced by identity_resolver.py.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Annotation:
    """A label, object, web entity or logo with the service's score (0–1, may be missing)."""
    text: str
    score: Optional[float] = None


@dataclass(frozen=True)
class MatchingPage:
    url: str
    title: str


@dataclass(frozen=True)
class ImageAnalysis:
    """
    Everything the Vision API told us about one photo.
    Each list keeps the service's own ranking (most confident first).
    """
    labels: list[Annotation] = field(default_factory=list)
    objects: list[Annotation] = field(default_factory=list)
    ocr_text: str = ""
    web_entities: list[Annotation] = field(default_factory=list)
    best_guess_labels: list[str] = field(default_factory=list)
    matching_pages: list[MatchingPage] = field(default_factory=list)
    logos: list[Annotation] = field(default_factory=list)

    def combined_text(self, *, lower: bool = False) -> str:
        """Labels, objects, web entities and OCR text joined into one string."""
        text = " ".join(
            [a.text for a in self.labels]
            + [o.text for o in self.objects]
            + [e.text for e in self.web_entities]
            + [self.ocr_text]
        )
        return text.lower() if lower else text


@dataclass(frozen=True)
class Identity:
    """Best-guess product identity for one photo."""
    name: str
    brand: Optional[str]
    model: Optional[str]
    confidence: float           # 0–1
    source: str                 # which resolver rule produced it

    @property
    def is_text_derived(self) -> bool:
        return self.source == "text"

    @property
    def is_specific(self) -> bool:
        """Specific enough to justify a dedicated shopping search."""
        return self.is_text_derived or bool(self.brand and self.model) or self.confidence > 0.8
