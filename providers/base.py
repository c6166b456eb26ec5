"""
Shared types and base class for image annotation providers.
"""
from __future__ import annotations

import base64
import logging
import re
from abc import ABC, abstractmethod
from typing import Union

from image_analyzer import ImageAnalysis

logger = logging.getLogger(__name__)

# ── Requested features (shared across providers) ──────────────────────────────

FEATURES: list[dict] = [
    {"type": "LABEL_DETECTION",     "maxResults": 20},
    {"type": "OBJECT_LOCALIZATION", "maxResults": 20},
    {"type": "TEXT_DETECTION",      "maxResults": 10},
    {"type": "WEB_DETECTION",       "maxResults": 10},
    {"type": "LOGO_DETECTION",      "maxResults": 5},
]

_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")

ImageInput = Union[bytes, str]


def encode_image(image: ImageInput) -> str:
    """
    Normalise an image to the bare base64 string the annotation API expects.
    Raw bytes are base64-encoded; strings are treated as base64 already and
    have any data-URL prefix ("data:image/png;base64,") stripped.
    """
    if isinstance(image, (bytes, bytearray)):
        return base64.b64encode(bytes(image)).decode("ascii")
    return _DATA_URL_PREFIX.sub("", image.strip())


# ── Abstract base ──────────────────────────────────────────────────────────────

class AnnotationProvider(ABC):
    """Base class all image annotation providers must implement."""

    name: str           # e.g. "google-vision"

    @abstractmethod
    async def annotate(self, image_b64: str) -> ImageAnalysis:
        """
        Annotate a base64-encoded image.
        Must raise AnnotationServiceError on any service or parse failure.
        """
        ...
