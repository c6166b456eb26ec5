"""
Provider Manager — builds the annotation provider from config and runs it.

The provider is cached at module level; reset `_provider = None` after
changing keys (tests do this in conftest).
"""
from __future__ import annotations

import logging
import time
from typing import Optional

import config
from errors import AnnotationServiceError, ConfigurationError
from image_analyzer import ImageAnalysis
from providers.base import AnnotationProvider, ImageInput, encode_image

logger = logging.getLogger(__name__)

_provider: Optional[AnnotationProvider] = None


def _build_provider() -> AnnotationProvider:
    if not config.GOOGLE_VISION_API_KEY:
        raise ConfigurationError(
            "Google Vision is not configured. "
            "Set GOOGLE_API_KEY (or GOOGLE_VISION_API_KEY) in the environment."
        )
    from providers.google_vision_provider import GoogleVisionProvider
    provider = GoogleVisionProvider(config.GOOGLE_VISION_API_KEY)
    logger.info("Loaded annotation provider: %s", provider.name)
    return provider


def get_provider() -> AnnotationProvider:
    """Return the active provider, building it on first call. Raises ConfigurationError."""
    global _provider
    if _provider is None:
        _provider = _build_provider()
    return _provider


# ── Core analysis function ────────────────────────────────────────────────────

async def analyse_image(image: ImageInput) -> ImageAnalysis:
    """
    Annotate one photo.

    Args:
        image: raw bytes, or a base64 string (data-URL prefix allowed).

    Raises:
        ConfigurationError     — no Vision key configured.
        AnnotationServiceError — empty image, or the service call failed.
    """
    provider = get_provider()
    content = encode_image(image)
    if not content:
        raise AnnotationServiceError("Image is empty")

    t0 = time.monotonic()
    try:
        analysis = await provider.annotate(content)
    except AnnotationServiceError as exc:
        logger.error("[%s] Failed: %s", provider.name, exc)
        raise
    logger.info("[%s] OK — %dms", provider.name, int((time.monotonic() - t0) * 1000))
    return analysis
