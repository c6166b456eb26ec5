"""
Google Cloud Vision provider — images:annotate REST endpoint.

Docs: https://cloud.google.com/vision/docs/reference/rest/v1/images/annotate

One request asks for labels, objects, OCR text, web detection and logos
(see providers.base.FEATURES). Web detection is what gives us the
"best guess" label and pages that carry the same photo.
"""
from __future__ import annotations

import asyncio
import logging
import time

import aiohttp

import config
from errors import AnnotationServiceError
from image_analyzer import Annotation, ImageAnalysis, MatchingPage
from providers.base import FEATURES, AnnotationProvider

logger = logging.getLogger(__name__)

VISION_URL = "https://vision.googleapis.com/v1/images:annotate"


class GoogleVisionProvider(AnnotationProvider):

    def __init__(self, api_key: str) -> None:
        self.name = "google-vision"
        self._key = api_key

    async def annotate(self, image_b64: str) -> ImageAnalysis:
        payload = {
            "requests": [
                {
                    "image":    {"content": image_b64},
                    "features": FEATURES,
                }
            ]
        }

        t0 = time.monotonic()
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    VISION_URL,
                    params={"key": self._key},
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=config.VISION_TIMEOUT),
                ) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        raise AnnotationServiceError(f"Google Vision API error {resp.status}: {text[:200]}")
                    data = await resp.json()
        except aiohttp.ClientError as exc:
            raise AnnotationServiceError(f"Google Vision API unreachable: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise AnnotationServiceError("Google Vision API timed out") from exc
        except ValueError as exc:
            raise AnnotationServiceError(f"Google Vision API returned invalid JSON: {exc}") from exc

        latency_ms = int((time.monotonic() - t0) * 1000)
        analysis = parse_annotate_response(data)
        logger.info(
            "[%s] %d labels, %d objects, %d web entities, %d logos, %d chars OCR (%dms)",
            self.name, len(analysis.labels), len(analysis.objects),
            len(analysis.web_entities), len(analysis.logos), len(analysis.ocr_text), latency_ms,
        )
        return analysis


# ── Helpers ────────────────────────────────────────────────────────────────────

def parse_annotate_response(data: dict) -> ImageAnalysis:
    """
    Unpack the first entry of images:annotate's "responses" list.
    Missing sections become empty lists; a malformed body or a per-image
    "error" object raises AnnotationServiceError.
    """
    if not isinstance(data, dict):
        raise AnnotationServiceError("Google Vision API returned a non-object body")
    responses = data.get("responses")
    if not isinstance(responses, list) or not responses:
        raise AnnotationServiceError("Google Vision API returned no responses")

    result = responses[0] or {}
    if not isinstance(result, dict):
        raise AnnotationServiceError("Google Vision API returned a malformed response")
    error = result.get("error")
    if error:
        message = error.get("message", "unknown error") if isinstance(error, dict) else str(error)
        raise AnnotationServiceError(f"Google Vision API error: {message}")

    web = result.get("webDetection") or {}
    text_annotations = result.get("textAnnotations") or []

    try:
        return ImageAnalysis(
            labels=_annotations(result.get("labelAnnotations"), "description"),
            objects=_annotations(result.get("localizedObjectAnnotations"), "name"),
            ocr_text=(text_annotations[0].get("description") or "") if text_annotations else "",
            web_entities=_annotations(web.get("webEntities"), "description"),
            best_guess_labels=[
                g["label"] for g in web.get("bestGuessLabels") or [] if g.get("label")
            ],
            matching_pages=[
                MatchingPage(url=p["url"], title=p.get("pageTitle") or "")
                for p in web.get("pagesWithMatchingImages") or []
                if p.get("url")
            ],
            logos=_annotations(result.get("logoAnnotations"), "description"),
        )
    except (AttributeError, TypeError, ValueError) as exc:
        raise AnnotationServiceError(f"Malformed Google Vision response: {exc}") from exc


def _annotations(raw: list | None, text_key: str) -> list[Annotation]:
    # Web entities sometimes come back with only an entityId — skip those.
    items: list[Annotation] = []
    for entry in raw or []:
        text = (entry.get(text_key) or "").strip()
        if not text:
            continue
        score = entry.get("score")
        items.append(Annotation(text=text, score=float(score) if score is not None else None))
    return items
