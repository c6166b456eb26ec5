"""
api_server.py — aiohttp web server exposing the recognition pipeline.

Endpoints:
  POST /api/ai/recognize          body {"image": "<base64 or data URL>"}
  GET  /api/ai/suggestions        ?itemName=…&brand=…
  GET  /api/ai/search             ?query=…&maxResults=&minPrice=&maxPrice=&condition=
  GET  /api/ai/price-comparison   ?productName=…&brand=…
  GET  /health                    plain-text health check

Success: {"success": true, "data": …}   (search: "results" + "count")
Failure: {"success": false, "error": "…", "code": "…"}
  400 VALIDATION_ERROR, 503 NOT_CONFIGURED, 502 ANNOTATION_FAILED, 500 INTERNAL_ERROR
"""
from __future__ import annotations

import json
import logging
from typing import Optional

from aiohttp import web

import config
import market_search
import recognizer
from errors import AnnotationServiceError, ConfigurationError, RecognitionError

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    pass


# ── Helpers ────────────────────────────────────────────────────────────────────

def _error(message: str, code: str, status: int) -> web.Response:
    return web.json_response({"success": False, "error": message, "code": code}, status=status)


def _error_for(exc: Exception) -> web.Response:
    if isinstance(exc, ValidationError):
        return _error(str(exc), "VALIDATION_ERROR", 400)

    cause = exc.__cause__ if isinstance(exc, RecognitionError) else exc
    if isinstance(cause, ConfigurationError):
        return _error(str(exc), "NOT_CONFIGURED", 503)
    if isinstance(cause, AnnotationServiceError):
        return _error(str(exc), "ANNOTATION_FAILED", 502)

    logger.error("Unhandled error: %s", exc, exc_info=True)
    return _error("Internal server error", "INTERNAL_ERROR", 500)


def _required(request: web.Request, name: str) -> str:
    value = request.query.get(name, "").strip()
    if not value:
        raise ValidationError(f"{name} is required")
    return value


def _optional_number(request: web.Request, name: str, cast=float) -> Optional[float]:
    raw = request.query.get(name, "").strip()
    if not raw:
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number") from None


# ── Request handlers ───────────────────────────────────────────────────────────

async def handle_recognize(request: web.Request) -> web.Response:
    try:
        try:
            body = await request.json()
        except json.JSONDecodeError:
            raise ValidationError("Request body must be JSON") from None
        image = body.get("image") if isinstance(body, dict) else None
        if not image or not isinstance(image, str):
            raise ValidationError("Image is required")

        result = await recognizer.recognize(image)
    except (ValidationError, RecognitionError) as exc:
        return _error_for(exc)
    return web.json_response({"success": True, "data": result.to_dict()})


async def handle_suggestions(request: web.Request) -> web.Response:
    try:
        item_name = _required(request, "itemName")
        brand = request.query.get("brand") or None
        analysis = await recognizer.get_market_analysis(item_name, brand)
    except (ValidationError, ConfigurationError) as exc:
        return _error_for(exc)
    return web.json_response({"success": True, "data": analysis.to_dict()})


async def handle_search(request: web.Request) -> web.Response:
    try:
        query = _required(request, "query")
        max_results = _optional_number(request, "maxResults", int)
        if max_results is not None and max_results < 1:
            raise ValidationError("maxResults must be at least 1")
        results = await recognizer.search_similar(
            query,
            max_results=max_results,
            min_price=_optional_number(request, "minPrice"),
            max_price=_optional_number(request, "maxPrice"),
            condition=request.query.get("condition") or None,
        )
    except (ValidationError, ConfigurationError) as exc:
        return _error_for(exc)
    return web.json_response({
        "success": True,
        "results": [hit.to_dict() for hit in results],
        "count":   len(results),
    })


async def handle_price_comparison(request: web.Request) -> web.Response:
    try:
        product_name = _required(request, "productName")
        brand = request.query.get("brand") or None
        comparison = await recognizer.get_price_comparison(product_name, brand)
    except (ValidationError, ConfigurationError) as exc:
        return _error_for(exc)
    return web.json_response({"success": True, "data": comparison.to_dict()})


async def handle_health(request: web.Request) -> web.Response:
    """Health check — returns 200 OK. Use with uptime monitors."""
    vision = "configured" if config.is_vision_configured() else "not configured"
    return web.Response(
        text=f"OK — vision: {vision}, search: {market_search.backend_name()}",
        content_type="text/plain",
    )


# ── App factory ────────────────────────────────────────────────────────────────

def build_web_app() -> web.Application:
    # Photos arrive base64-encoded in the JSON body
    app = web.Application(client_max_size=20 * 1024 * 1024)
    app.router.add_get("/health",                 handle_health)
    app.router.add_post("/api/ai/recognize",       handle_recognize)
    app.router.add_get("/api/ai/suggestions",      handle_suggestions)
    app.router.add_get("/api/ai/search",           handle_search)
    app.router.add_get("/api/ai/price-comparison", handle_price_comparison)
    return app


async def start_server() -> web.AppRunner:
    """Start the web server. Returns runner so caller can shut it down cleanly."""
    app    = build_web_app()
    runner = web.AppRunner(app, access_log=logger)
    await runner.setup()
    site = web.TCPSite(runner, config.API_HOST, config.API_PORT)
    await site.start()
    logger.info("🔎 Recognition API listening on %s:%d", config.API_HOST, config.API_PORT)
    return runner
