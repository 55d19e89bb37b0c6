"""aiohttp routes exposing scanner snapshots over HTTP."""

from __future__ import annotations

import logging
import time

from aiohttp import web

from .engine import ScannerEngine
from .errors import ScannerError
from .http import close_session
from .models import ScanOptions
from .quotes import QuoteCategory
from .views import apply_options, normalize_sort, normalize_window

logger = logging.getLogger(__name__)

ENGINE_KEY = web.AppKey("engine", ScannerEngine)

_TRUE_VALUES = {"1", "true"}


def _parse_quote(raw: str | None, default: str | None = None) -> QuoteCategory | None:
    text = raw if raw not in (None, "") else default
    if text is None:
        return None
    return QuoteCategory.parse(text)


async def ping(request: web.Request) -> web.Response:
    return web.json_response({"ok": True, "ts": int(time.time() * 1000)})


async def scan(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    query = request.query
    try:
        quote = _parse_quote(query.get("quote"), "CLANKER")
    except ValueError:
        return web.json_response({"message": "Invalid quote filter"}, status=400)

    options = ScanOptions(
        sort=normalize_sort(query.get("sort")),
        window=normalize_window(query.get("window")),
        signals_only=str(query.get("buyOnly", "")).lower() in _TRUE_VALUES,
    )
    try:
        snapshot = await engine.get_scanner_data(quote, options)
    except ScannerError as exc:
        logger.error("Scanner refresh failed for %s: %s", quote.value, exc)
        return web.json_response(
            {"message": "Failed to fetch scanner data", "error": str(exc)},
            status=502,
        )
    return web.json_response(apply_options(snapshot, options).to_dict())


async def token(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    address = (request.query.get("address") or "").strip()
    if not address:
        return web.json_response({"message": "Missing token address"}, status=400)
    try:
        quote = _parse_quote(request.query.get("quote"))
    except ValueError:
        return web.json_response({"message": "Invalid quote filter"}, status=400)

    try:
        pairs = await engine.fetch_token_pairs(address, quote)
    except ScannerError as exc:
        logger.error("Token pair lookup failed for %s: %s", address, exc)
        return web.json_response(
            {"message": "Failed to fetch token pairs", "error": str(exc)},
            status=502,
        )
    return web.json_response({"address": address, "pairs": [pair.to_dict() for pair in pairs]})


async def _on_cleanup(app: web.Application) -> None:
    await close_session()


def create_app(engine: ScannerEngine | None = None) -> web.Application:
    """Build the application serving ``/api/ping`` and the scanner routes."""

    app = web.Application()
    app[ENGINE_KEY] = engine or ScannerEngine()
    app.router.add_get("/api/ping", ping)
    app.router.add_get("/api/defined/scan", scan)
    app.router.add_get("/api/defined/token", token)
    app.on_cleanup.append(_on_cleanup)
    return app


__all__ = ["create_app", "ENGINE_KEY"]
