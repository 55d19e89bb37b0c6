from __future__ import annotations

import asyncio
import logging
import os
import weakref
from typing import Any

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "pairscan/0.1 (+https://local)"


class HTTPError(Exception):
    """Raised when an HTTP request returns a non-success status code."""

    def __init__(self, message: str, *, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return float(default)
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, raw)
        return float(default)


# One session per event loop so that loops in different threads never share
# connectors.
_SESSIONS: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, aiohttp.ClientSession]" = (
    weakref.WeakKeyDictionary()
)


def request_timeout() -> aiohttp.ClientTimeout:
    return aiohttp.ClientTimeout(total=_env_float("HTTP_TIMEOUT_SEC", 15.0))


async def get_session() -> aiohttp.ClientSession:
    """Return an aiohttp session bound to the current event loop."""
    loop = asyncio.get_running_loop()
    sess = _SESSIONS.get(loop)
    if sess is None or sess.closed:
        ua = os.getenv("HTTP_USER_AGENT", DEFAULT_USER_AGENT)
        trust_env = str(os.getenv("HTTP_TRUST_ENV", "")).lower() in {"1", "true", "yes"}
        if trust_env:
            logger.info("HTTP session will honor proxy settings from the environment")
        sess = aiohttp.ClientSession(
            headers={"User-Agent": ua},
            timeout=request_timeout(),
            trust_env=trust_env,
        )
        _SESSIONS[loop] = sess
    return sess


async def close_session() -> None:
    """Close all known aiohttp sessions."""
    to_close = list(_SESSIONS.values())
    _SESSIONS.clear()
    for sess in to_close:
        if not sess.closed:
            await sess.close()


async def request_json(
    session: Any,
    method: str,
    url: str,
    **kwargs: Any,
) -> Any:
    """Issue one request on *session* and return the decoded JSON body.

    No retries: a failed poll is reported to the caller and the next poll
    tries again.  Non-2xx responses and bodies that are not JSON raise
    :class:`HTTPError` carrying the status and a truncated body.
    """

    kwargs.setdefault("timeout", request_timeout())
    async with session.request(method, url, **kwargs) as response:
        if response.status >= 400:
            text = await response.text()
            raise HTTPError(
                f"{method} {url} -> {response.status}: {text[:300]}",
                status=response.status,
                body=text[:300],
            )
        try:
            return await response.json(content_type=None)
        except ValueError as exc:
            text = await response.text()
            raise HTTPError(
                f"{method} {url} -> {response.status}: invalid JSON body: {text[:300]}",
                status=response.status,
                body=text[:300],
            ) from exc


__all__ = [
    "HTTPError",
    "get_session",
    "close_session",
    "request_json",
    "request_timeout",
]
