from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping
from urllib.parse import quote

import aiohttp

from ..config import DEFAULT_DEXSCREENER_BASE_URL
from ..http import get_session, request_json

logger = logging.getLogger(__name__)


def _extract_pairs(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, Mapping):
        pairs = payload.get("pairs")
        if isinstance(pairs, list):
            return [dict(pair) for pair in pairs if isinstance(pair, Mapping)]
    if isinstance(payload, list):
        return [dict(pair) for pair in payload if isinstance(pair, Mapping)]
    return []


class DexscreenerClient:
    """Thin client for the public pair-search and token-pairs endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_DEXSCREENER_BASE_URL,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session

    async def _session_obj(self) -> Any:
        if self._session is not None:
            return self._session
        return await get_session()

    async def _get(self, url: str) -> List[Dict[str, Any]]:
        session = await self._session_obj()
        payload = await request_json(
            session,
            "GET",
            url,
            headers={"Accept": "application/json"},
        )
        pairs = _extract_pairs(payload)
        logger.debug("Dexscreener returned %d pairs for %s", len(pairs), url)
        return pairs

    async def search_pairs(self, query: str) -> List[Dict[str, Any]]:
        text = (query or "").strip()
        if not text:
            raise ValueError("query must be a non-empty string")
        return await self._get(f"{self.base_url}/latest/dex/search?q={quote(text)}")

    async def token_pairs(self, address: str) -> List[Dict[str, Any]]:
        token = (address or "").strip()
        if not token:
            raise ValueError("address must be a non-empty string")
        return await self._get(f"{self.base_url}/latest/dex/tokens/{token}")


__all__ = ["DexscreenerClient"]
