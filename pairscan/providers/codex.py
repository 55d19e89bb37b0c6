"""GraphQL client for the Codex token-listing service."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Sequence

import aiohttp

from ..config import DEFAULT_CODEX_GRAPHQL_URL
from ..errors import ConfigurationError
from ..http import get_session, request_json

logger = logging.getLogger(__name__)

FILTER_TOKENS_QUERY = """
query FilterTokens($filters: TokenFilters, $rankings: [TokenRanking], $limit: Int) {
  filterTokens(filters: $filters, rankings: $rankings, limit: $limit) {
    results {
      createdAt
      lastTransaction
      volume5m
      volumeChange5m
      volume24
      liquidity
      priceUSD
      change5m
      marketCap
      holders
      txnCount5m
      txnCount24
      buyCount5m
      sellCount5m
      pair {
        address
      }
      token {
        info {
          address
          name
          symbol
          imageThumbUrl
          imageSmallUrl
          imageLargeUrl
        }
        createdAt
      }
    }
  }
}
"""


class CodexQueryError(RuntimeError):
    """The GraphQL endpoint answered with a non-empty ``errors`` list."""


def authorization_header(api_key: str, bearer: bool = False) -> str:
    if api_key.startswith("Bearer "):
        return api_key
    if bearer:
        return f"Bearer {api_key}"
    return api_key


class CodexClient:
    def __init__(
        self,
        api_key: str | None,
        *,
        url: str = DEFAULT_CODEX_GRAPHQL_URL,
        auth_bearer: bool = False,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.api_key = (api_key or "").strip() or None
        self.url = url
        self.auth_bearer = auth_bearer
        self._session = session

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("Missing DEFINED_API_KEY (or CODEX_API_KEY)")
        return {
            "Content-Type": "application/json",
            "Authorization": authorization_header(self.api_key, self.auth_bearer),
        }

    async def list_tokens(
        self,
        filters: Mapping[str, Any],
        rankings: Sequence[Mapping[str, Any]],
        limit: int,
    ) -> List[Dict[str, Any]]:
        """Run ``filterTokens`` and return the raw result rows.

        Raises :class:`ConfigurationError` before any network traffic when no
        API key is configured.
        """

        headers = self._headers()
        session = self._session if self._session is not None else await get_session()
        body = {
            "query": FILTER_TOKENS_QUERY,
            "variables": {
                "filters": dict(filters),
                "rankings": [dict(item) for item in rankings],
                "limit": int(limit),
            },
        }
        payload = await request_json(session, "POST", self.url, json=body, headers=headers)
        if not isinstance(payload, Mapping):
            raise CodexQueryError("Codex query returned a non-object payload")

        errors = payload.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) else None
            message = first.get("message") if isinstance(first, Mapping) else None
            raise CodexQueryError(message or "Codex query failed")

        data = payload.get("data")
        listing = data.get("filterTokens") if isinstance(data, Mapping) else None
        results = listing.get("results") if isinstance(listing, Mapping) else None
        rows = [dict(row) for row in results or [] if isinstance(row, Mapping)]
        logger.debug("Codex filterTokens returned %d rows", len(rows))
        return rows


__all__ = ["CodexClient", "CodexQueryError", "FILTER_TOKENS_QUERY", "authorization_header"]
