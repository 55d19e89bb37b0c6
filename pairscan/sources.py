"""Retrieve candidate pairs for a quote category and normalize them."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

import aiohttp

from .config import ScannerConfig
from .errors import UpstreamError
from .http import HTTPError
from .models import (
    TokenRef,
    TradeCounts,
    TradingPair,
    WindowStats,
    coerce_float,
    coerce_int,
    parse_timestamp,
)
from .providers.codex import CodexClient, CodexQueryError
from .providers.dexscreener import DexscreenerClient
from .quotes import (
    ZERO_ADDRESS,
    QuoteCategory,
    QuoteProfile,
    ScanMode,
    build_registry,
    normalize_address,
)

logger = logging.getLogger(__name__)

TOKEN_PAIRS_LIMIT = 50

_TRANSPORT_ERRORS = (HTTPError, aiohttp.ClientError, asyncio.TimeoutError, CodexQueryError)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _token_ref(data: Any, *, image_url: Optional[str] = None) -> TokenRef | None:
    if not isinstance(data, Mapping):
        return None
    address = _text(data.get("address"))
    if address is None:
        return None
    return TokenRef(
        address=address,
        symbol=_text(data.get("symbol")) or "UNKNOWN",
        name=_text(data.get("name")),
        image_url=image_url or _text(data.get("imageUrl")),
    )


def _trade_counts(data: Any) -> Dict[str, TradeCounts]:
    if not isinstance(data, Mapping):
        return {}
    counts: Dict[str, TradeCounts] = {}
    for window, raw in data.items():
        parsed = TradeCounts.from_mapping(raw)
        if parsed.buys is not None or parsed.sells is not None:
            counts[str(window)] = parsed
    return counts


def pair_from_search(raw: Mapping[str, Any]) -> TradingPair | None:
    """Normalize one pair-search result; ``None`` when it lacks identity."""

    pair_address = _text(raw.get("pairAddress"))
    info = raw.get("info") if isinstance(raw.get("info"), Mapping) else {}
    base = _token_ref(raw.get("baseToken"), image_url=_text(info.get("imageUrl")))
    quote = _token_ref(raw.get("quoteToken"))
    if pair_address is None or base is None or quote is None:
        return None
    liquidity = raw.get("liquidity")
    return TradingPair(
        pair_address=pair_address,
        chain_id=(_text(raw.get("chainId")) or "").lower(),
        base_token=base,
        quote_token=quote,
        url=_text(raw.get("url")) or "",
        dex_id=_text(raw.get("dexId")),
        price_usd=coerce_float(raw.get("priceUsd")),
        liquidity_usd=coerce_float(liquidity),
        volume=WindowStats.from_mapping(raw.get("volume")),
        price_change=WindowStats.from_mapping(raw.get("priceChange")),
        txn_count=WindowStats.from_mapping(raw.get("txnCount")),
        txns=_trade_counts(raw.get("txns")),
        market_cap=coerce_float(raw.get("marketCap")),
        fdv=coerce_float(raw.get("fdv")),
        holders=coerce_int(raw.get("holders")),
        created_at=parse_timestamp(raw.get("pairCreatedAt")),
        last_transaction_at=parse_timestamp(raw.get("lastTransactionAt")),
    )


def pair_from_listing(
    row: Mapping[str, Any],
    *,
    chain_id: str,
    quote_symbol: str,
) -> TradingPair | None:
    """Normalize one ``filterTokens`` row.

    Rows without a token address are dropped.  When the pool address is
    unknown the token address stands in and the chart type becomes
    ``"TOKEN"``.
    """

    token = row.get("token") if isinstance(row.get("token"), Mapping) else {}
    info = token.get("info") if isinstance(token.get("info"), Mapping) else {}
    token_address = _text(info.get("address"))
    if token_address is None:
        return None

    pair = row.get("pair") if isinstance(row.get("pair"), Mapping) else {}
    pool_address = _text(pair.get("address"))
    image = (
        _text(info.get("imageThumbUrl"))
        or _text(info.get("imageSmallUrl"))
        or _text(info.get("imageLargeUrl"))
    )
    buys = coerce_int(row.get("buyCount5m"))
    sells = coerce_int(row.get("sellCount5m"))
    txns = {}
    if buys is not None or sells is not None:
        txns["m5"] = TradeCounts(buys=buys, sells=sells)
    created = parse_timestamp(row.get("createdAt")) or parse_timestamp(token.get("createdAt"))

    return TradingPair(
        pair_address=pool_address or token_address,
        chain_id=chain_id,
        chart_symbol_type="POOL" if pool_address else "TOKEN",
        base_token=TokenRef(
            address=token_address,
            symbol=_text(info.get("symbol")) or "UNKNOWN",
            name=_text(info.get("name")),
            image_url=image,
        ),
        quote_token=TokenRef(address=ZERO_ADDRESS, symbol=quote_symbol),
        price_usd=coerce_float(row.get("priceUSD")),
        liquidity_usd=coerce_float(row.get("liquidity")),
        volume=WindowStats(
            m5=coerce_float(row.get("volume5m")),
            h24=coerce_float(row.get("volume24")),
        ),
        price_change=WindowStats(m5=coerce_float(row.get("change5m"))),
        txn_count=WindowStats(
            m5=coerce_float(row.get("txnCount5m")),
            h24=coerce_float(row.get("txnCount24")),
        ),
        txns=txns,
        market_cap=coerce_float(row.get("marketCap")),
        holders=coerce_int(row.get("holders")),
        created_at=created,
        last_transaction_at=parse_timestamp(row.get("lastTransaction")),
        volume_change_pct=coerce_float(row.get("volumeChange5m")),
    )


def _volume_24h(pair: TradingPair) -> float:
    return pair.volume.h24 or 0.0


class PairSource:
    """Candidate retrieval for every category of one registry."""

    def __init__(
        self,
        config: ScannerConfig | None = None,
        *,
        registry: Mapping[QuoteCategory, QuoteProfile] | None = None,
        dexscreener: DexscreenerClient | None = None,
        codex: CodexClient | None = None,
    ) -> None:
        self.config = config or ScannerConfig()
        self.registry = dict(registry or build_registry(self.config.modes))
        self.dexscreener = dexscreener or DexscreenerClient(self.config.dexscreener_base_url)
        self.codex = codex or CodexClient(
            self.config.codex_api_key,
            url=self.config.codex_graphql_url,
            auth_bearer=self.config.codex_auth_bearer,
        )

    async def fetch_candidates(self, category: QuoteCategory) -> List[TradingPair]:
        profile = self.registry[category]
        if profile.mode is ScanMode.DISABLED:
            return []
        try:
            if profile.mode is ScanMode.SEARCH:
                pairs = await self._search(profile)
            else:
                pairs = await self._listing(profile)
        except _TRANSPORT_ERRORS as exc:
            status = getattr(exc, "status", None)
            raise UpstreamError(category, str(exc) or type(exc).__name__, status=status) from exc
        logger.debug("%s: %d candidates (%s)", category.value, len(pairs), profile.mode.value)
        return pairs

    async def _search(self, profile: QuoteProfile) -> List[TradingPair]:
        query = f"{self.config.chain_id} {profile.category.value.lower()}"
        raw = await self.dexscreener.search_pairs(query)
        quote_address = normalize_address(profile.quote.address)
        pairs = [
            pair
            for pair in self._normalize_search(raw)
            if normalize_address(pair.quote_token.address) == quote_address
        ]
        pairs.sort(key=_volume_24h, reverse=True)
        return pairs[: self.config.max_scan_results]

    async def _listing(self, profile: QuoteProfile) -> List[TradingPair]:
        filters = {
            "network": [self.config.network_id],
            "launchpadName": list(profile.launchpads),
        }
        rankings = [{"attribute": "createdAt", "direction": "DESC"}]
        rows = await self.codex.list_tokens(filters, rankings, self.config.max_scan_results)
        pairs = []
        for row in rows:
            pair = pair_from_listing(
                row,
                chain_id=self.config.chain_id,
                quote_symbol=profile.listing_symbol,
            )
            if pair is not None:
                pairs.append(pair)
        return pairs[: self.config.max_scan_results]

    def _normalize_search(self, raw: Iterable[Mapping[str, Any]]) -> List[TradingPair]:
        pairs = []
        for item in raw:
            pair = pair_from_search(item)
            if pair is not None and pair.chain_id == self.config.chain_id:
                pairs.append(pair)
        return pairs

    async def fetch_token_pairs(
        self,
        address: str,
        category: QuoteCategory | None = None,
    ) -> List[TradingPair]:
        """Return the chain's pairs for one token, deepest liquidity first."""

        try:
            raw = await self.dexscreener.token_pairs(address)
        except _TRANSPORT_ERRORS as exc:
            status = getattr(exc, "status", None)
            raise UpstreamError(category, str(exc) or type(exc).__name__, status=status) from exc

        pairs = self._normalize_search(raw)
        if category is not None:
            quote_address = normalize_address(self.registry[category].quote.address)
            pairs = [
                pair
                for pair in pairs
                if normalize_address(pair.quote_token.address) == quote_address
            ]
        pairs.sort(key=lambda pair: (pair.liquidity_usd or 0.0, _volume_24h(pair)), reverse=True)
        return pairs[:TOKEN_PAIRS_LIMIT]


__all__ = ["PairSource", "pair_from_search", "pair_from_listing", "TOKEN_PAIRS_LIMIT"]
