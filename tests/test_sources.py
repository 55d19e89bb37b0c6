from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

import aiohttp
import pytest

from pairscan.config import ScannerConfig
from pairscan.errors import ConfigurationError, UpstreamError
from pairscan.http import HTTPError
from pairscan.providers.codex import CodexQueryError
from pairscan.providers.dexscreener import DexscreenerClient
from pairscan.quotes import DEFAULT_USDC_ADDRESS, DEFAULT_WETH_ADDRESS, ZERO_ADDRESS, QuoteCategory
from pairscan.sources import PairSource, pair_from_listing, pair_from_search


def _raw_pair(address: str, *, chain: str = "base", quote: str = DEFAULT_WETH_ADDRESS, **extra: Any):
    payload: Dict[str, Any] = {
        "pairAddress": address,
        "chainId": chain,
        "url": f"https://dexscreener.com/{chain}/{address}",
        "dexId": "uniswap",
        "baseToken": {"address": f"{address}-base", "symbol": "TKN", "name": "Token"},
        "quoteToken": {"address": quote, "symbol": "WETH"},
    }
    payload.update(extra)
    return payload


class _FakeDexscreener:
    def __init__(self, pairs: List[Dict[str, Any]] | Exception):
        self.pairs = pairs
        self.queries: List[str] = []

    async def search_pairs(self, query: str):
        self.queries.append(query)
        if isinstance(self.pairs, Exception):
            raise self.pairs
        return self.pairs

    async def token_pairs(self, address: str):
        self.queries.append(address)
        if isinstance(self.pairs, Exception):
            raise self.pairs
        return self.pairs


class _FakeCodex:
    def __init__(self, rows: List[Dict[str, Any]] | Exception):
        self.rows = rows
        self.calls: List[Any] = []

    async def list_tokens(self, filters, rankings, limit):
        self.calls.append((filters, rankings, limit))
        if isinstance(self.rows, Exception):
            raise self.rows
        return self.rows


def _source(config=None, *, dex=None, codex=None) -> PairSource:
    return PairSource(
        config or ScannerConfig(),
        dexscreener=dex or _FakeDexscreener([]),
        codex=codex or _FakeCodex([]),
    )


def test_search_filters_chain_and_quote_and_sorts_by_volume():
    dex = _FakeDexscreener(
        [
            _raw_pair("0xlow", volume={"h24": 10}),
            _raw_pair("0xsol", chain="solana", volume={"h24": 1e9}),
            _raw_pair("0xusdc", quote=DEFAULT_USDC_ADDRESS, volume={"h24": 1e9}),
            _raw_pair("0xhigh", quote=DEFAULT_WETH_ADDRESS.upper(), volume={"h24": "5000"}),
            _raw_pair("0xnone"),
        ]
    )
    config = ScannerConfig(modes={"CLANKER": "search"})
    pairs = asyncio.run(_source(config, dex=dex).fetch_candidates(QuoteCategory.CLANKER))

    assert dex.queries == ["base clanker"]
    assert [pair.pair_address for pair in pairs] == ["0xhigh", "0xlow", "0xnone"]
    assert pairs[0].volume.h24 == 5000.0


def test_search_truncates_to_scan_limit():
    dex = _FakeDexscreener(
        [_raw_pair(f"0x{i}", quote=DEFAULT_USDC_ADDRESS, volume={"h24": i}) for i in range(10)]
    )
    config = ScannerConfig(modes={"ZORA": "search"}, max_scan_results=3)
    pairs = asyncio.run(_source(config, dex=dex).fetch_candidates(QuoteCategory.ZORA))
    assert [pair.pair_address for pair in pairs] == ["0x9", "0x8", "0x7"]


def test_pair_from_search_normalizes_fields():
    pair = pair_from_search(
        _raw_pair(
            "0xabc",
            priceUsd="0.0012",
            liquidity={"usd": 5000},
            volume={"m5": "12.5", "h1": 100, "h24": None},
            priceChange={"m5": 3.2},
            txns={"m5": {"buys": 4, "sells": 1}, "h1": {}},
            marketCap=80000,
            fdv=90000,
            pairCreatedAt=1_700_000_000_000,
            info={"imageUrl": "https://img/x.png"},
        )
    )
    assert pair is not None
    assert pair.price_usd == pytest.approx(0.0012)
    assert pair.liquidity_usd == 5000.0
    assert pair.volume.m5 == 12.5
    assert pair.volume.h24 is None
    assert pair.txns["m5"].buys == 4
    assert "h1" not in pair.txns
    assert pair.created_at == pytest.approx(1_700_000_000.0)
    assert pair.base_token.image_url == "https://img/x.png"
    assert pair.market_cap_value == 80000.0


def test_pair_from_search_rejects_incomplete():
    assert pair_from_search({"chainId": "base"}) is None
    assert pair_from_search(_raw_pair("0xa", quoteToken=None)) is None


def _listing_row(**overrides: Any) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "createdAt": 1_700_000_000,
        "volume5m": "120.5",
        "volumeChange5m": "0.42",
        "volume24": "9000",
        "liquidity": "15000",
        "priceUSD": "0.00042",
        "change5m": "0.31",
        "marketCap": "38000",
        "holders": "77",
        "txnCount5m": "12",
        "txnCount24": "",
        "buyCount5m": 9,
        "sellCount5m": 3,
        "pair": {"address": "0xpool"},
        "token": {
            "info": {
                "address": "0xtoken",
                "name": "Example",
                "symbol": "EX",
                "imageThumbUrl": None,
                "imageSmallUrl": "https://img/small.png",
                "imageLargeUrl": "https://img/large.png",
            },
            "createdAt": 1_600_000_000,
        },
    }
    row.update(overrides)
    return row


def test_pair_from_listing():
    pair = pair_from_listing(_listing_row(), chain_id="base", quote_symbol="ZORA")
    assert pair is not None
    assert pair.pair_address == "0xpool"
    assert pair.chart_symbol_type == "POOL"
    assert pair.base_token.image_url == "https://img/small.png"
    assert pair.quote_token.address == ZERO_ADDRESS
    assert pair.quote_token.symbol == "ZORA"
    assert pair.volume.m5 == 120.5
    assert pair.volume.h24 == 9000.0
    assert pair.volume_change_pct == pytest.approx(0.42)
    assert pair.price_change.m5 == pytest.approx(0.31)
    assert pair.market_cap == 38000.0
    assert pair.holders == 77
    assert pair.txn_count.m5 == 12.0
    assert pair.txn_count.h24 is None
    assert pair.txns["m5"].buys == 9
    assert pair.created_at == 1_700_000_000.0


def test_pair_from_listing_token_fallbacks():
    pair = pair_from_listing(
        _listing_row(pair=None, createdAt=None, volumeChange5m=None),
        chain_id="base",
        quote_symbol="USD",
    )
    assert pair.pair_address == "0xtoken"
    assert pair.chart_symbol_type == "TOKEN"
    assert pair.created_at == 1_600_000_000.0
    assert pair.volume_change_pct is None


def test_pair_from_listing_skips_missing_token():
    assert pair_from_listing(_listing_row(token={"info": {}}), chain_id="base", quote_symbol="USD") is None


def test_listing_request_and_results():
    codex = _FakeCodex([_listing_row(), _listing_row(token=None)])
    pairs = asyncio.run(_source(codex=codex).fetch_candidates(QuoteCategory.CLANKER))

    filters, rankings, limit = codex.calls[0]
    assert filters == {"network": [8453], "launchpadName": ["Clanker V4"]}
    assert rankings == [{"attribute": "createdAt", "direction": "DESC"}]
    assert limit == 200
    assert len(pairs) == 1
    assert pairs[0].quote_token.symbol == "USD"


def test_disabled_category_makes_no_calls():
    codex = _FakeCodex([_listing_row()])
    dex = _FakeDexscreener([])
    assert asyncio.run(_source(codex=codex, dex=dex).fetch_candidates(QuoteCategory.PRINTR)) == []
    assert codex.calls == []
    assert dex.queries == []


@pytest.mark.parametrize(
    "error, status",
    [
        (HTTPError("boom", status=503), 503),
        (aiohttp.ClientError("reset"), None),
        (asyncio.TimeoutError(), None),
        (CodexQueryError("bad query"), None),
    ],
)
def test_transport_failures_become_upstream_errors(error, status):
    source = _source(codex=_FakeCodex(error))
    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(source.fetch_candidates(QuoteCategory.ZORA))
    assert excinfo.value.category is QuoteCategory.ZORA
    assert excinfo.value.status == status
    assert str(excinfo.value).startswith("[ZORA]")


def test_missing_credentials_propagate_unchanged():
    source = _source(codex=_FakeCodex(ConfigurationError("Missing DEFINED_API_KEY")))
    with pytest.raises(ConfigurationError):
        asyncio.run(source.fetch_candidates(QuoteCategory.ZORA))


def test_fetch_token_pairs_sorts_by_liquidity_then_volume():
    dex = _FakeDexscreener(
        [
            _raw_pair("0xthin", liquidity={"usd": 10}, volume={"h24": 1e6}),
            _raw_pair("0xdeep", liquidity={"usd": 5000}, volume={"h24": 1}),
            _raw_pair("0xtie", liquidity={"usd": 5000}, volume={"h24": 50}),
            _raw_pair("0xusdc", quote=DEFAULT_USDC_ADDRESS, liquidity={"usd": 1e9}),
            _raw_pair("0xeth", chain="ethereum", liquidity={"usd": 1e9}),
        ]
    )
    source = _source(dex=dex)

    everything = asyncio.run(source.fetch_token_pairs("0xtoken"))
    assert [pair.pair_address for pair in everything] == ["0xusdc", "0xtie", "0xdeep", "0xthin"]

    weth_only = asyncio.run(source.fetch_token_pairs("0xtoken", QuoteCategory.CLANKER))
    assert [pair.pair_address for pair in weth_only] == ["0xtie", "0xdeep", "0xthin"]


class _HtmlResponse:
    status = 200
    body = "<html>rate limited</html>"

    async def __aenter__(self) -> "_HtmlResponse":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def json(self, content_type: str | None = None) -> Any:
        return json.loads(self.body)

    async def text(self) -> str:
        return self.body


class _HtmlSession:
    def request(self, method: str, url: str, **kwargs: Any) -> _HtmlResponse:
        return _HtmlResponse()


def test_non_json_success_body_becomes_upstream_error():
    config = ScannerConfig(modes={"CLANKER": "search"})
    source = _source(config, dex=DexscreenerClient(session=_HtmlSession()))
    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(source.fetch_candidates(QuoteCategory.CLANKER))
    assert excinfo.value.category is QuoteCategory.CLANKER
    assert excinfo.value.status == 200
    assert "rate limited" in str(excinfo.value)


def test_last_transaction_is_normalized():
    searched = pair_from_search(_raw_pair("0xa", lastTransactionAt=1_700_000_000_000))
    listed = pair_from_listing(
        _listing_row(lastTransaction=1_700_000_123),
        chain_id="base",
        quote_symbol="USD",
    )
    assert searched.last_transaction_at == pytest.approx(1_700_000_000.0)
    assert listed.last_transaction_at == 1_700_000_123.0
    assert listed.to_dict()["lastTransactionAt"] == 1_700_000_123_000
    assert pair_from_search(_raw_pair("0xb")).last_transaction_at is None
