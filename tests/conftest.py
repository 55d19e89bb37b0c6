from __future__ import annotations

import logging
from typing import Any, Dict, List

import pytest

from pairscan.logging_utils import reset_warn_once_cache
from pairscan.models import TokenRef, TradingPair, WindowStats
from pairscan.quotes import DEFAULT_WETH_ADDRESS, QuoteCategory

_SCANNER_ENV = (
    "SCANNER_CACHE_TTL",
    "SCANNER_MAX_RESULTS",
    "SCANNER_MAX_SCAN_RESULTS",
    "SCANNER_MODE_CLANKER",
    "SCANNER_MODE_ZORA",
    "SCANNER_MODE_PRINTR",
    "DEFINED_API_KEY",
    "CODEX_API_KEY",
    "CODEX_AUTH_BEARER",
    "CLANKER_QUOTE_ADDRESS",
    "ZORA_QUOTE_ADDRESS",
    "DEXSCREENER_BASE_URL",
    "CODEX_GRAPHQL_URL",
    "LOG_LEVEL",
    "LOG_JSON",
)

T0 = 1_700_000_000.0


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in _SCANNER_ENV:
        monkeypatch.delenv(name, raising=False)
    reset_warn_once_cache()
    yield
    root = logging.getLogger()
    handler = getattr(root, "_pairscan_stdout_handler", None)
    if handler is not None:
        root.removeHandler(handler)
        delattr(root, "_pairscan_stdout_handler")


class FakeClock:
    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def _pair(address: str, **overrides: Any) -> TradingPair:
    volume = overrides.pop("volume", None)
    if isinstance(volume, dict):
        volume = WindowStats(**volume)
    price_change = overrides.pop("price_change", None)
    if isinstance(price_change, dict):
        price_change = WindowStats(**price_change)
    fields: Dict[str, Any] = {
        "pair_address": address,
        "chain_id": "base",
        "base_token": TokenRef(address=f"{address}-token", symbol=address.upper()),
        "quote_token": TokenRef(address=DEFAULT_WETH_ADDRESS, symbol="WETH"),
        "volume": volume or WindowStats(),
        "price_change": price_change or WindowStats(),
    }
    fields.update(overrides)
    return TradingPair(**fields)


@pytest.fixture
def make_pair():
    return _pair


class FakeSource:
    """Scripted stand-in for :class:`pairscan.sources.PairSource`.

    Each queued entry is either a list of pairs or an exception to raise.
    The last entry repeats once the queue is exhausted.
    """

    def __init__(self) -> None:
        self.queued: Dict[QuoteCategory, List[Any]] = {}
        self.calls: List[QuoteCategory] = []
        self.gate = None
        self.token_pairs: List[TradingPair] = []

    def queue(self, category: QuoteCategory, *results: Any) -> None:
        self.queued.setdefault(category, []).extend(results)

    async def fetch_candidates(self, category: QuoteCategory) -> List[TradingPair]:
        self.calls.append(category)
        if self.gate is not None:
            await self.gate.wait()
        results = self.queued.get(category) or [[]]
        result = results.pop(0) if len(results) > 1 else results[0]
        if isinstance(result, BaseException):
            raise result
        return list(result)

    async def fetch_token_pairs(self, address: str, category=None) -> List[TradingPair]:
        self.calls.append(("token", address, category))
        return list(self.token_pairs)


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()
