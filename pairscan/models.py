"""Typed records exchanged between the scanner pipeline stages."""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from .quotes import QuoteCategory


# ─────────────────────────────
# Parsing helpers
# ─────────────────────────────

def coerce_float(value: Any) -> float | None:
    """Parse *value* into a finite float, returning ``None`` when absent."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            numeric = float(text)
        except (TypeError, ValueError):
            return None
    elif isinstance(value, Mapping):
        for key in ("usd", "value", "amount"):
            if key in value:
                return coerce_float(value.get(key))
        return None
    else:
        return None
    if math.isnan(numeric) or math.isinf(numeric):
        return None
    return numeric


def coerce_int(value: Any) -> int | None:
    numeric = coerce_float(value)
    if numeric is None:
        return None
    return int(numeric)


def parse_timestamp(value: Any) -> float | None:
    """Return epoch seconds for *value*; millisecond inputs are scaled down."""

    ts = coerce_float(value)
    if ts is None or ts <= 0:
        return None
    if ts >= 1e12:
        ts /= 1000.0
    return ts


def _to_millis(ts: float | None) -> int | None:
    if ts is None:
        return None
    return int(round(ts * 1000))


# ─────────────────────────────
# Pair records
# ─────────────────────────────

WINDOWS: Tuple[str, ...] = ("m5", "h1", "h6", "h24")


@dataclass(frozen=True, slots=True)
class WindowStats:
    """A metric broken down by the 5m/1h/6h/24h windows."""

    m5: Optional[float] = None
    h1: Optional[float] = None
    h6: Optional[float] = None
    h24: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Any) -> "WindowStats":
        if not isinstance(data, Mapping):
            return cls()
        return cls(**{key: coerce_float(data.get(key)) for key in WINDOWS})

    def is_empty(self) -> bool:
        return all(getattr(self, key) is None for key in WINDOWS)

    def to_dict(self) -> Dict[str, float]:
        return {
            key: getattr(self, key)
            for key in WINDOWS
            if getattr(self, key) is not None
        }


@dataclass(frozen=True, slots=True)
class TradeCounts:
    buys: Optional[int] = None
    sells: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Any) -> "TradeCounts":
        if not isinstance(data, Mapping):
            return cls()
        return cls(buys=coerce_int(data.get("buys")), sells=coerce_int(data.get("sells")))

    def to_dict(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        if self.buys is not None:
            out["buys"] = self.buys
        if self.sells is not None:
            out["sells"] = self.sells
        return out


@dataclass(frozen=True, slots=True)
class TokenRef:
    address: str
    symbol: str
    name: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        out = {"address": self.address, "symbol": self.symbol}
        if self.name is not None:
            out["name"] = self.name
        if self.image_url is not None:
            out["imageUrl"] = self.image_url
        return out


@dataclass(frozen=True, slots=True)
class TradingPair:
    """One discovered liquidity pair.

    Optional metrics are ``None`` when the provider did not report them so
    that a missing value is never confused with a zero reading.  Instances are
    never mutated: each poll produces new objects and :meth:`with_updates`
    derives modified copies.
    """

    pair_address: str
    chain_id: str
    base_token: TokenRef
    quote_token: TokenRef
    url: str = ""
    dex_id: Optional[str] = None
    chart_symbol_type: str = "POOL"
    price_usd: Optional[float] = None
    liquidity_usd: Optional[float] = None
    volume: WindowStats = field(default_factory=WindowStats)
    price_change: WindowStats = field(default_factory=WindowStats)
    txn_count: WindowStats = field(default_factory=WindowStats)
    txns: Mapping[str, TradeCounts] = field(default_factory=dict)
    market_cap: Optional[float] = None
    fdv: Optional[float] = None
    holders: Optional[int] = None
    created_at: Optional[float] = None
    last_transaction_at: Optional[float] = None
    signal: bool = False
    volume_change_pct: Optional[float] = None

    @property
    def market_cap_value(self) -> Optional[float]:
        """Market capitalisation, falling back to fully-diluted valuation."""
        if self.market_cap is not None:
            return self.market_cap
        return self.fdv

    @property
    def volume_24h(self) -> Optional[float]:
        return self.volume.h24

    def with_updates(self, **changes: Any) -> "TradingPair":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "pairAddress": self.pair_address,
            "url": self.url,
            "chainId": self.chain_id,
            "chartSymbolType": self.chart_symbol_type,
            "baseToken": self.base_token.to_dict(),
            "quoteToken": self.quote_token.to_dict(),
            "signal": self.signal,
            "volumeChangeM5Pct": self.volume_change_pct,
        }
        optional = {
            "dexId": self.dex_id,
            "priceUsd": None if self.price_usd is None else str(self.price_usd),
            "liquidity": None if self.liquidity_usd is None else {"usd": self.liquidity_usd},
            "marketCap": self.market_cap,
            "fdv": self.fdv,
            "holders": self.holders,
            "pairCreatedAt": _to_millis(self.created_at),
            "lastTransactionAt": _to_millis(self.last_transaction_at),
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        for key, stats in (
            ("volume", self.volume),
            ("priceChange", self.price_change),
            ("txnCount", self.txn_count),
        ):
            if not stats.is_empty():
                payload[key] = stats.to_dict()
        if self.txns:
            payload["txns"] = {window: counts.to_dict() for window, counts in self.txns.items()}
        return payload


@dataclass(frozen=True, slots=True)
class VolumeSample:
    ts: float
    volume_m5: float


@dataclass(frozen=True, slots=True)
class ScannerAlert:
    pair_address: str
    base_symbol: str
    quote_symbol: str
    volume_change_pct: float
    volume_m5: float
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pairAddress": self.pair_address,
            "baseSymbol": self.base_symbol,
            "quoteSymbol": self.quote_symbol,
            "volumeChangeM5Pct": self.volume_change_pct,
            "volumeM5": self.volume_m5,
            "url": self.url,
        }


@dataclass(frozen=True, slots=True)
class ScannerSnapshot:
    """Composed scanner result for one category at one refresh."""

    quote: QuoteCategory
    pairs: Tuple[TradingPair, ...] = ()
    alerts: Tuple[ScannerAlert, ...] = ()
    fetched_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quote": self.quote.value,
            "pairs": [pair.to_dict() for pair in self.pairs],
            "alerts": [alert.to_dict() for alert in self.alerts],
            "fetchedAt": _to_millis(self.fetched_at),
        }


@dataclass(frozen=True, slots=True)
class ScanOptions:
    """View hints applied by the consuming boundary, never by the engine."""

    sort: Optional[str] = None
    window: Optional[str] = None
    signals_only: bool = False


__all__ = [
    "coerce_float",
    "coerce_int",
    "parse_timestamp",
    "WindowStats",
    "TradeCounts",
    "TokenRef",
    "TradingPair",
    "VolumeSample",
    "ScannerAlert",
    "ScannerSnapshot",
    "ScanOptions",
]
