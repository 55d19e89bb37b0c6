"""Quote categories and the registry describing how each one is scanned."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Tuple

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
DEFAULT_WETH_ADDRESS = "0x4200000000000000000000000000000000000006"
DEFAULT_USDC_ADDRESS = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"


class QuoteCategory(str, Enum):
    CLANKER = "CLANKER"
    ZORA = "ZORA"
    PRINTR = "PRINTR"

    @classmethod
    def parse(cls, value: Any) -> "QuoteCategory":
        """Return the category named by *value* (case-insensitive)."""

        if isinstance(value, cls):
            return value
        text = str(value or "").strip().upper()
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"unknown quote category: {value!r}") from None


class ScanMode(str, Enum):
    """Retrieval strategy and classifier pairing for a category."""

    SEARCH = "search"
    LAUNCH_VELOCITY = "launch_velocity"
    PASSTHROUGH = "passthrough"
    DISABLED = "disabled"

    @classmethod
    def parse(cls, value: Any) -> "ScanMode":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower().replace("-", "_")
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"unknown scan mode: {value!r}") from None

    @property
    def uses_listing(self) -> bool:
        return self in (ScanMode.LAUNCH_VELOCITY, ScanMode.PASSTHROUGH)


@dataclass(frozen=True, slots=True)
class QuoteAsset:
    address: str
    symbol: str


@dataclass(frozen=True, slots=True)
class QuoteProfile:
    """Everything the pipeline needs to know about one category."""

    category: QuoteCategory
    quote: QuoteAsset
    mode: ScanMode
    launchpads: Tuple[str, ...]
    listing_symbol: str


DEFAULT_MODES: Dict[QuoteCategory, ScanMode] = {
    QuoteCategory.CLANKER: ScanMode.LAUNCH_VELOCITY,
    QuoteCategory.ZORA: ScanMode.PASSTHROUGH,
    QuoteCategory.PRINTR: ScanMode.DISABLED,
}

LAUNCHPADS: Dict[QuoteCategory, Tuple[str, ...]] = {
    QuoteCategory.CLANKER: ("Clanker V4",),
    QuoteCategory.ZORA: ("Zora",),
    QuoteCategory.PRINTR: ("Printr",),
}

# Quote symbol attached to pairs coming from the token-listing provider.
LISTING_SYMBOLS: Dict[QuoteCategory, str] = {
    QuoteCategory.CLANKER: "USD",
    QuoteCategory.ZORA: "ZORA",
    QuoteCategory.PRINTR: "USD",
}


def quote_tokens() -> Dict[QuoteCategory, QuoteAsset]:
    """Return the quote asset of every category, honouring env overrides."""

    weth = (os.getenv("CLANKER_QUOTE_ADDRESS") or DEFAULT_WETH_ADDRESS).strip()
    usdc = (os.getenv("ZORA_QUOTE_ADDRESS") or DEFAULT_USDC_ADDRESS).strip()
    return {
        QuoteCategory.CLANKER: QuoteAsset(address=weth, symbol="WETH"),
        QuoteCategory.ZORA: QuoteAsset(address=usdc, symbol="USDC"),
        QuoteCategory.PRINTR: QuoteAsset(address=usdc, symbol="USDC"),
    }


def build_registry(
    modes: Mapping[QuoteCategory, ScanMode] | None = None,
) -> Dict[QuoteCategory, QuoteProfile]:
    """Build the immutable category registry used by a scanner engine."""

    resolved = dict(DEFAULT_MODES)
    if modes:
        resolved.update(modes)
    tokens = quote_tokens()
    return {
        category: QuoteProfile(
            category=category,
            quote=tokens[category],
            mode=resolved[category],
            launchpads=LAUNCHPADS[category],
            listing_symbol=LISTING_SYMBOLS[category],
        )
        for category in QuoteCategory
    }


def normalize_address(address: str | None) -> str:
    return (address or "").strip().lower()


__all__ = [
    "ZERO_ADDRESS",
    "QuoteCategory",
    "ScanMode",
    "QuoteAsset",
    "QuoteProfile",
    "DEFAULT_MODES",
    "quote_tokens",
    "build_registry",
    "normalize_address",
]
