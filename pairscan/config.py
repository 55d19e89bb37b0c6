from __future__ import annotations

import logging
import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ValidationError, field_validator

from .errors import ConfigurationError
from .quotes import DEFAULT_MODES, QuoteCategory, ScanMode

logger = logging.getLogger(__name__)

DEFAULT_DEXSCREENER_BASE_URL = "https://api.dexscreener.com"
DEFAULT_CODEX_GRAPHQL_URL = "https://graph.codex.io/graphql"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ScannerConfig(BaseModel):
    """Runtime configuration for a :class:`~pairscan.engine.ScannerEngine`."""

    cache_ttl: float = 3.0
    history_retention: float = 600.0
    delta_lookback: float = 300.0
    alert_cooldown: float = 300.0
    max_scan_results: int = 200
    max_results: int = 50
    min_volume_spike: float = 0.30
    max_market_cap: float = 100_000.0
    launch_max_age: float = 5 * 24 * 60 * 60.0
    launch_volume_spike: float = 0.20
    launch_max_market_cap: float = 40_000.0
    launch_price_spike: float = 0.30
    chain_id: str = "base"
    network_id: int = 8453
    dexscreener_base_url: str = DEFAULT_DEXSCREENER_BASE_URL
    codex_graphql_url: str = DEFAULT_CODEX_GRAPHQL_URL
    codex_api_key: Optional[str] = None
    codex_auth_bearer: bool = False
    modes: Dict[QuoteCategory, ScanMode] = dict(DEFAULT_MODES)

    @field_validator(
        "cache_ttl",
        "history_retention",
        "delta_lookback",
        "alert_cooldown",
        "launch_max_age",
    )
    @classmethod
    def _non_negative_seconds(cls, value: float) -> float:
        if value < 0:
            raise ValueError("durations must be non-negative")
        return value

    @field_validator("max_scan_results", "max_results")
    @classmethod
    def _positive_limit(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("limits must be positive")
        return value

    @field_validator("dexscreener_base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("chain_id")
    @classmethod
    def _chain_lower(cls, value: str) -> str:
        text = value.strip().lower()
        if not text:
            raise ValueError("chain_id must be non-empty")
        return text

    @field_validator("modes", mode="before")
    @classmethod
    def _parse_modes(cls, value: Any) -> Dict[QuoteCategory, ScanMode]:
        if value is None:
            return dict(DEFAULT_MODES)
        if not isinstance(value, Mapping):
            raise ValueError("modes must be a mapping of category to scan mode")
        resolved = dict(DEFAULT_MODES)
        for key, mode in value.items():
            resolved[QuoteCategory.parse(key)] = ScanMode.parse(mode)
        return resolved

    @classmethod
    def from_env(cls, cfg: Mapping[str, Any] | None = None) -> "ScannerConfig":
        """Create a config from environment variables and an optional dict.

        Environment variables win over *cfg* which wins over the defaults.
        Invalid values raise :class:`~pairscan.errors.ConfigurationError`.
        """

        cfg = dict(cfg or {})
        env = os.getenv
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            if name in ("modes", "codex_api_key", "codex_auth_bearer"):
                continue
            raw = env(f"SCANNER_{name.upper()}")
            if raw not in (None, ""):
                values[name] = raw
            elif name in cfg:
                values[name] = cfg[name]

        urls = {
            "dexscreener_base_url": env("DEXSCREENER_BASE_URL"),
            "codex_graphql_url": env("CODEX_GRAPHQL_URL"),
        }
        for key, raw in urls.items():
            if raw:
                values[key] = raw.strip()

        api_key = env("DEFINED_API_KEY") or env("CODEX_API_KEY") or cfg.get("codex_api_key")
        if api_key:
            values["codex_api_key"] = str(api_key).strip()

        bearer = env("CODEX_AUTH_BEARER")
        if bearer is not None:
            values["codex_auth_bearer"] = bearer.strip().lower() in _TRUE_VALUES
        elif "codex_auth_bearer" in cfg:
            values["codex_auth_bearer"] = cfg["codex_auth_bearer"]

        modes: Dict[str, Any] = dict(cfg.get("modes") or {})
        for category in QuoteCategory:
            raw = env(f"SCANNER_MODE_{category.value}")
            if raw:
                modes[category.value] = raw
        if modes:
            values["modes"] = modes

        try:
            config = cls(**values)
        except (ValidationError, ValueError) as exc:
            raise ConfigurationError(f"invalid scanner configuration: {exc}") from exc
        logger.debug(
            "Scanner config loaded: modes=%s ttl=%.1fs",
            {cat.value: mode.value for cat, mode in config.modes.items()},
            config.cache_ttl,
        )
        return config


__all__ = ["ScannerConfig", "DEFAULT_DEXSCREENER_BASE_URL", "DEFAULT_CODEX_GRAPHQL_URL"]
