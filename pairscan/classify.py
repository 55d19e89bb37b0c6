"""Per-category signal heuristics.

Verdicts are computed fresh on every poll.  Keeping a signal once it has been
seen is the merger's job, see :mod:`pairscan.merge`.
"""

from __future__ import annotations

import logging
from typing import List

from .config import ScannerConfig
from .models import TradingPair
from .quotes import ScanMode

logger = logging.getLogger(__name__)


def market_cap_eligible(pair: TradingPair, ceiling: float) -> bool:
    value = pair.market_cap_value
    return value is not None and value <= ceiling


def is_volume_spike(
    pair: TradingPair,
    delta: float | None,
    config: ScannerConfig,
) -> bool:
    """Spike rule for search categories: large delta on a small market cap."""

    if delta is None or delta < config.min_volume_spike:
        return False
    return market_cap_eligible(pair, config.max_market_cap)


def is_launch_signal(pair: TradingPair, now: float, config: ScannerConfig) -> bool:
    created = pair.created_at
    age_eligible = created is None or now - created <= config.launch_max_age
    if not age_eligible:
        return False

    change = pair.volume_change_pct
    volume_spike = change is not None and change >= config.launch_volume_spike

    market_cap = pair.market_cap
    price_change = pair.price_change.m5
    market_cap_spike = (
        market_cap is not None
        and market_cap <= config.launch_max_market_cap
        and price_change is not None
        and price_change >= config.launch_price_spike
    )
    return volume_spike or market_cap_spike


def classify_batch(
    mode: ScanMode,
    pairs: List[TradingPair],
    now: float,
    config: ScannerConfig,
) -> List[TradingPair]:
    """Return the current batch for *mode* with this poll's verdicts applied.

    Search categories are handled inline by the engine because they need the
    history delta; this covers the listing and disabled modes.
    """

    if mode is ScanMode.DISABLED:
        return []
    if mode is ScanMode.PASSTHROUGH:
        return list(pairs)
    if mode is ScanMode.LAUNCH_VELOCITY:
        batch = [pair.with_updates(signal=is_launch_signal(pair, now, config)) for pair in pairs]
        logger.debug(
            "Launch classifier flagged %d/%d pairs",
            sum(1 for pair in batch if pair.signal),
            len(batch),
        )
        return batch
    raise ValueError(f"classify_batch does not handle {mode.value!r}")


__all__ = [
    "market_cap_eligible",
    "is_volume_spike",
    "is_launch_signal",
    "classify_batch",
]
