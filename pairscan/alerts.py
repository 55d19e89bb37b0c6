from __future__ import annotations

import logging
from typing import Dict

from .models import ScannerAlert, TradingPair

logger = logging.getLogger(__name__)

ALERT_COOLDOWN = 5 * 60.0
MIN_ALERT_DELTA = 0.30


def pair_url(pair: TradingPair) -> str:
    """Canonical chart URL, derived from chain and address when missing."""
    if pair.url:
        return pair.url
    return f"https://dexscreener.com/{pair.chain_id}/{pair.pair_address}"


class AlertEmitter:
    """Emit at most one volume-spike alert per pair per cooldown window.

    The caller is responsible for the market-cap eligibility check; this
    class only knows about the delta threshold and the cooldown.
    """

    def __init__(
        self,
        *,
        cooldown: float = ALERT_COOLDOWN,
        min_delta: float = MIN_ALERT_DELTA,
    ) -> None:
        self.cooldown = float(cooldown)
        self.min_delta = float(min_delta)
        self._last_alert: Dict[str, float] = {}

    def last_alert(self, pair_address: str) -> float | None:
        return self._last_alert.get(pair_address)

    def maybe_alert(
        self,
        pair: TradingPair,
        now: float,
        delta: float | None,
    ) -> ScannerAlert | None:
        if delta is None or delta < self.min_delta:
            return None
        last = self._last_alert.get(pair.pair_address)
        if last is not None and now - last < self.cooldown:
            return None
        self._last_alert[pair.pair_address] = now
        alert = ScannerAlert(
            pair_address=pair.pair_address,
            base_symbol=pair.base_token.symbol,
            quote_symbol=pair.quote_token.symbol,
            volume_change_pct=delta,
            volume_m5=pair.volume.m5 or 0.0,
            url=pair_url(pair),
        )
        logger.info(
            "Volume spike %s/%s %+.0f%% (%s)",
            alert.base_symbol,
            alert.quote_symbol,
            delta * 100,
            alert.pair_address,
        )
        return alert


__all__ = ["ALERT_COOLDOWN", "MIN_ALERT_DELTA", "AlertEmitter", "pair_url"]
