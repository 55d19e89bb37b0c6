"""Scanner engine: snapshot cache in front of the refresh pipeline.

One :class:`ScannerEngine` owns every piece of mutable scanner state (pair
stores, volume history, alert cooldowns and cached snapshots).  Separate
engines never share state, which keeps tests independent of each other.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Mapping, Tuple

from cachetools import TTLCache

from .alerts import AlertEmitter
from .classify import classify_batch, is_volume_spike, market_cap_eligible
from .config import ScannerConfig
from .errors import ScannerError
from .history import DeltaPolicy, VolumeHistory, approx_delta, compute_delta
from .logging_utils import warn_once_per
from .merge import PairStore
from .models import ScannerAlert, ScannerSnapshot, ScanOptions, TradingPair
from .quotes import QuoteCategory, QuoteProfile, ScanMode, build_registry
from .sources import PairSource

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class ScannerEngine:
    def __init__(
        self,
        config: ScannerConfig | None = None,
        *,
        source: PairSource | None = None,
        registry: Mapping[QuoteCategory, QuoteProfile] | None = None,
        clock: Clock = time.time,
        delta_policy: DeltaPolicy = approx_delta,
    ) -> None:
        self.config = config or ScannerConfig()
        self.registry = dict(registry or build_registry(self.config.modes))
        self.source = source or PairSource(self.config, registry=self.registry)
        self.clock = clock
        self.delta_policy = delta_policy
        self.history = VolumeHistory(
            retention=self.config.history_retention,
            lookback=self.config.delta_lookback,
        )
        self.store = PairStore(limit=self.config.max_results)
        self.alerts = AlertEmitter(
            cooldown=self.config.alert_cooldown,
            min_delta=self.config.min_volume_spike,
        )
        self._cache: TTLCache = TTLCache(
            maxsize=len(QuoteCategory),
            ttl=self.config.cache_ttl,
            timer=clock,
        )
        self._last: Dict[QuoteCategory, ScannerSnapshot] = {}
        self._inflight: Dict[QuoteCategory, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_snapshot(self, category: QuoteCategory) -> ScannerSnapshot:
        """Return the cached snapshot for *category*, refreshing when stale.

        Concurrent callers for the same category share one refresh and all
        observe its result or its exception.  A failed refresh leaves the
        previously cached snapshot untouched.
        """

        profile = self.registry[category]
        if profile.mode is ScanMode.DISABLED:
            return self._disabled_snapshot(category)

        cached = self._cache.get(category)
        if cached is not None:
            return cached

        task = self._inflight.get(category)
        if task is None:
            task = asyncio.ensure_future(self._refresh(profile))
            self._inflight[category] = task
            task.add_done_callback(lambda done, key=category: self._clear_inflight(key, done))
        return await asyncio.shield(task)

    async def get_scanner_data(
        self,
        category: QuoteCategory | str,
        options: ScanOptions | None = None,
    ) -> ScannerSnapshot:
        """Entry point for consumers.

        *options* are accepted for interface compatibility; they are applied
        by the boundary layer through :func:`pairscan.views.apply_options`.
        """

        if not isinstance(category, QuoteCategory):
            category = QuoteCategory.parse(category)
        if options is not None:
            logger.debug("Scan options for %s deferred to caller: %s", category.value, options)
        return await self.get_snapshot(category)

    async def fetch_token_pairs(
        self,
        address: str,
        category: QuoteCategory | None = None,
    ) -> List[TradingPair]:
        return await self.source.fetch_token_pairs(address, category)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _clear_inflight(self, category: QuoteCategory, task: asyncio.Task) -> None:
        if self._inflight.get(category) is task:
            del self._inflight[category]
        # every waiter may have been cancelled; mark the failure as retrieved
        if not task.cancelled():
            task.exception()

    def _disabled_snapshot(self, category: QuoteCategory) -> ScannerSnapshot:
        snapshot = self._last.get(category)
        if snapshot is None:
            snapshot = ScannerSnapshot(quote=category, fetched_at=self.clock())
            self._last[category] = snapshot
        return snapshot

    async def _refresh(self, profile: QuoteProfile) -> ScannerSnapshot:
        category = profile.category
        now = self.clock()
        try:
            candidates = await self.source.fetch_candidates(category)
        except ScannerError as exc:
            warn_once_per(
                1.0,
                f"pairscan.refresh.{category.value}",
                "Scanner refresh for %s failed: %s",
                category.value,
                exc,
                logger=logger,
                extra={"category": category.value, "status": getattr(exc, "status", None)},
            )
            raise

        if profile.mode is ScanMode.SEARCH:
            batch, alerts = self._scan_search(candidates, now)
        else:
            batch = classify_batch(profile.mode, self._with_history(candidates, now), now, self.config)
            alerts = []

        pairs = self.store.merge(category, batch)
        snapshot = ScannerSnapshot(
            quote=category,
            pairs=tuple(pairs),
            alerts=tuple(alerts),
            fetched_at=now,
        )
        self._cache[category] = snapshot
        self._last[category] = snapshot
        logger.debug(
            "Refreshed %s: %d candidates, %d kept, %d alerts",
            category.value,
            len(candidates),
            len(pairs),
            len(alerts),
            extra={"category": category.value, "kept": len(pairs)},
        )
        return snapshot

    def _record(self, pair: TradingPair, now: float) -> float | None:
        self.history.record(pair.pair_address, pair.volume.m5 or 0.0, now)
        return compute_delta(pair, self.history, now, fallback=self.delta_policy)

    def _with_history(self, candidates: List[TradingPair], now: float) -> List[TradingPair]:
        """Record samples for listing pairs; provider deltas win over ours."""

        pairs = []
        for pair in candidates:
            delta = self._record(pair, now)
            if pair.volume_change_pct is None and delta is not None:
                pair = pair.with_updates(volume_change_pct=delta)
            pairs.append(pair)
        return pairs

    def _scan_search(
        self,
        candidates: List[TradingPair],
        now: float,
    ) -> Tuple[List[TradingPair], List[ScannerAlert]]:
        batch: List[TradingPair] = []
        alerts: List[ScannerAlert] = []
        for pair in candidates:
            delta = self._record(pair, now)
            pair = pair.with_updates(volume_change_pct=delta)
            if is_volume_spike(pair, delta, self.config):
                batch.append(pair.with_updates(signal=True))
            if market_cap_eligible(pair, self.config.max_market_cap):
                alert = self.alerts.maybe_alert(pair, now, delta)
                if alert is not None:
                    alerts.append(alert)
        return batch, alerts


__all__ = ["ScannerEngine", "Clock"]
