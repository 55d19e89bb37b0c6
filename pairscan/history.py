"""Rolling five-minute volume history and volume-change deltas."""

from __future__ import annotations

from collections import defaultdict
from typing import Callable, Dict, List, Optional

from .models import TradingPair, VolumeSample

FIVE_MINUTES = 5 * 60.0
HISTORY_RETENTION = 10 * 60.0

DeltaPolicy = Callable[[TradingPair], Optional[float]]


class VolumeHistory:
    """Append-only per-address log of ``(ts, volume_m5)`` samples.

    Samples older than ``retention`` seconds are dropped on every write.
    Records are keyed by pair address only and outlive the pair's presence in
    any result store.
    """

    def __init__(
        self,
        *,
        retention: float = HISTORY_RETENTION,
        lookback: float = FIVE_MINUTES,
    ) -> None:
        self.retention = float(retention)
        self.lookback = float(lookback)
        self._samples: Dict[str, List[VolumeSample]] = defaultdict(list)

    def record(self, pair_address: str, volume_m5: float, now: float) -> None:
        samples = self._samples[pair_address]
        if samples and now < samples[-1].ts:
            # keep timestamps non-decreasing even if the clock steps back
            now = samples[-1].ts
        samples.append(VolumeSample(ts=now, volume_m5=float(volume_m5)))
        cutoff = now - self.retention
        drop = 0
        while drop < len(samples) and samples[drop].ts < cutoff:
            drop += 1
        if drop:
            del samples[:drop]

    def samples(self, pair_address: str) -> List[VolumeSample]:
        return list(self._samples.get(pair_address, ()))

    def lookup_delta(self, pair_address: str, now: float) -> float | None:
        samples = self._samples.get(pair_address)
        if not samples or len(samples) < 2:
            return None
        target = now - self.lookback
        previous = next(
            (sample for sample in reversed(samples) if sample.ts <= target),
            None,
        )
        if previous is None or previous.volume_m5 <= 0:
            return None
        latest = samples[-1].volume_m5
        return (latest - previous.volume_m5) / previous.volume_m5

    def __len__(self) -> int:
        return len(self._samples)


def approx_delta(pair: TradingPair) -> float | None:
    """Approximate the 5m volume change from the 1h aggregate.

    Assumes the hour's volume is spread evenly over twelve 5-minute buckets,
    so the result is a heuristic rather than a measurement.
    """

    m5 = pair.volume.m5
    h1 = pair.volume.h1
    if m5 is None or h1 is None or h1 <= 0:
        return None
    avg5 = h1 / 12.0
    if avg5 <= 0:
        return None
    return (m5 - avg5) / avg5


def compute_delta(
    pair: TradingPair,
    history: VolumeHistory,
    now: float,
    *,
    fallback: DeltaPolicy = approx_delta,
) -> float | None:
    """Return the precise history delta when available, else *fallback*."""

    delta = history.lookup_delta(pair.pair_address, now)
    if delta is not None:
        return delta
    return fallback(pair)


__all__ = [
    "FIVE_MINUTES",
    "HISTORY_RETENTION",
    "DeltaPolicy",
    "VolumeHistory",
    "approx_delta",
    "compute_delta",
]
