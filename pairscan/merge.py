"""Merge successive polls into a bounded, order-stable result set."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Tuple

from .models import TradingPair
from .quotes import QuoteCategory

logger = logging.getLogger(__name__)

MAX_RESULTS = 50


def sort_key(pair: TradingPair) -> Tuple[bool, float, float]:
    """Signal first, then newest, then busiest; unknowns sort as oldest/idle."""
    return (
        bool(pair.signal),
        pair.created_at if pair.created_at is not None else 0.0,
        pair.volume_24h if pair.volume_24h is not None else 0.0,
    )


def merge_pairs(
    existing: Mapping[str, TradingPair],
    fresh: Iterable[TradingPair],
    *,
    limit: int = MAX_RESULTS,
) -> List[TradingPair]:
    """Return the merged, sorted and trimmed view of *existing* plus *fresh*.

    Pure function: neither argument is modified.  A fresh pair replaces the
    stored one with the same address, inheriting ``signal=True`` when the
    stored entry already had it.
    """

    store: Dict[str, TradingPair] = dict(existing)
    for pair in fresh:
        previous = store.get(pair.pair_address)
        if previous is not None and previous.signal and not pair.signal:
            pair = pair.with_updates(signal=True)
        store[pair.pair_address] = pair

    merged = sorted(store.values(), key=sort_key, reverse=True)
    return merged[: max(0, int(limit))]


class PairStore:
    """Persistent per-category pair stores owned by one engine."""

    def __init__(self, *, limit: int = MAX_RESULTS) -> None:
        self.limit = limit
        self._stores: Dict[QuoteCategory, Dict[str, TradingPair]] = {}

    def get(self, category: QuoteCategory) -> Dict[str, TradingPair]:
        return dict(self._stores.get(category, {}))

    def merge(
        self,
        category: QuoteCategory,
        fresh: Iterable[TradingPair],
    ) -> List[TradingPair]:
        current = self._stores.get(category, {})
        merged = merge_pairs(current, fresh, limit=self.limit)
        kept = {pair.pair_address: pair for pair in merged}
        evicted = len(current.keys() - kept.keys())
        if evicted:
            logger.debug("Evicted %d pairs from %s store", evicted, category.value)
        self._stores[category] = kept
        return merged


__all__ = ["MAX_RESULTS", "sort_key", "merge_pairs", "PairStore"]
