"""Presentation-side filters for scanner snapshots.

The engine never applies :class:`~pairscan.models.ScanOptions`; boundary
layers (the HTTP API and the CLI) call :func:`apply_options` on the snapshot
they received.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, List

from .models import ScannerSnapshot, ScanOptions, TradingPair

SORT_LAST_TRANSACTION = "last_transaction"
WINDOW_DAY1 = "day1"
DAY = 24 * 60 * 60.0

_SORT_ALIASES = {
    "lasttransaction": SORT_LAST_TRANSACTION,
    "last_transaction": SORT_LAST_TRANSACTION,
    "last-transaction": SORT_LAST_TRANSACTION,
}


def normalize_sort(value: Any) -> str | None:
    if value is None:
        return None
    return _SORT_ALIASES.get(str(value).strip().lower())


def normalize_window(value: Any) -> str | None:
    if value is None:
        return None
    return WINDOW_DAY1 if str(value).strip().lower() == WINDOW_DAY1 else None


def _within_window(pair: TradingPair, now: float, span: float) -> bool:
    if pair.created_at is None:
        return True
    return now - pair.created_at <= span


def _by_last_transaction(pairs: List[TradingPair]) -> List[TradingPair]:
    known = [pair for pair in pairs if pair.last_transaction_at is not None]
    unknown = [pair for pair in pairs if pair.last_transaction_at is None]
    known.sort(key=lambda pair: pair.last_transaction_at, reverse=True)
    return known + unknown


def apply_options(
    snapshot: ScannerSnapshot,
    options: ScanOptions | None,
    *,
    now: float | None = None,
) -> ScannerSnapshot:
    """Return a copy of *snapshot* filtered and ordered per *options*.

    ``now`` defaults to the snapshot's ``fetched_at`` so the day window is
    measured against the refresh that produced the data.
    """

    if options is None:
        return snapshot
    pairs = list(snapshot.pairs)
    if options.signals_only:
        pairs = [pair for pair in pairs if pair.signal]
    if normalize_window(options.window) == WINDOW_DAY1:
        reference = snapshot.fetched_at if now is None else now
        pairs = [pair for pair in pairs if _within_window(pair, reference, DAY)]
    if normalize_sort(options.sort) == SORT_LAST_TRANSACTION:
        pairs = _by_last_transaction(pairs)
    return replace(snapshot, pairs=tuple(pairs))


__all__ = [
    "SORT_LAST_TRANSACTION",
    "WINDOW_DAY1",
    "apply_options",
    "normalize_sort",
    "normalize_window",
]
