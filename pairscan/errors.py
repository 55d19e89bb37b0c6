"""Exception hierarchy shared by the scanner, its providers and the API."""

from __future__ import annotations

from typing import Any


class ScannerError(RuntimeError):
    """Base class for errors surfaced by :mod:`pairscan`."""


class ConfigurationError(ScannerError):
    """Raised when a required credential or setting is missing or invalid."""


class UpstreamError(ScannerError):
    """Raised when an upstream provider fails or reports structured errors.

    ``category`` identifies the quote category whose refresh failed (``None``
    for lookups that are not tied to a category) and ``status`` carries the
    HTTP status when the failure was a non-success response.
    """

    def __init__(
        self,
        category: Any,
        message: str,
        *,
        status: int | None = None,
    ) -> None:
        self.category = category
        self.message = message
        self.status = status
        label = getattr(category, "value", category)
        prefix = f"[{label}] " if label else ""
        super().__init__(f"{prefix}{message}")


__all__ = ["ScannerError", "ConfigurationError", "UpstreamError"]
