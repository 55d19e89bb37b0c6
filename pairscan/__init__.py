"""Base-chain liquidity pair scanner."""

from .config import ScannerConfig
from .engine import ScannerEngine
from .errors import ConfigurationError, ScannerError, UpstreamError
from .merge import merge_pairs
from .models import ScannerAlert, ScannerSnapshot, ScanOptions, TradingPair
from .quotes import QuoteCategory, ScanMode

__all__ = [
    "ScannerConfig",
    "ScannerEngine",
    "ScannerError",
    "ConfigurationError",
    "UpstreamError",
    "merge_pairs",
    "ScannerAlert",
    "ScannerSnapshot",
    "ScanOptions",
    "TradingPair",
    "QuoteCategory",
    "ScanMode",
]
