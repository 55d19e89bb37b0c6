from .codex import CodexClient, CodexQueryError
from .dexscreener import DexscreenerClient

__all__ = ["CodexClient", "CodexQueryError", "DexscreenerClient"]
