from __future__ import annotations

import json
import logging
import os
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Tuple

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "aiohttp.access")

# Scanner context passed through ``extra=``; promoted to top-level JSON keys.
CONTEXT_FIELDS: Tuple[str, ...] = ("category", "status", "kept", "suppressed")

_LOG_RECORD_RESERVED = set(logging.LogRecord(None, 0, "", 0, "", (), None).__dict__.keys())


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Known scanner context (:data:`CONTEXT_FIELDS`) sits beside the message;
    any other ``extra`` values are grouped under ``"extra"``.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "ts": created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        extra: Dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _LOG_RECORD_RESERVED or key in ("message", "asctime"):
                continue
            if key in CONTEXT_FIELDS:
                if value is not None:
                    payload[key] = value
            else:
                extra[key] = value
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def _parse_log_level(value: Any) -> int:
    if not value:
        return logging.INFO
    if isinstance(value, int):
        return value
    level = str(value).strip().upper()
    if level.isdigit():
        return int(level)
    resolved = getattr(logging, level, None)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: Any = None,
    *,
    json_logs: bool | None = None,
    quiet: Iterable[str] = _NOISY_LOGGERS,
) -> logging.Handler:
    """Attach a single stdout handler to the root logger.

    ``level`` defaults to ``LOG_LEVEL`` and ``json_logs`` to ``LOG_JSON``.
    Calling this again reconfigures the same handler instead of stacking a
    second one.
    """

    if level is None:
        level = os.getenv("LOG_LEVEL")
    if json_logs is None:
        json_logs = str(os.getenv("LOG_JSON", "")).lower() in {"1", "true", "yes"}
    resolved = _parse_log_level(level)

    root = logging.getLogger()
    root.setLevel(resolved)

    sentinel_key = "_pairscan_stdout_handler"
    handler = getattr(root, sentinel_key, None)
    if not isinstance(handler, logging.StreamHandler) or handler not in root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        root.addHandler(handler)
        setattr(root, sentinel_key, handler)
    else:
        handler.setStream(sys.stdout)

    handler.setLevel(resolved)
    if json_logs:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, datefmt=DEFAULT_DATEFMT))

    for name in quiet:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))

    return handler


class WarningThrottle:
    """Per-key warning rate limit.

    Repeats inside the interval are counted; the next emitted warning for
    that key carries the count as ``suppressed``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._last_emit: Dict[str, float] = {}
        self._suppressed: Dict[str, int] = {}

    def warn(
        self,
        interval: float,
        key: str,
        message: str,
        *args: Any,
        logger: logging.Logger | None = None,
        extra: Dict[str, Any] | None = None,
    ) -> bool:
        now = self._clock()
        with self._lock:
            last = self._last_emit.get(key)
            if last is not None and interval > 0 and now - last < interval:
                self._suppressed[key] = self._suppressed.get(key, 0) + 1
                return False
            self._last_emit[key] = now
            suppressed = self._suppressed.pop(key, 0)

        context = dict(extra or {})
        if suppressed:
            context["suppressed"] = suppressed
        (logger or logging.getLogger()).warning(message, *args, extra=context or None)
        return True

    def reset(self) -> None:
        with self._lock:
            self._last_emit.clear()
            self._suppressed.clear()


_throttle = WarningThrottle()


def warn_once_per(
    minutes: float,
    key: str,
    message: str,
    *args: Any,
    logger: logging.Logger | None = None,
    extra: Dict[str, Any] | None = None,
) -> bool:
    """Emit *message* for *key* at most once per *minutes*; ``True`` if emitted."""

    return _throttle.warn(
        max(0.0, minutes) * 60.0,
        key,
        message,
        *args,
        logger=logger,
        extra=extra,
    )


def reset_warn_once_cache() -> None:
    _throttle.reset()


__all__ = [
    "CONTEXT_FIELDS",
    "JsonFormatter",
    "WarningThrottle",
    "configure_logging",
    "warn_once_per",
    "reset_warn_once_cache",
]
