import json
import logging

from pairscan.logging_utils import JsonFormatter, WarningThrottle, configure_logging, warn_once_per


def test_warn_once_per_suppresses_repeats(caplog):
    logger = logging.getLogger("pairscan.test")
    with caplog.at_level(logging.WARNING, logger="pairscan.test"):
        assert warn_once_per(1, "key", "first %s", "x", logger=logger)
        assert not warn_once_per(1, "key", "second", logger=logger)
        assert warn_once_per(1, "other", "third", logger=logger)
    assert [record.getMessage() for record in caplog.records] == ["first x", "third"]


def test_zero_interval_always_emits(caplog):
    logger = logging.getLogger("pairscan.test")
    with caplog.at_level(logging.WARNING, logger="pairscan.test"):
        assert warn_once_per(0, "key", "a", logger=logger)
        assert warn_once_per(0, "key", "b", logger=logger)
    assert len(caplog.records) == 2


def test_json_formatter_includes_extras():
    record = logging.LogRecord("pairscan.engine", logging.INFO, __file__, 10, "hello %s", ("x",), None)
    record.category = "ZORA"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["msg"] == "hello x"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "pairscan.engine"
    assert payload["category"] == "ZORA"
    assert payload["ts"].endswith("Z")


def test_configure_logging_is_idempotent(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    root = logging.getLogger()
    previous = root.level
    try:
        first = configure_logging()
        second = configure_logging(json_logs=True)
        assert first is second
        assert root.handlers.count(first) == 1
        assert root.level == logging.DEBUG
        assert isinstance(first.formatter, JsonFormatter)
    finally:
        root.setLevel(previous)


def test_throttle_reports_suppressed_repeats(caplog):
    now = [0.0]
    throttle = WarningThrottle(clock=lambda: now[0])
    logger = logging.getLogger("pairscan.test")
    with caplog.at_level(logging.WARNING, logger="pairscan.test"):
        assert throttle.warn(60, "ZORA", "refresh failed", logger=logger, extra={"category": "ZORA"})
        assert not throttle.warn(60, "ZORA", "refresh failed", logger=logger)
        assert not throttle.warn(60, "ZORA", "refresh failed", logger=logger)
        now[0] = 61.0
        assert throttle.warn(60, "ZORA", "refresh failed", logger=logger, extra={"category": "ZORA"})
    first, second = caplog.records
    assert first.category == "ZORA"
    assert not hasattr(first, "suppressed")
    assert second.suppressed == 2


def test_json_formatter_groups_unknown_extras():
    record = logging.LogRecord("pairscan.api", logging.ERROR, __file__, 1, "failed", (), None)
    record.status = 502
    record.path = "/api/defined/scan"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["status"] == 502
    assert payload["extra"] == {"path": "/api/defined/scan"}
