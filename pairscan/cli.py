"""Command line interface for the pair scanner."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from argparse import ArgumentParser, Namespace
from typing import Sequence

from .config import ScannerConfig
from .engine import ScannerEngine
from .errors import ConfigurationError, ScannerError
from .http import close_session
from .logging_utils import configure_logging
from .models import ScannerSnapshot, ScanOptions
from .quotes import QuoteCategory
from .views import apply_options, normalize_sort, normalize_window

logger = logging.getLogger(__name__)

EXIT_UPSTREAM = 1
EXIT_CONFIG = 2


def _format_pct(value: float | None) -> str:
    return "-" if value is None else f"{value * 100:+.1f}%"


def _format_usd(value: float | None) -> str:
    return "-" if value is None else f"${value:,.0f}"


def render_snapshot(snapshot: ScannerSnapshot, *, as_json: bool = False) -> str:
    if as_json:
        return json.dumps(snapshot.to_dict(), sort_keys=True)
    lines = [f"{snapshot.quote.value}: {len(snapshot.pairs)} pairs, {len(snapshot.alerts)} alerts"]
    for pair in snapshot.pairs:
        marker = "*" if pair.signal else " "
        lines.append(
            f"{marker} {pair.base_token.symbol}/{pair.quote_token.symbol:<6} "
            f"{pair.pair_address}  mcap {_format_usd(pair.market_cap_value)}  "
            f"vol5m {_format_pct(pair.volume_change_pct)}"
        )
    for alert in snapshot.alerts:
        lines.append(
            f"! {alert.base_symbol}/{alert.quote_symbol} volume "
            f"{_format_pct(alert.volume_change_pct)} {alert.url}"
        )
    return "\n".join(lines)


def _options(args: Namespace) -> ScanOptions:
    return ScanOptions(
        sort=normalize_sort(args.sort),
        window=normalize_window(args.window),
        signals_only=args.signals_only,
    )


async def _scan(engine: ScannerEngine, args: Namespace) -> int:
    options = _options(args)
    snapshot = await engine.get_scanner_data(args.quote, options)
    print(render_snapshot(apply_options(snapshot, options), as_json=args.json))
    return 0


async def _watch(engine: ScannerEngine, args: Namespace) -> int:
    """Poll one category on a single timer; failures are logged, not fatal."""

    options = _options(args)
    done = 0
    while args.iterations <= 0 or done < args.iterations:
        try:
            snapshot = await engine.get_scanner_data(args.quote, options)
        except ConfigurationError:
            raise
        except ScannerError as exc:
            logger.warning("Scan of %s failed: %s", args.quote.value, exc)
        else:
            print(render_snapshot(apply_options(snapshot, options), as_json=args.json), flush=True)
        done += 1
        if args.iterations <= 0 or done < args.iterations:
            await asyncio.sleep(args.interval)
    return 0


async def _run(coro_factory, engine: ScannerEngine, args: Namespace) -> int:
    try:
        return await coro_factory(engine, args)
    finally:
        await close_session()


def _serve(engine: ScannerEngine, args: Namespace) -> int:
    from aiohttp import web

    from .api import create_app

    web.run_app(create_app(engine), host=args.host, port=args.port, print=None)
    return 0


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="pairscan", description="Scan Base liquidity pairs for volume signals")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument("--json-logs", action="store_true", default=None, help="Emit JSON log lines")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def _add_view_args(sub: ArgumentParser) -> None:
        sub.add_argument("--quote", type=QuoteCategory.parse, default=QuoteCategory.CLANKER)
        sub.add_argument("--signals-only", action="store_true")
        sub.add_argument("--sort", default=None, help="last_transaction")
        sub.add_argument("--window", default=None, help="day1")
        sub.add_argument("--json", action="store_true", help="Print snapshots as JSON")

    scan_p = subparsers.add_parser("scan", help="Fetch one snapshot and print it")
    _add_view_args(scan_p)

    watch_p = subparsers.add_parser("watch", help="Poll a category on a fixed interval")
    _add_view_args(watch_p)
    watch_p.add_argument("--interval", type=float, default=5.0)
    watch_p.add_argument("--iterations", type=int, default=0, help="Stop after N polls (0 = forever)")

    serve_p = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_p.add_argument("--host", default="127.0.0.1")
    serve_p.add_argument("--port", type=int, default=8080)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(args.log_level, json_logs=args.json_logs)

    try:
        engine = ScannerEngine(ScannerConfig.from_env())
        if args.command == "serve":
            return _serve(engine, args)
        handler = _scan if args.command == "scan" else _watch
        return asyncio.run(_run(handler, engine, args))
    except ConfigurationError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except ScannerError as exc:
        print(f"upstream error: {exc}", file=sys.stderr)
        return EXIT_UPSTREAM
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
