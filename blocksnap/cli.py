"""Command-line interface for historical block and snapshot lookups."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
from typing import Any

from .config import AppConfig, load_config
from .formatting import query_result_to_dict
from .logging_setup import configure_logging
from .services import SnapshotService
from .services.snapshot_service import PERIODS


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="blocksnap",
        description="Find historical blocks and read lending snapshots at them",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    def add_target(p: argparse.ArgumentParser) -> None:
        group = p.add_mutually_exclusive_group(required=True)
        group.add_argument("--timestamp", type=int, help="Target unix timestamp")
        group.add_argument(
            "--period", choices=sorted(PERIODS), help="Look back from now"
        )

    locate = sub.add_parser("locate", help="Find the block closest to a time")
    locate.add_argument(
        "--chain", type=int, action="append", default=None,
        help="Chain id (repeatable; default: every configured chain)",
    )
    add_target(locate)

    markets = sub.add_parser("markets", help="Market snapshots at a time")
    markets.add_argument("--chain", type=int, default=None, help="Default chain id")
    markets.add_argument(
        "--market", action="append", required=True,
        help="Market id, optionally prefixed with a chain id: 8453:0x...",
    )
    add_target(markets)

    positions = sub.add_parser("positions", help="User positions at a time")
    positions.add_argument("--chain", type=int, default=None, help="Default chain id")
    positions.add_argument(
        "--market", action="append", required=True,
        help="Market id, optionally prefixed with a chain id: 8453:0x...",
    )
    positions.add_argument("--user", required=True, help="User address")
    add_target(positions)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind host (overrides config)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (overrides config)")

    return parser


def parse_markets(entries: list[str], default_chain: int | None) -> dict[int, list[str]]:
    """Group ``[chain:]market_id`` arguments by chain id."""
    grouped: dict[int, list[str]] = {}
    for entry in entries:
        chain_part, sep, market_id = entry.partition(":")
        if sep and not chain_part.lower().startswith("0x"):
            chain_id = int(chain_part)
        elif default_chain is not None:
            chain_id, market_id = default_chain, entry
        else:
            raise ValueError(f"Market {entry!r} has no chain; use --chain or CHAIN:ID")
        grouped.setdefault(chain_id, []).append(market_id)
    return grouped


def _target(args: argparse.Namespace) -> int:
    if args.timestamp is not None:
        return args.timestamp
    return int(time.time()) - PERIODS[args.period]


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def _serve(config: AppConfig, args: argparse.Namespace) -> None:
    from aiohttp import web

    from .api import create_app

    app = create_app(SnapshotService(config))
    web.run_app(
        app,
        host=args.host or config.api.host,
        port=args.port or config.api.port,
    )


async def _run(args: argparse.Namespace, config: AppConfig) -> None:
    """Execute the selected command."""
    service = SnapshotService(config)

    if args.command == "locate":
        chains = args.chain or service.chain_ids
        result = await service.locate_blocks(_target(args), chains)
    elif args.command == "markets":
        result = await service.market_snapshots(
            _target(args), parse_markets(args.market, args.chain)
        )
    elif args.command == "positions":
        result = await service.position_snapshots(
            _target(args), args.user, parse_markets(args.market, args.chain)
        )
    else:
        build_parser().print_help()
        sys.exit(1)

    _print(query_result_to_dict(result))


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.log_level)
    config = load_config(args.config)

    if args.command == "serve":
        _serve(config, args)
        return

    try:
        asyncio.run(_run(args, config))
    except ValueError as e:
        parser.error(str(e))
