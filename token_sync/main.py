#!/usr/bin/env python3
"""
Token Sync - console demo of the live token table.

Usage:
    python -m token_sync.main --tokens 60 --interval-ms 500 --sort price

Runs the simulated feed, and re-renders the top of the derived view with
rich on every store change. Ctrl+C to quit.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import queue
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from .types import StoreSnapshot

UP_COLOR = "#22c55e"      # Green
DOWN_COLOR = "#ef4444"    # Red
HEADER_COLOR = "#94a3b8"
STATUS_COLORS = {
    "new": "#3b82f6",
    "final-stretch": "#f97316",
    "migrated": "#22c55e",
}


def format_usd(value: float) -> str:
    """Compact dollar amount for display."""
    if value >= 1_000_000_000:
        return f"${value/1_000_000_000:.2f}B"
    elif value >= 1_000_000:
        return f"${value/1_000_000:.2f}M"
    elif value >= 1_000:
        return f"${value/1_000:.1f}K"
    return f"${value:.2f}"


def format_price(price: float) -> str:
    if price >= 1:
        return f"${price:,.2f}"
    return f"${price:.6f}"


def render_snapshot(snapshot: StoreSnapshot, top: int) -> Table:
    """Render the first `top` rows of the derived view."""
    sort = snapshot.sort_config
    flt = snapshot.filter_config
    title = (
        f"{len(snapshot.derived)}/{len(snapshot.tokens)} tokens  "
        f"status={flt.status} search={flt.search!r}  "
        f"sort={sort.key} {sort.direction}  v{snapshot.version}"
    )
    if snapshot.error:
        title += f"  ERROR: {snapshot.error}"

    table = Table(title=title, header_style=HEADER_COLOR, box=None, padding=(0, 1))
    table.add_column("Token", justify="left", width=22)
    table.add_column("Status", justify="left", width=13)
    table.add_column("Price", justify="right", width=14)
    table.add_column("24h", justify="right", width=8)
    table.add_column("Volume", justify="right", width=10)
    table.add_column("MCap", justify="right", width=10)
    table.add_column("Holders", justify="right", width=8)

    for token in snapshot.derived[:top]:
        if token.price_direction == "up":
            price_style = UP_COLOR
        elif token.price_direction == "down":
            price_style = DOWN_COLOR
        else:
            price_style = ""
        change_style = UP_COLOR if token.price_change_24h >= 0 else DOWN_COLOR

        table.add_row(
            Text(f"{token.name} ({token.symbol})"),
            Text(token.status, style=STATUS_COLORS.get(token.status, "")),
            Text(format_price(token.price), style=price_style),
            Text(f"{token.price_change_24h:+.2f}%", style=change_style),
            format_usd(token.volume_24h),
            format_usd(token.market_cap),
            f"{token.holders:,}",
        )

    return table


async def main(args: argparse.Namespace) -> None:
    """Main entry point - runs feed and renderer in one event loop."""
    from .datafeed.mock_data import generate_mock_tokens
    from .datafeed.simulated import SimulatedFeed
    from .engine.sync import TokenSyncEngine

    feed = SimulatedFeed(interval_ms=args.interval_ms, seed=args.seed)
    engine = TokenSyncEngine(feed=feed, universe_size=args.tokens)

    engine.initialize(universe_factory=lambda: generate_mock_tokens(args.tokens, seed=args.seed))
    if args.status or args.search:
        changes = {}
        if args.status:
            changes["status"] = args.status
        if args.search:
            changes["search"] = args.search
        engine.filter(**changes)
    if args.sort:
        engine.sort(args.sort)
        if args.desc:
            engine.sort(args.sort)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.duration if args.duration else None

    try:
        with Live(render_snapshot(engine.snapshot, args.top), console=Console(), auto_refresh=False) as live:
            while deadline is None or loop.time() < deadline:
                try:
                    snapshot = engine.snapshot_queue.get_nowait()
                except queue.Empty:
                    await asyncio.sleep(0.05)
                    continue
                live.update(render_snapshot(snapshot, args.top), refresh=True)
    finally:
        engine.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Build the argument parser and parse argv."""
    from .datafeed.mock_data import DEFAULT_UNIVERSE_SIZE
    from .datafeed.simulated import DEFAULT_UPDATE_INTERVAL_MS
    from .types import FILTER_STATUSES, SORTABLE_FIELDS

    parser = argparse.ArgumentParser(
        description="Token Sync - live token table driven by a simulated feed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m token_sync.main
    python -m token_sync.main --tokens 100 --interval-ms 200 --sort price --desc
    python -m token_sync.main --status new --search sol
        """
    )

    parser.add_argument(
        "--tokens",
        type=int,
        default=DEFAULT_UNIVERSE_SIZE,
        help=f"Number of tokens to track (default: {DEFAULT_UNIVERSE_SIZE})"
    )

    parser.add_argument(
        "--interval-ms",
        type=int,
        default=DEFAULT_UPDATE_INTERVAL_MS,
        help=f"Feed tick interval in ms (default: {DEFAULT_UPDATE_INTERVAL_MS})"
    )

    parser.add_argument("--seed", type=int, default=None, help="Random seed")

    parser.add_argument(
        "--status",
        choices=FILTER_STATUSES,
        default=None,
        help="Status filter"
    )

    parser.add_argument("--search", default=None, help="Search name/symbol")

    parser.add_argument(
        "--sort",
        choices=sorted(SORTABLE_FIELDS),
        default=None,
        help="Sort key (default: created_at desc)"
    )

    parser.add_argument("--desc", action="store_true", help="Sort descending")

    parser.add_argument(
        "--top",
        type=int,
        default=20,
        help="Rows to display (default: 20)"
    )

    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until Ctrl+C)"
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: WARNING)"
    )

    args = parser.parse_args(argv)
    if args.desc and not args.sort:
        parser.error("--desc requires --sort")
    return args


def cli() -> None:
    """CLI entry point."""
    from .utils.logger import setup_logger

    args = parse_args()

    setup_logger("token_sync", level=getattr(logging, args.log_level))

    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
