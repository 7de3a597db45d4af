"""Command-line entry for icsfeed.

Polls the configured feeds and prints the upcoming agenda, either once
(``--once``) or every time a poll cycle brings new content.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from collections.abc import Iterable
from typing import NoReturn, Optional

from .config_loader import Config, load_config, validate_feed_url
from .exceptions import FeedConfigError
from .feed_fetcher import FeedFetcher
from .feed_store import FeedStore
from .logging_config import configure_logging
from .models import EventOccurrence
from .poll_scheduler import PollScheduler


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the icsfeed CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="icsfeed",
        description="icsfeed - poll ICS calendar feeds and print upcoming events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m icsfeed --once --feed https://example.com/team.ics
  python -m icsfeed --config icsfeed.yaml --days 7
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="YAML/JSON config file")
    parser.add_argument(
        "--once", action="store_true", help="Run a single poll cycle, print and exit"
    )
    parser.add_argument("--days", type=int, metavar="N", help="Display window in days (1-30)")
    parser.add_argument(
        "--interval", type=int, metavar="MIN", help="Minutes between poll cycles (>= 1)"
    )
    parser.add_argument(
        "--feed",
        action="append",
        default=[],
        metavar="URL",
        help="Feed URL to poll (repeatable, added to configured feeds)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def format_agenda(occurrences: Iterable[EventOccurrence]) -> list[str]:
    """Render occurrences as day-grouped agenda lines sorted by start."""
    ordered = sorted(
        (o for o in occurrences if o.start is not None),
        key=lambda o: (o.start.value, o.summary),
    )
    lines: list[str] = []
    current_day = None
    for occurrence in ordered:
        day = occurrence.start.day_key
        if day != current_day:
            lines.append(day)
            current_day = day
        time_label = "all day" if occurrence.start.is_all_day else occurrence.start.value[11:16]
        lines.append(f"  {time_label:>7}  {occurrence.summary}")
    return lines


def _print_agenda(occurrences: list[EventOccurrence]) -> None:
    lines = format_agenda(occurrences)
    print("\n".join(lines) if lines else "No upcoming events")
    sys.stdout.flush()


def _build_store(cfg: Config, extra_urls: list[str]) -> FeedStore:
    """Feed store holding exactly the configured feeds plus ``extra_urls``.

    Persisted metadata of feeds no longer configured is dropped.
    """
    store = FeedStore(cfg.metadata_path, cfg.feeds)
    for url in extra_urls:
        store.ensure(url)

    configured = set(cfg.feed_urls) | set(extra_urls)
    for url in store.urls():
        if url not in configured:
            store.remove(url)
    return store


async def _run(args: argparse.Namespace, cfg: Config) -> int:
    store = _build_store(cfg, args.feed)
    if not len(store):
        print("No feeds configured (use --feed URL or a config file)", file=sys.stderr)
        return 2

    days = args.days if args.days is not None else cfg.window_days
    interval = args.interval if args.interval is not None else cfg.poll_interval_minutes

    async with FeedFetcher() as fetcher:
        scheduler = PollScheduler(store, fetcher, interval_minutes=max(interval, 1))

        if args.once:
            await scheduler.run_cycle()
            _print_agenda(scheduler.events(window_days=days))
            return 0

        scheduler.add_listener(lambda _event: _print_agenda(scheduler.events(window_days=days)))

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, stop_event.set)

        await scheduler.start()
        try:
            await stop_event.wait()
        finally:
            await scheduler.stop()
    return 0


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the icsfeed CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        sys.exit(2)

    configure_logging(cfg.log_level, debug=True if args.debug else None)

    try:
        args.feed = [validate_feed_url(url) for url in args.feed]
    except FeedConfigError as exc:
        print(f"Invalid --feed value: {exc.message}", file=sys.stderr)
        sys.exit(2)

    try:
        sys.exit(asyncio.run(_run(args, cfg)))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
