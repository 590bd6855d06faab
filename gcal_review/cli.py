"""
Command line entry point

    gcal-review                      review today interactively
    gcal-review --date +1d           review tomorrow
    gcal-review --date fri --format '{start:%H:%M} {title}'
"""

import argparse
import asyncio
import curses
import logging
import re
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from .backend import CalendarBackend, MCPClient
from .config import ConfigError, get_system_timezone, get_tzinfo, load_config
from .conflicts import enrich
from .events import load_events
from .output import DEFAULT_FORMAT, format_events
from .review import ReviewStateMachine, parse_date
from .tui import CalendarTUI

logger = logging.getLogger(__name__)

DAY_NAMES = {
    'mon': 0,
    'tue': 1,
    'wed': 2,
    'thu': 3,
    'fri': 4,
    'sat': 5,
    'sun': 6
}

RELATIVE_DATE = re.compile(r'^([+-])(\d+)d$')


def parse_date_arg(arg: str, base: date) -> date:
    """Parse --date: YYYY-MM-DD, +Nd/-Nd, today/tomorrow/yesterday or a weekday name"""
    arg = arg.strip().lower()
    if not arg or arg == 'today':
        return base
    if arg == 'tomorrow':
        return base + timedelta(days=1)
    if arg == 'yesterday':
        return base - timedelta(days=1)

    if arg[0] in '+-':
        match = RELATIVE_DATE.match(arg)
        if not match:
            raise ValueError(f"invalid relative date: {arg} (expected e.g. +1d or -2d)")
        days = int(match.group(2))
        return base + timedelta(days=days if match.group(1) == '+' else -days)

    # Weekday names pick the next such day, today included
    if arg[:3] in DAY_NAMES and arg.isalpha():
        days_ahead = (DAY_NAMES[arg[:3]] - base.weekday()) % 7
        return base + timedelta(days=days_ahead)

    return parse_date(arg)


def setup_logging(debug: bool):
    """Log to stderr; with --debug redirect it, e.g. 2>debug.log"""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
    root = logging.getLogger('gcal_review')
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if debug else logging.WARNING)


async def print_events(backend: CalendarBackend, day: date, fmt: str, out=None) -> int:
    """Non-interactive mode: print the enriched events of `day`"""
    out = out or sys.stdout
    records = await backend.list_events(day)
    events, errors = load_events(records)
    for error in errors:
        logger.warning("Skipped event %s", error)
    for line in format_events(enrich(events), fmt):
        print(line, file=out)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='gcal-review', description='Review one day of Google Calendar events')
    parser.add_argument('--date', default='',
                        help='Day to show: YYYY-MM-DD, +1d/-1d, today, tomorrow, yesterday or mon-sun')
    parser.add_argument('--format', nargs='?', const=DEFAULT_FORMAT, default=None,
                        help='Print events with this format string instead of starting the TUI '
                             f'(default format: {DEFAULT_FORMAT!r})')
    parser.add_argument('--timezone', default=None, help='Timezone for the day boundary (default: system timezone)')
    parser.add_argument('--server-path', help='Path to gcal-mcp-server binary')
    parser.add_argument('--config', help='Path to config YAML')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging to stderr')
    return parser


def main(argv=None, today: Optional[Callable[[], date]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    debug = args.debug or config.debug
    setup_logging(debug)

    timezone = args.timezone or config.timezone or get_system_timezone()
    server_path = args.server_path or config.server_path

    try:
        tz = get_tzinfo(timezone)
    except ValueError:
        print(f"unknown timezone: {timezone}", file=sys.stderr)
        return 2

    if today is None:
        def today():
            return datetime.now(tz).date()

    try:
        day = parse_date_arg(args.date, today())
    except ValueError as exc:
        print(f"invalid --date: {exc}", file=sys.stderr)
        return 2

    async def with_backend(run):
        async with MCPClient(server_path) as client:
            backend = CalendarBackend(client, timezone=timezone, max_results=config.max_results)
            return await run(backend)

    if args.format is not None:
        try:
            return asyncio.run(with_backend(lambda backend: print_events(backend, day, args.format)))
        except ValueError as exc:
            print(f"invalid --format: {exc}", file=sys.stderr)
            return 2
        except Exception as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    def curses_main(stdscr):
        """Curses wrapper function - runs the async event loop"""
        machine = ReviewStateMachine(day, today=today)

        async def run(backend):
            await CalendarTUI(stdscr, machine, backend).run()

        asyncio.run(with_backend(run))

    if debug:
        print("Debug logs are being written to stderr, e.g.: gcal-review --debug 2>debug.log", file=sys.stderr)

    try:
        curses.wrapper(curses_main)
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        logger.debug("TUI failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
