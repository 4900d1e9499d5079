"""Command-line interface for timetally.

timetally tracks one timer and one running total.

COMMANDS:
---------
- start:   Start the timer.
- stop:    Stop the timer, add the session to the total.
- show:    Show the running session and the total.
- reset:   Clear the total (a running timer keeps running).
- abort:   Discard the running session without counting it.
- history: List the sessions since the last reset.
"""

import argparse
import logging
import re
import sys
from datetime import datetime, time
from pathlib import Path
from typing import Callable, NoReturn

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from timetally import __version__
from timetally.config import settings
from timetally.formatting import format_duration, format_timestamp
from timetally.timer import (
    Aborted,
    AlreadyRunning,
    InvalidTimer,
    NotRunning,
    Outcome,
    Reset,
    Started,
    Status,
    Stopped,
    StorageCorrupt,
    StorageError,
    TimerService,
    TimerStore,
    utc_now,
)

console = Console()

EXIT_OK = 0
EXIT_FAILURE = 1

_CLOCK_TIME = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    fmt = "%(name)s: %(message)s" if verbose else "%(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=[RichHandler(rich_tracebacks=True, console=console, show_path=verbose)],
        force=True,
    )


def parse_stop_time(value: str, now: datetime | None = None) -> datetime:
    """Parse a user-supplied stop time.

    Accepts ``HH:MM`` or ``HH:MM:SS`` (today, local time) or any ISO 8601
    timestamp. Timestamps without an offset are taken as local time.

    Args:
        value: The text given on the command line
        now: Reference time for ``HH:MM`` values (defaults to now)

    Returns:
        Timezone-aware datetime

    Raises:
        ValueError: If the value cannot be parsed
    """
    value = value.strip()
    match = _CLOCK_TIME.match(value)
    if match:
        local_now = (now or utc_now()).astimezone()
        hour, minute, second = (int(g) if g else 0 for g in match.groups())
        return datetime.combine(
            local_now.date(),
            time(hour, minute, second),
            tzinfo=local_now.tzinfo,
        )

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def _make_service(args: argparse.Namespace) -> TimerService:
    path = Path(args.state_file).expanduser() if args.state_file else settings.get_state_path()
    return TimerService(TimerStore(path, lock_timeout=settings.lock_timeout))


def _run(call: Callable[[], Outcome]) -> None:
    """Run a service call and print its outcome, exiting non-zero on failure."""
    try:
        outcome = call()
    except StorageCorrupt as e:
        console.print(f"[red]Corrupt timer state:[/red] {escape(str(e))}")
        sys.exit(EXIT_FAILURE)
    except StorageError as e:
        console.print(f"[red]Timer state unavailable:[/red] {escape(str(e))}")
        sys.exit(EXIT_FAILURE)

    print_outcome(outcome)
    if outcome.is_error:
        sys.exit(EXIT_FAILURE)


def print_outcome(outcome: Outcome) -> None:
    """Render an engine outcome for the terminal."""
    if isinstance(outcome, Started):
        console.print(f"[green]Timer started[/green] at {format_timestamp(outcome.started_at)}")
    elif isinstance(outcome, AlreadyRunning):
        console.print(
            f"[yellow]Timer already running[/yellow] for {format_duration(outcome.elapsed)}"
        )
    elif isinstance(outcome, Stopped):
        console.print("[green]Timer stopped[/green]")
        console.print(f"  Session: {format_duration(outcome.session)}")
        console.print(f"  Total:   {format_duration(outcome.total)}")
    elif isinstance(outcome, NotRunning):
        console.print("[yellow]No timer running[/yellow]")
    elif isinstance(outcome, Status):
        if outcome.current is not None:
            console.print(f"  Current: {format_duration(outcome.current)}")
        else:
            console.print("  Current: [dim]not running[/dim]")
        console.print(f"  Total:   {format_duration(outcome.total)}")
    elif isinstance(outcome, Reset):
        console.print(
            f"[green]Total reset[/green] (was {format_duration(outcome.previous_total)})"
        )
    elif isinstance(outcome, Aborted):
        if outcome.discarded is not None:
            console.print(
                f"[yellow]Timer aborted[/yellow], discarded {format_duration(outcome.discarded)}"
            )
        else:
            console.print("[yellow]Timer aborted[/yellow]")
    elif isinstance(outcome, InvalidTimer):
        console.print(f"[red]Invalid timer:[/red] {outcome}")
        console.print("Run 'tally abort' to discard it.")
    else:
        raise TypeError(f"Unknown outcome: {outcome!r}")


def cmd_start(args: argparse.Namespace) -> None:
    """Start the timer."""
    service = _make_service(args)
    _run(service.start)


def cmd_stop(args: argparse.Namespace) -> None:
    """Stop the timer."""
    service = _make_service(args)

    at = None
    if args.at:
        try:
            at = parse_stop_time(args.at)
        except ValueError:
            console.print(f"[red]Invalid stop time:[/red] {escape(args.at)}")
            console.print("Use HH:MM or ISO format: YYYY-MM-DDTHH:MM:SS")
            sys.exit(EXIT_FAILURE)

    def _stop() -> Outcome:
        return service.stop(at=at, comment=args.message)

    try:
        _run(_stop)
    except ValueError as e:
        console.print(f"[red]Invalid stop time:[/red] {escape(str(e))}")
        sys.exit(EXIT_FAILURE)


def cmd_show(args: argparse.Namespace) -> None:
    """Show the running session and total."""
    service = _make_service(args)
    _run(service.show)


def cmd_reset(args: argparse.Namespace) -> None:
    """Reset the total."""
    service = _make_service(args)
    _run(service.reset)


def cmd_abort(args: argparse.Namespace) -> None:
    """Discard the running session."""
    service = _make_service(args)
    _run(service.abort)


def cmd_history(args: argparse.Namespace) -> None:
    """List sessions since the last reset."""
    service = _make_service(args)
    try:
        sessions = service.history()
    except StorageError as e:
        console.print(f"[red]Cannot read timer state:[/red] {escape(str(e))}")
        sys.exit(EXIT_FAILURE)

    if not sessions:
        console.print("[yellow]No sessions recorded.[/yellow]")
        return

    table = Table(title="Sessions")
    table.add_column("#", style="cyan")
    table.add_column("Start", style="white")
    table.add_column("End", style="white")
    table.add_column("Duration", style="green")
    table.add_column("Comment", style="blue")

    for index, record in enumerate(sessions, start=1):
        table.add_row(
            str(index),
            format_timestamp(record.start),
            format_timestamp(record.end),
            format_duration(record.duration),
            escape(record.comment or "-"),
        )

    console.print(table)


def cmd_version(args: argparse.Namespace) -> None:
    """Show version information."""
    console.print(f"tally v{__version__}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tally",
        description="timetally - track time with a single start/stop timer",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show detailed output")
    parser.add_argument(
        "--state-file",
        help="Timer state file (default: ~/.timetally/state.json)",
    )

    subparsers = parser.add_subparsers(dest="command")

    start_parser = subparsers.add_parser("start", help="Start the timer")
    start_parser.set_defaults(func=cmd_start)

    stop_parser = subparsers.add_parser(
        "stop",
        help="Stop the timer and add the session to the total",
    )
    stop_parser.add_argument(
        "--at",
        help="Stop time to use instead of now (HH:MM or ISO 8601), "
             "if you forgot to stop the timer",
    )
    stop_parser.add_argument(
        "-m", "--message",
        help="A comment to add to this session",
    )
    stop_parser.set_defaults(func=cmd_stop)

    show_parser = subparsers.add_parser("show", help="Show the current session and total")
    show_parser.set_defaults(func=cmd_show)

    reset_parser = subparsers.add_parser("reset", help="Reset the total time")
    reset_parser.set_defaults(func=cmd_reset)

    abort_parser = subparsers.add_parser(
        "abort",
        help="Discard the running session without counting it",
    )
    abort_parser.set_defaults(func=cmd_abort)

    history_parser = subparsers.add_parser(
        "history",
        help="List sessions since the last reset",
    )
    history_parser.set_defaults(func=cmd_history)

    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the tally CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    # No command given - show help
    if args.command is None:
        parser.print_help()
        sys.exit(EXIT_OK)

    args.func(args)
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
