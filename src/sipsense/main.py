"""SipSense entry point — CLI args, async loop, replay and reminder commands."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from sipsense.config import get_config
from sipsense.manager import HydrationNotifier
from sipsense.notifications.models import (
    DailyStats,
    Notification,
    ReminderClass,
    ReminderConfig,
    SensorSnapshot,
)
from sipsense.utils.logger import DEFAULT_LOG_DIR, setup_logging

console = Console()

_PRIORITY_COLORS = {"high": "red", "medium": "yellow", "low": "cyan"}

_SCHEDULE_POLL_SECONDS = 30.0


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="sipsense",
        description="SipSense — smart bottle notification engine",
    )
    parser.add_argument(
        "--replay",
        type=Path,
        metavar="FILE",
        help='Feed JSON lines {"sensor": {...}, "stats": {...}} through the engine',
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=0.0,
        help="Seconds to wait between replayed readings",
    )
    parser.add_argument(
        "--schedule",
        choices=[c.value for c in ReminderClass],
        help="Schedule hydration reminders for a reminder class",
    )
    parser.add_argument("--gap", type=float, default=2.0, help="Hours between reminders")
    parser.add_argument("--goal", type=int, default=2000, help="Daily goal in ml")
    parser.add_argument("--amount", type=int, default=None, help="ml per reminder")
    parser.add_argument("--condition", default=None, help="Medical condition label")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Report push backend availability and scheduled reminders",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def render_notifications(notifications: list[Notification]) -> Table:
    """Build a rich table of active notifications, highest priority first."""
    order = {"high": 0, "medium": 1, "low": 2}
    table = Table(title="Active notifications")
    table.add_column("Type", style="bold")
    table.add_column("Priority")
    table.add_column("Title")
    table.add_column("Message")
    table.add_column("Action", style="dim")

    for n in sorted(notifications, key=lambda n: order.get(n.priority.value, 3)):
        color = _PRIORITY_COLORS.get(n.priority.value, "white")
        table.add_row(
            n.type,
            f"[{color}]{n.priority.value}[/]",
            n.title or "",
            n.message or "",
            n.action or "",
        )
    return table


def load_replay(path: Path) -> list[tuple[SensorSnapshot, DailyStats | None]]:
    """Read replay records, one JSON object per line. Blank lines are skipped.

    Raises:
        ValueError: On malformed JSON or invalid readings (with line number).
    """
    records = []
    with path.open(encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                data = json.loads(line)
                sensor = SensorSnapshot.model_validate(data.get("sensor", {}))
                stats_data = data.get("stats")
                stats = DailyStats.model_validate(stats_data) if stats_data else None
            except (json.JSONDecodeError, ValidationError, AttributeError) as e:
                raise ValueError(f"{path}:{lineno}: {e}") from e
            records.append((sensor, stats))
    return records


async def _run_replay(notifier: HydrationNotifier, path: Path, interval: float) -> None:
    """Feed a recorded reading stream through the debounced entry point."""
    try:
        records = load_replay(path)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Replay error:[/] {e}")
        sys.exit(1)

    for sensor, stats in records:
        notifier.update_from_sensor_data(sensor, stats)
        if interval > 0:
            await asyncio.sleep(interval)

    await notifier.flush()
    console.print(render_notifications(notifier.get_active_notifications()))


async def _run_check(notifier: HydrationNotifier) -> None:
    """Report push channel status."""
    channel = notifier.push_channel
    console.print("\n[bold]SipSense System Check[/]\n")
    if channel.available:
        console.print(f"  [green]✅[/] push: {channel.name}")
    else:
        console.print("  [yellow]⚠️[/] push: not available (notifications stay in-app)")
    count = await notifier.get_scheduled_count()
    console.print(f"  [dim]ℹ️[/]  scheduled reminders: {count}\n")


async def _wait_for_reminders(notifier: HydrationNotifier, poll_seconds: float) -> None:
    """Return once nothing is left scheduled."""
    while await notifier.get_scheduled_count() > 0:
        await asyncio.sleep(poll_seconds)


async def _run_schedule(
    notifier: HydrationNotifier,
    args: argparse.Namespace,
    poll_seconds: float = _SCHEDULE_POLL_SECONDS,
) -> None:
    """Schedule reminders and keep the loop alive until the last one has fired."""
    try:
        plan = ReminderConfig(
            reminder_class=ReminderClass(args.schedule),
            goal_ml=args.goal,
            gap_hours=args.gap,
            intake_ml=args.amount,
            condition_name=args.condition,
        )
    except ValidationError as e:
        console.print(f"[bold red]Invalid reminder plan:[/] {e}")
        sys.exit(1)

    if not await notifier.schedule_hydration_reminders(plan):
        console.print("[bold red]Could not schedule reminders[/] (push unavailable?)")
        sys.exit(1)

    count = await notifier.get_scheduled_count()
    console.print(f"[green]Scheduled {count} {plan.reminder_class.value} reminder(s).[/]")
    if count:
        console.print("[dim]Press Ctrl+C to stop.[/]")
        await _wait_for_reminders(notifier, poll_seconds)
        console.print("[green]All reminders delivered.[/]")


async def _async_main(argv: list[str] | None = None) -> None:
    """Async entry point."""
    args = _parse_args(argv)

    config = get_config()
    try:
        setup_logging(
            verbose=args.verbose,
            log_level=config.log_level,
            log_dir=DEFAULT_LOG_DIR if config.log_to_file else None,
        )
        config.validate_push_backend()
    except ValueError as e:
        console.print(f"[bold red]Configuration error:[/] {e}")
        sys.exit(1)

    notifier = HydrationNotifier(config)
    try:
        if args.check:
            await _run_check(notifier)
        elif args.replay:
            await _run_replay(notifier, args.replay, args.interval)
        elif args.schedule:
            await _run_schedule(notifier, args)
        else:
            console.print("Nothing to do. Use --replay, --schedule or --check (see --help).")
    finally:
        notifier.close()


def main() -> None:
    """Synchronous entry point."""
    try:
        asyncio.run(_async_main())
    except KeyboardInterrupt:
        console.print("\n[bold green]Bye![/]")


if __name__ == "__main__":
    main()
