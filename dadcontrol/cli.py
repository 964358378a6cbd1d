"""Command-line interface for dadcontrol."""

import asyncio
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dadcontrol.actuators import terminate_processes
from dadcontrol.collectors import list_running_processes
from dadcontrol.config import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_STATE_PATH,
    Config,
    ConfigError,
    ConfigWatcher,
    load_config,
)
from dadcontrol.durations import format_duration
from dadcontrol.models import Enforcement, ViolationReason, Weekday
from dadcontrol.policies import ActivityEnforcer
from dadcontrol.policies.models import DaySchedule
from dadcontrol.storage import HistoryStore, StateStore

logger = logging.getLogger(__name__)
console = Console()

REASON_STYLES = {
    ViolationReason.DAY_NOT_ALLOWED.value: "magenta",
    ViolationReason.DURATION_EXCEEDED.value: "red",
    ViolationReason.OUTSIDE_TIME_RANGE.value: "yellow",
}


def _load_or_exit(config_path: Path) -> Config:
    try:
        return load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def _format_hhmm(value: int) -> str:
    return f"{value // 100:02d}:{value % 100:02d}"


def _format_schedule(schedule: DaySchedule) -> str:
    periods = ", ".join(
        f"{_format_hhmm(p.begin)}-{_format_hhmm(p.end)}" for p in schedule.allowed_periods
    )
    return f"{periods or 'no period'} (max {format_duration(schedule.max_duration)})"


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="Path to the policy file (JSON, or TOML with a .toml suffix)",
)
@click.option(
    "--state",
    type=click.Path(path_type=Path),
    default=DEFAULT_STATE_PATH,
    show_default=True,
    help="Path to the state file holding accumulated durations",
)
@click.pass_context
def main(ctx: click.Context, config: Path, state: Path) -> None:
    """dadcontrol - Per-activity usage policy enforcement."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["state_path"] = state


@main.command()
@click.option("--verbose", "-v", is_flag=True, help="Verbose output (show every scan)")
@click.pass_context
def run(ctx: click.Context, verbose: bool) -> None:
    """Scan running processes and enforce the policy until stopped.

    Every sampling interval the policy file is reloaded if it changed, the
    running processes are classified into activities, and the processes of
    any activity breaking its schedule are terminated.
    """
    config_path: Path = ctx.obj["config_path"]
    state_path: Path = ctx.obj["state_path"]

    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    watcher = ConfigWatcher(config_path)
    try:
        cfg = watcher.load()
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    engine = ActivityEnforcer(
        policy=cfg.policy,
        sampling_interval=cfg.sampling_interval,
        clock=datetime.now,
        list_processes=list_running_processes,
        terminate=terminate_processes,
    )

    state_store = StateStore(state_path)
    snapshot = state_store.load()
    if snapshot is not None:
        engine.restore(snapshot)

    history_store = None
    if cfg.history_enabled:
        cfg.history_db_path.parent.mkdir(parents=True, exist_ok=True)
        history_store = HistoryStore(cfg.history_db_path)
        history_store.connect()

    slack_notifier = None
    if cfg.slack_enabled and cfg.slack_webhook_url:
        from dadcontrol.notifiers.slack import SlackConfig, SlackNotifier

        slack_notifier = SlackNotifier(
            SlackConfig(webhook_url=cfg.slack_webhook_url, dedup_window=cfg.slack_dedup_window)
        )

    stats = {"scans": 0, "enforcements": 0}
    pending: set[asyncio.Task] = set()

    def show_policy(config: Config) -> None:
        console.print(f"[cyan]Sampling interval: {format_duration(config.sampling_interval)}[/cyan]")
        for rule in config.policy.rules:
            console.print(f"[cyan]Activity \\[{escape(rule.name)}][/cyan] [dim]{len(rule.patterns)} patterns[/dim]")
        for activity, pattern, error in config.policy.invalid_patterns:
            console.print(f"[yellow]Invalid pattern for {escape(activity)}: {escape(repr(pattern))} ({escape(error)})[/yellow]")

    def handle_enforcement(enforcement: Enforcement) -> None:
        stats["enforcements"] += 1
        style = REASON_STYLES.get(enforcement.reason.value, "white")
        console.print(
            f"[{style}]\\[KILL][/{style}] {escape(enforcement.activity)}: {enforcement.reason.value} "
            f"[dim]pids {', '.join(str(pid) for pid in enforcement.pids)}[/dim]"
        )

        if history_store:
            try:
                history_store.insert_enforcement(enforcement)
            except Exception as e:
                logger.warning(f"Failed to record enforcement: {e}")

        # Send to Slack (fire-and-forget, don't block the scan loop)
        if slack_notifier:
            task = asyncio.get_running_loop().create_task(slack_notifier.send_enforcement(enforcement))
            pending.add(task)
            task.add_done_callback(pending.discard)

    def print_stats() -> None:
        console.print()
        console.print("[green]dadcontrol stopped[/green]")
        console.print(f"  Scans: {stats['scans']:,}")
        console.print(f"  Enforcements: {stats['enforcements']:,}")

    async def run_loop() -> None:
        if history_store and cfg.history_retention_days > 0:
            try:
                deleted = history_store.cleanup_old_data(cfg.history_retention_days)
                if deleted:
                    console.print(f"[cyan]Startup cleanup: deleted {deleted} old enforcements[/cyan]")
            except Exception as e:
                console.print(f"[yellow]Startup cleanup failed: {e}[/yellow]")

        console.print(f"[green]Enforcing {config_path} ({len(cfg.policy)} activities)[/green]")
        show_policy(cfg)
        if history_store:
            console.print(f"[cyan]History: {cfg.history_db_path}[/cyan]")
        if slack_notifier:
            console.print(f"[cyan]Slack notifications: dedup {cfg.slack_dedup_window}s[/cyan]")
        console.print("[dim]Press Ctrl+C to stop[/dim]")
        console.print()

        try:
            while True:
                new_cfg = watcher.reload_if_needed()
                if new_cfg is not None:
                    engine.apply_policy(new_cfg.policy, new_cfg.sampling_interval)
                    show_policy(new_cfg)

                await asyncio.sleep(engine.sampling_interval.total_seconds())

                enforcements = engine.scan()
                stats["scans"] += 1
                state_store.save(engine.snapshot())

                for enforcement in enforcements:
                    handle_enforcement(enforcement)
        except asyncio.CancelledError:
            pass
        finally:
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            if slack_notifier:
                await slack_notifier.close()

    try:
        asyncio.run(run_loop())
    except KeyboardInterrupt:
        pass
    finally:
        if history_store:
            history_store.close()
        print_stats()


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show today's accumulated duration per activity."""
    cfg = _load_or_exit(ctx.obj["config_path"])
    snapshot = StateStore(ctx.obj["state_path"]).load()

    now = datetime.now()
    day = Weekday.of(now)

    # Counters from an earlier date are reset by the next scan
    durations: dict[str, timedelta] = {}
    if snapshot is not None and snapshot.last_control_time.date() == now.date():
        durations = snapshot.usage.for_day(day)
        console.print(f"[dim]Last scan: {snapshot.last_control_time.strftime('%Y-%m-%d %H:%M:%S')}[/dim]")
    else:
        console.print("[yellow]No scan recorded today[/yellow]")

    table = Table(title=f"Activity usage for {day.label}")
    table.add_column("Activity")
    table.add_column("Today", justify="right")
    table.add_column("Maximum", justify="right")
    table.add_column("Allowed periods")

    names = [rule.name for rule in cfg.policy.rules]
    names += [name for name in durations if name not in names]

    for name in names:
        used = durations.get(name, timedelta(0))
        rule = cfg.policy.get_rule(name)
        schedule = rule.schedule_for(day) if rule is not None else None

        if schedule is None:
            table.add_row(name, format_duration(used), "-", "[magenta]not allowed today[/magenta]")
            continue

        used_style = "red" if used > schedule.max_duration else "green"
        periods = ", ".join(
            f"{_format_hhmm(p.begin)}-{_format_hhmm(p.end)}" for p in schedule.allowed_periods
        )
        table.add_row(
            name,
            f"[{used_style}]{format_duration(used)}[/{used_style}]",
            format_duration(schedule.max_duration),
            periods or "[dim]none[/dim]",
        )

    console.print(table)


@main.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Validate the policy file and print its rules."""
    config_path: Path = ctx.obj["config_path"]
    cfg = _load_or_exit(config_path)

    console.print(f"[cyan]Config: {config_path}[/cyan]")
    console.print(f"  Sampling interval: {format_duration(cfg.sampling_interval)}")

    for rule in cfg.policy.rules:
        console.print(f"[bold]{escape(rule.name)}[/bold]")
        for pattern in rule.patterns:
            console.print(f"  program: [dim]{escape(pattern)}[/dim]")
        if not rule.schedules:
            console.print("  [magenta]never allowed[/magenta]")
        for day in Weekday:
            schedule = rule.schedule_for(day)
            if schedule is not None:
                console.print(f"  {day.label}: {_format_schedule(schedule)}")

    invalid = cfg.policy.invalid_patterns
    if invalid:
        console.print()
        for activity, pattern, error in invalid:
            console.print(f"[red]Invalid pattern for {escape(activity)}: {escape(repr(pattern))} ({escape(error)})[/red]")
        sys.exit(1)

    console.print()
    console.print(f"[green]{len(cfg.policy)} activities OK[/green]")


@main.command()
@click.option("--activity", type=str, default=None, help="Only show this activity")
@click.option("--limit", type=int, default=50)
@click.option("--days", type=int, default=7, help="Days covered by the summary")
@click.pass_context
def history(ctx: click.Context, activity: str | None, limit: int, days: int) -> None:
    """Show recent enforcement actions."""
    cfg = _load_or_exit(ctx.obj["config_path"])

    if not cfg.history_db_path.exists():
        console.print("[yellow]No enforcement history recorded[/yellow]")
        return

    with HistoryStore(cfg.history_db_path, read_only=True) as store:
        rows = store.get_recent_enforcements(limit, activity)
        summary = store.get_activity_stats(datetime.now() - timedelta(days=days))

    if not rows:
        console.print("[green]No enforcement actions[/green]")
        return

    table = Table(title="Recent Enforcements")
    table.add_column("Time", style="dim")
    table.add_column("Activity")
    table.add_column("Reason")
    table.add_column("Processes", justify="right")
    table.add_column("Used", justify="right")

    for row in rows:
        timestamp = row["timestamp"]
        if isinstance(timestamp, datetime):
            time_str = timestamp.strftime("%Y-%m-%d %H:%M")
        else:
            time_str = str(timestamp)[:16]

        style = REASON_STYLES.get(row["reason"], "white")
        table.add_row(
            time_str,
            row["activity"],
            f"[{style}]{row['reason']}[/{style}]",
            str(len(row["pids"] or [])),
            format_duration(timedelta(seconds=row["duration_seconds"])),
        )

    console.print(table)

    if summary:
        console.print(f"[cyan]Last {days} days:[/cyan]")
        for stat in summary:
            console.print(f"  {stat['activity']}: {stat['kills']} x {stat['reason']}")


@main.command()
@click.option("--days", type=int, default=None, help="Delete enforcements older than N days (default: from config)")
@click.option("--vacuum", is_flag=True, help="Run VACUUM after cleanup to reclaim disk space")
@click.pass_context
def cleanup(ctx: click.Context, days: int | None, vacuum: bool) -> None:
    """Delete old enforcement history."""
    cfg = _load_or_exit(ctx.obj["config_path"])
    retention = days if days is not None else cfg.history_retention_days

    if not cfg.history_db_path.exists():
        console.print("[yellow]No enforcement history recorded[/yellow]")
        return

    with HistoryStore(cfg.history_db_path) as store:
        deleted = store.cleanup_old_data(retention)
        console.print(f"[green]Deleted {deleted:,} enforcements older than {retention} days[/green]")

        if vacuum:
            console.print("[cyan]Running VACUUM to reclaim disk space...[/cyan]")
            store.vacuum()
            console.print("[green]VACUUM complete[/green]")


if __name__ == "__main__":
    main()
