"""CLI for Snapshot Backup."""

import sys
from datetime import datetime, timezone
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shared.cli import create_table, handle_errors, info, print_table, success, warning
from shared.logger import setup_logger

from .backup import BackupConfig, BackupResult, run_backup
from .exceptions import SnapshotBackupError
from .history import HistoryEntry, list_history, utc_now
from .paths import check_target, parse_path
from .rotator import DEFAULT_HISTORIES
from .stager import CURRENT_NAME, STAGING_NAME, TIMESTAMP_MARKER

console = Console()


def parse_histories(ctx: click.Context, param: click.Parameter, value: str) -> List[int]:
    """Parse a comma separated list of signed integers."""
    try:
        histories = [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise click.BadParameter(f"expected comma separated integers, got {value!r}")
    if not histories:
        raise click.BadParameter("at least one history level is required")
    return histories


def format_age(moment: datetime, now: Optional[datetime] = None) -> str:
    """
    Format the age of a snapshot.

    Args:
        moment: Snapshot time (UTC)
        now: Reference time (defaults to now)

    Returns:
        Human-readable age string
    """
    diff = (now or utc_now()) - moment
    if diff.total_seconds() < 0:
        return "in the future"
    if diff.days > 0:
        return f"{diff.days} day{'s' if diff.days != 1 else ''} ago"
    hours = diff.seconds // 3600
    if hours > 0:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    minutes = diff.seconds // 60
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    return "just now"


def display_result(result: BackupResult) -> None:
    """Show a summary panel for a finished run."""
    info_table = Table(show_header=False, box=None)
    info_table.add_column("Key", style="cyan")
    info_table.add_column("Value", style="white")

    info_table.add_row("Target", str(result.target_root))
    if result.stage:
        sync = result.stage.sync_result
        info_table.add_row("Sync exit", str(sync.returncode) if sync else "-")
        info_table.add_row("Demoted to", result.stage.demoted_to or "-")
        info_table.add_row("Promoted", "yes" if result.stage.promoted else "no")
    if result.rotation:
        info_table.add_row("Moved up", str(len(result.rotation.promoted)))
        info_table.add_row("Removed", str(len(result.rotation.evicted)))
        info_table.add_row("Tagged", ", ".join(result.rotation.tagged) or "-")
    info_table.add_row("Duration", f"{result.duration_seconds:.2f}s")

    for message in result.warnings:
        warning(message)

    style = "yellow" if result.warnings else "green"
    console.print(
        Panel(
            info_table,
            title=f"[{style}]✓ Backup {result.message}[/{style}]",
            border_style=style,
        )
    )


def _execute(config: BackupConfig, verbose: bool) -> None:
    setup_logger(__name__, level="DEBUG" if verbose else "INFO")
    try:
        result = run_backup(config)
    except SnapshotBackupError as e:
        console.print(
            Panel(
                f"[red]Error: {e}[/red]",
                title="[red]✗ Backup Failed[/red]",
                border_style="red",
            )
        )
        sys.exit(1)
    display_result(result)


@click.group()
def main() -> None:
    """Snapshot Backup - rsync snapshots with daily/weekly/monthly histories."""
    pass


@main.command()
@click.argument("sources", nargs=-1)
@click.argument("target")
@click.option(
    "--histories",
    default=",".join(str(n) for n in DEFAULT_HISTORIES),
    show_default=True,
    callback=parse_histories,
    help="Histories per level; negative values keep that many days instead",
)
@click.option(
    "--extra-dir",
    is_flag=True,
    help="Nest each source under its own directory name (always on for several sources)",
)
@click.option("--backup/--no-backup", default=True, help="Create a new snapshot")
@click.option("--rotate/--no-rotate", default=True, help="Rotate histories afterwards")
@click.option(
    "--rsync-opt",
    "rsync_opts",
    multiple=True,
    help="Extra option passed to rsync (can be specified multiple times)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@handle_errors
def run(
    sources: tuple,
    target: str,
    histories: List[int],
    extra_dir: bool,
    backup: bool,
    rotate: bool,
    rsync_opts: tuple,
    verbose: bool,
) -> None:
    """Back up SOURCES into TARGET and rotate its histories.

    Examples:

        \b
        # Daily backup keeping 7 days, 4 weekly and 3 monthly histories
        snapshot-backup run /home/steven/mydata /backup/steven/mydata

        \b
        # Several sources, excluding a directory
        snapshot-backup run /etc /home /backup/host --rsync-opt=--exclude=/home/tmp

        \b
        # Pull from a remote host, keep 14 level-1 histories
        snapshot-backup run user@host:/srv/www /backup/www --histories 14,4,3
    """
    config = BackupConfig(
        sources=list(sources),
        target=target,
        histories=histories,
        extra_dir=extra_dir,
        backup=backup,
        rotate=rotate,
        extra_rsync_opts=list(rsync_opts),
    )
    _execute(config, verbose)


@main.command()
@click.argument("target")
@click.option(
    "--histories",
    default=",".join(str(n) for n in DEFAULT_HISTORIES),
    show_default=True,
    callback=parse_histories,
    help="Histories per level; negative values keep that many days instead",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@handle_errors
def rotate(target: str, histories: List[int], verbose: bool) -> None:
    """Rotate the histories in TARGET without taking a new snapshot.

    Examples:

        \b
        snapshot-backup rotate /backup/steven/mydata --histories=-7,4,3
    """
    config = BackupConfig(
        sources=[],
        target=target,
        histories=histories,
        backup=False,
        rotate=True,
    )
    _execute(config, verbose)


@main.command(name="list")
@click.argument("target")
@handle_errors
def list_command(target: str) -> None:
    """List the snapshot and histories in TARGET.

    Examples:

        \b
        snapshot-backup list /backup/steven/mydata
    """
    root = check_target(parse_path(target))
    if not root.is_dir():
        console.print(
            Panel(
                f"[yellow]No backups found in {root}[/yellow]",
                title="[yellow]No Backups[/yellow]",
                border_style="yellow",
            )
        )
        return

    now = utc_now()
    marker = root / TIMESTAMP_MARKER
    if (root / CURRENT_NAME).is_dir():
        if marker.exists():
            promoted = datetime.fromtimestamp(marker.stat().st_mtime, tz=timezone.utc)
            success(f"Current snapshot: {root / CURRENT_NAME} ({format_age(promoted, now)})")
        else:
            success(f"Current snapshot: {root / CURRENT_NAME}")
    else:
        warning("No current snapshot")
    if (root / STAGING_NAME).exists():
        warning(f"Unfinished backup in {root / STAGING_NAME}, the next run will resume it")

    entries = list_history(root)
    if not entries:
        info("No histories")
        return

    display_history(entries, now, title=f"Histories in {root}")
    info(f"Total histories: {len(entries)}")


def display_history(entries: List[HistoryEntry], now: datetime, title: str) -> None:
    """
    Display history entries in a table.

    Args:
        entries: Entries ordered by level, newest first
        now: Reference time for ages
        title: Table title
    """
    table = create_table(title=title)
    table.add_column("Level", style="magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Age", style="yellow")
    table.add_column("Tagged", style="green")

    for entry in entries:
        table.add_row(
            str(entry.level),
            entry.name,
            format_age(entry.timestamp, now),
            "next" if entry.tagged else "",
        )

    print_table(table)


if __name__ == "__main__":
    main()
