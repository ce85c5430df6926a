"""CLI module for restore diagnostics.

Provides commands to list configured clusters and to inspect a backup image
reachable on local disk: where its snapshot and archive live, which region
and family directories it holds, and which data files boundary inference
would read or skip.  Restores themselves run through the library API.

Usage:
    table-restore clusters
    table-restore clusters --config /etc/restore.toml
    table-restore inspect /backups backup_1396650096738 sales:orders
    table-restore -v inspect file:///backups backup_1396650096738 t1

Commands:
    clusters  - List cluster profiles from restore.toml
    inspect   - Show the layout of a table in a local backup image
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from table_restore.collaborators.local_fs import LocalFileSystem
from table_restore.config.loader import load_restore_config
from table_restore.config.models import RECOVERED_EDITS_DIR
from table_restore.restore import layout
from table_restore.restore.boundaries import is_hidden, is_ignored_dir, skip_reason
from table_restore.schema.models import TableName

console = Console()


def _config_path(args: argparse.Namespace) -> Path | None:
    return Path(args.config) if getattr(args, "config", None) else None


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_inspect(args: argparse.Namespace) -> int:
    """Async implementation for inspect command.

    Args:
        args: Parsed arguments with backup_root, backup_id, table, config.

    Returns:
        0 if the image holds a snapshot or an archive for the table, 1 otherwise.
    """
    ignore_dirs = [RECOVERED_EDITS_DIR]
    config_path = _config_path(args)
    if config_path is not None or (Path.cwd() / "restore.toml").exists():
        try:
            ignore_dirs = load_restore_config(config_path).ignore_dirs
        except FileNotFoundError as e:
            console.print(f"[red]Error: {e}[/red]")
            return 1

    fs = LocalFileSystem()
    table = TableName.parse(args.table)
    snapshot_path = layout.table_snapshot_path(args.backup_root, args.backup_id, table)
    archive_path = layout.table_archive_path(args.backup_root, args.backup_id, table)

    has_snapshot = await fs.exists(snapshot_path)
    has_archive = await fs.exists(archive_path)

    console.print(f"Table: [bold cyan]{table}[/bold cyan]")
    console.print(
        f"  Snapshot: {snapshot_path} "
        + ("[green]present[/green]" if has_snapshot else "[yellow]missing[/yellow]")
    )
    console.print(
        f"  Archive:  {archive_path} "
        + ("[green]present[/green]" if has_archive else "[yellow]missing (empty table)[/yellow]")
    )

    if not has_snapshot and not has_archive:
        console.print()
        console.print("[bold red]x[/bold red] Nothing to restore for this table")
        return 1

    if not has_archive:
        return 0

    files_table = Table(title="Archived data files", show_header=True, header_style="bold")
    files_table.add_column("Region")
    files_table.add_column("Family")
    files_table.add_column("File")
    files_table.add_column("Status")

    read_count = 0
    for region in await fs.list_status(archive_path):
        if not region.is_dir:
            continue
        for family in await fs.list_status(region.path):
            if not family.is_dir:
                files_table.add_row(region.name, "", family.name, "[dim]skipped: not a directory[/dim]")
                continue
            if is_ignored_dir(family.name, ignore_dirs) or is_hidden(family.name):
                files_table.add_row(region.name, family.name, "", "[dim]skipped: not a family[/dim]")
                continue
            files = [f for f in await fs.list_status(family.path) if not f.is_dir]
            if not files:
                files_table.add_row(region.name, family.name, "", "[red]no data files[/red]")
            for data_file in files:
                reason = skip_reason(data_file.name)
                if reason is None:
                    read_count += 1
                    status = "[green]read[/green]"
                else:
                    status = f"[dim]skipped: {reason}[/dim]"
                files_table.add_row(region.name, family.name, data_file.name, status)

    console.print()
    console.print(files_table)
    console.print(f"\n{read_count} data files feed boundary inference")
    return 0


# ============================================================================
# Command handlers
# ============================================================================


def cmd_clusters(args: argparse.Namespace) -> int:
    """List cluster profiles from restore.toml.

    Reads only local TOML config -- no cluster calls.

    Returns:
        0 on success, 1 if restore.toml not found.
    """
    try:
        config = load_restore_config(_config_path(args))
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = Table(title="Clusters", show_header=True, header_style="bold")
    table.add_column("Cluster")
    table.add_column("Default FS")
    table.add_column("Description")

    for name, profile in config.clusters.items():
        table.add_row(name, profile.default_fs, profile.description or "")

    console.print(table)
    console.print(
        f"\n[dim]Staging dir:[/dim] {config.staging_dir}  "
        f"[dim]Availability timeout:[/dim] {config.table_availability_timeout_ms}ms"
    )
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Inspect a table in a local backup image (wraps async implementation)."""
    return asyncio.run(_async_inspect(args))


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="table-restore",
        description="Backup image restore diagnostics",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # clusters command
    p_clusters = subparsers.add_parser(
        "clusters",
        help="List cluster profiles",
    )
    p_clusters.add_argument("--config", help="Path to restore.toml")
    p_clusters.set_defaults(func=cmd_clusters)

    # inspect command
    p_inspect = subparsers.add_parser(
        "inspect",
        help="Show the layout of a table in a local backup image",
    )
    p_inspect.add_argument("backup_root", help="Backup root (local path or file:// URI)")
    p_inspect.add_argument("backup_id", help="Full backup id")
    p_inspect.add_argument("table", help="Table name (namespace:qualifier or qualifier)")
    p_inspect.add_argument("--config", help="Path to restore.toml")
    p_inspect.set_defaults(func=cmd_inspect)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
