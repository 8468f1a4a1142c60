"""CLI module for streaming PostgreSQL backups to object storage.

Provides commands to run a backup, list what a backup would contain, and
check a downloaded archive.

Usage:
    DB_NAME=app S3_BUCKET=backups pgs3backup backup
    pgs3backup backup --config backup.toml --prefix nightly --no-compress
    pgs3backup backup --output-dir ./backups
    pgs3backup tables
    pgs3backup validate backups/app_2026-01-15_10-00-00.dump.gz

Commands:
    backup    - Export every table and upload the archive
    tables    - List tables in archive order with their column counts
    validate  - Check the framing of a local archive file
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from pgs3backup.adapters.postgres import AsyncPostgresAdapter
from pgs3backup.backup.archive import validate_archive
from pgs3backup.backup.deadline import Deadline
from pgs3backup.backup.pipeline import run_backup
from pgs3backup.config.loader import load_backup_config
from pgs3backup.config.models import BackupConfig
from pgs3backup.errors import BackupError, BackupStageError
from pgs3backup.schema.introspector import SchemaIntrospector
from pgs3backup.storage.local import LocalDirectorySink
from pgs3backup.storage.s3 import S3Sink

console = Console()
err_console = Console(stderr=True)


# ============================================================================
# Helpers
# ============================================================================


def configure_logging(level: str = "INFO") -> None:
    """Route ``pgs3backup`` library logs through rich on stderr."""
    logger = logging.getLogger("pgs3backup")
    logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(console=err_console, show_path=False))


def _load_config(args: argparse.Namespace, require_storage: bool) -> BackupConfig:
    """Load config and apply command line overrides.

    Raises:
        FileNotFoundError: If ``--config`` names a missing file.
        ValueError: If required settings are missing or invalid.
    """
    config = load_backup_config(args.config, require_storage=require_storage)

    updates: dict = {}
    if getattr(args, "prefix", None) is not None:
        updates["prefix"] = args.prefix
    if getattr(args, "compress", None) is not None:
        updates["compress"] = args.compress
    if getattr(args, "timeout", None) is not None:
        updates["timeout_seconds"] = args.timeout
    if not updates:
        return config
    # Re-validate so overrides get the same checks as file values
    return BackupConfig.model_validate({**config.model_dump(), **updates})


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Args:
        args: Parsed arguments with config, prefix, compress, output_dir
            and timeout.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args, require_storage=args.output_dir is None)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    configure_logging(config.log_level)

    if args.output_dir is not None:
        sink = LocalDirectorySink(args.output_dir)
    else:
        storage = config.storage
        sink = S3Sink(
            bucket=storage.bucket,
            region=storage.region,
            access_key=storage.access_key,
            secret_key=storage.secret_key,
            endpoint=storage.endpoint,
        )

    name = config.database.name
    console.print(f"Backing up [bold cyan]{name}[/bold cyan]...", style="dim")

    try:
        location = await run_backup(
            AsyncPostgresAdapter(config.database.url()),
            sink,
            name=name,
            prefix=config.prefix,
            compress=config.compress,
            deadline=Deadline(config.timeout_seconds),
        )
    except BackupError as e:
        console.print()
        console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        return 1

    console.print()
    console.print(f"[bold green]v[/bold green] Backup stored at: {location}")
    return 0


async def _async_tables(args: argparse.Namespace) -> int:
    """Async implementation for tables command.

    Args:
        args: Parsed arguments with config.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args, require_storage=False)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    configure_logging(config.log_level)

    client = AsyncPostgresAdapter(config.database.url())
    introspector = SchemaIntrospector(client, Deadline(config.timeout_seconds))
    try:
        await client.connect()
        tables = await introspector.list_tables()
        counts = [len(await introspector.get_columns(table)) for table in tables]
    except BackupStageError as e:
        console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        return 1
    finally:
        await client.close()

    table = Table(
        title=f"Tables in {config.database.name}",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Schema")
    table.add_column("Table")
    table.add_column("Columns", justify="right")
    table.add_column("Archive entry", style="dim")

    for ref, count in zip(tables, counts):
        table.add_row(ref.schema_name, ref.table_name, str(count), ref.data_entry_name)

    console.print(table)
    console.print(f"\n{len(tables)} tables")
    return 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_backup(args: argparse.Namespace) -> int:
    """Run a backup.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_backup(args))


def cmd_tables(args: argparse.Namespace) -> int:
    """List the tables a backup would export.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_tables(args))


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a local archive file.

    Reads only the local file -- no database or network calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 if the archive is valid, 1 otherwise.
    """
    report = validate_archive(args.archive)

    if report["entries"]:
        table = Table(title=Path(args.archive).name, show_header=True, header_style="bold")
        table.add_column("Entry")
        table.add_column("Bytes", justify="right")
        table.add_column("Records", justify="right")
        for entry in report["entries"]:
            records = entry.get("records")
            table.add_row(
                entry["name"],
                str(entry["size"]),
                "" if records is None else str(records),
            )
        console.print(table)

    for warning in report["warnings"]:
        console.print(f"[yellow]Warning: {escape(warning)}[/yellow]")

    if report["valid"]:
        console.print("[bold green]v[/bold green] Archive is valid")
        return 0

    for error in report["errors"]:
        console.print(f"[red]Error: {escape(error)}[/red]")
    console.print("[bold red]x[/bold red] Archive is invalid")
    return 1


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Args:
        argv: Argument list (default: ``sys.argv[1:]``).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="pgs3backup",
        description="Stream PostgreSQL backups to S3-compatible storage",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    p_backup = subparsers.add_parser(
        "backup",
        help="Export every table and upload the archive",
    )
    p_backup.add_argument(
        "--config",
        type=Path,
        default=None,
        help="TOML file overriding environment settings",
    )
    p_backup.add_argument(
        "--prefix",
        default=None,
        help="Destination prefix (default: BACKUP_PREFIX or 'backups')",
    )
    p_backup.add_argument(
        "--compress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Gzip the archive (default: COMPRESS or on)",
    )
    p_backup.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Write to a local directory instead of S3",
    )
    p_backup.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Export deadline in seconds (default: BACKUP_TIMEOUT or 300)",
    )
    p_backup.set_defaults(func=cmd_backup)

    # tables command
    p_tables = subparsers.add_parser(
        "tables",
        help="List tables in archive order",
    )
    p_tables.add_argument(
        "--config",
        type=Path,
        default=None,
        help="TOML file overriding environment settings",
    )
    p_tables.set_defaults(func=cmd_tables)

    # validate command
    p_validate = subparsers.add_parser(
        "validate",
        help="Check the framing of a local archive file",
    )
    p_validate.add_argument("archive", help="Path to a .dump or .dump.gz file")
    p_validate.set_defaults(func=cmd_validate)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
