"""
CLI commands for backups.

Thin wrappers over ``provision.core.engine.backup.BackupManager``:
list what destructive steps moved aside, and restore one explicitly.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from provision.core.engine.backup import BackupManager


def _resolve_backups(ctx: click.Context) -> BackupManager:
    """Backup manager for the configured backup directory."""
    from provision.core.config.loader import (
        ConfigError,
        backup_dir,
        config_root,
        find_config_file,
        load_config,
    )

    config_path: Path | None = ctx.obj.get("config_path") or find_config_file()
    try:
        if config_path is None:
            raise ConfigError("No provision.yml found.")
        config = load_config(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    return BackupManager(backup_dir(config, config_root(config_path)))


@click.group()
def backups() -> None:
    """Backups — list and restore files moved aside by destructive steps."""


@backups.command("list")
@click.argument("path", required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_backups_cmd(ctx: click.Context, path: str | None, as_json: bool) -> None:
    """List backups, optionally only those of PATH."""
    manager = _resolve_backups(ctx)
    records = manager.records_for(path) if path else manager.list_records()

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return

    if not records:
        click.secho(f"No backups found in {manager.root}", fg="yellow")
        return

    click.secho(f"💾 Backups ({len(records)}):", fg="cyan", bold=True)
    for r in records:
        step = f"  ({r.step_id})" if r.step_id else ""
        click.echo(f"   {r.stamp}  {r.kind:<9} {r.original_path}{step}")


@backups.command("restore")
@click.argument("path")
@click.option("--at", "stamp", default=None, help="Backup timestamp (or prefix). Default: latest.")
@click.option("--force", is_flag=True, help="Replace content modified since the backup.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def restore_cmd(
    ctx: click.Context,
    path: str,
    stamp: str | None,
    force: bool,
    as_json: bool,
) -> None:
    """Move a backup of PATH back into place.

    Whatever currently occupies PATH is itself backed up first.

    Examples:

        provision backups restore ~/.zshrc

        provision backups restore ~/.zshrc --at 20240101_120000
    """
    from provision.core.errors import RestoreConflictError

    manager = _resolve_backups(ctx)
    record = manager.find(path, stamp) if stamp else manager.latest(path)
    if record is None:
        which = f" at {stamp}" if stamp else ""
        message = f"No backup of {path}{which}"
        if as_json:
            click.echo(json.dumps({"error": message}, indent=2))
        else:
            click.secho(f"❌ {message}", fg="red")
        sys.exit(1)

    try:
        displaced = manager.restore(record, overwrite=force)
    except RestoreConflictError as e:
        if as_json:
            click.echo(json.dumps({"error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({
            "restored": record.model_dump(mode="json"),
            "displaced": displaced.model_dump(mode="json") if displaced else None,
        }, indent=2))
        return

    click.secho(f"✅ Restored {record.original_path} [{record.stamp}]", fg="green", bold=True)
    if displaced:
        click.echo(f"   Previous content backed up as [{displaced.stamp}]")
