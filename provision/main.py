"""
provision — CLI entrypoint.

Usage:
    provision --help
    provision plan
    provision install --dry-run
    provision cleanup
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from provision import __version__
from provision.core.models.report import Outcome, RunReport
from provision.core.observability.logging_config import setup_logging

_OUTCOME_STYLE = {
    Outcome.APPLIED: ("✅", "green"),
    Outcome.SKIPPED: ("⏭️ ", "white"),
    Outcome.FAILED: ("❌", "red"),
    Outcome.AWAITING_CONFIRMATION: ("⏸️ ", "yellow"),
    Outcome.WOULD_APPLY: ("📝", "cyan"),
}

_STATUS_COLOR = {"ok": "green", "partial": "yellow", "failed": "red", "cancelled": "yellow"}


def _split_ids(value: str | None) -> list[str] | None:
    """Parse ``--only=a,b`` into a list of step ids."""
    if not value:
        return None
    ids = [v.strip() for v in value.split(",") if v.strip()]
    return ids or None


def _print_report(report: RunReport, quiet: bool = False) -> None:
    """Render a run report as one line per step plus a summary."""
    if not quiet:
        title = f"{report.mode.capitalize()}{' (dry run)' if report.dry_run else ''}"
        click.secho(f"\n🔧 {title} — {report.run_id}", fg="cyan", bold=True)

    for entry in report.entries:
        icon, color = _OUTCOME_STYLE.get(entry.outcome, ("•", "white"))
        line = f"   {icon} {entry.step_id}"
        if entry.reason:
            line += f" ({entry.reason})"
        click.secho(line, fg=color)
        if entry.output and (entry.outcome != Outcome.SKIPPED or entry.reason != "halted"):
            if not quiet or entry.outcome == Outcome.FAILED:
                for out_line in entry.output.strip().splitlines()[-5:]:
                    click.echo(f"        {out_line}")
        for record in entry.backups:
            click.echo(f"        💾 {record.original_path} [{record.stamp}]")

    click.echo()
    status_color = _STATUS_COLOR.get(report.status, "white")
    summary = (
        f"   {report.applied} applied, {report.skipped} skipped, {report.failed} failed"
    )
    if report.dry_run:
        summary += f", {report.planned} would apply"
    click.secho(f"   Status: {report.status}", fg=status_color, bold=True)
    click.echo(summary)
    if report.halted:
        click.secho("   Halted after a failure; nothing was rolled back.", fg="yellow")
    if report.cancelled:
        click.secho("   Cancelled at a confirmation prompt.", fg="yellow")


@click.group()
@click.version_option(version=__version__, prog_name="provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """provision — declarative, idempotent environment setup."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = None  # PROVISION_LOG_LEVEL or WARNING

    setup_logging(level=level)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would change without touching anything.")
@click.option("--only", default=None, help="Comma-separated step ids to run.")
@click.option("--with-deps", is_flag=True, help="Also run the dependencies of --only steps.")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Confirm every interactive step.")
@click.option("--continue-on-error", is_flag=True, help="Keep going after a failed step.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    dry_run: bool,
    only: str | None,
    with_deps: bool,
    assume_yes: bool,
    continue_on_error: bool,
    as_json: bool,
) -> None:
    """Apply every step that is not already satisfied."""
    from provision.core.engine.gate import AutoGate, ConsoleGate
    from provision.core.use_cases.run import run_install

    result = run_install(
        config_path=ctx.obj.get("config_path"),
        only=_split_ids(only),
        with_deps=with_deps,
        dry_run=dry_run,
        assume_yes=assume_yes,
        continue_on_error=continue_on_error,
        gate=AutoGate() if assume_yes else ConsoleGate(),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.report is not None  # guaranteed after error check above
    _print_report(result.report, quiet=ctx.obj.get("quiet", False))

    if result.notes:
        click.echo()
        click.secho("📌 Next steps:", fg="cyan", bold=True)
        for note in result.notes:
            click.echo(f"   • {note}")

    click.echo()
    if not result.ok:
        sys.exit(1)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be reverted.")
@click.option("--only", default=None, help="Comma-separated step ids to revert.")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Skip all confirmations.")
@click.option(
    "--force-restore",
    is_flag=True,
    help="Restore backups over files modified since the backup was taken.",
)
@click.option("--continue-on-error", is_flag=True, help="Keep going after a failed step.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def cleanup(
    ctx: click.Context,
    dry_run: bool,
    only: str | None,
    assume_yes: bool,
    force_restore: bool,
    continue_on_error: bool,
    as_json: bool,
) -> None:
    """Revert steps in reverse order and restore backed-up files."""
    from provision.core.engine.gate import AutoGate, ConsoleGate
    from provision.core.errors import ConfirmationCancelled
    from provision.core.use_cases.run import run_cleanup

    try:
        result = run_cleanup(
            config_path=ctx.obj.get("config_path"),
            only=_split_ids(only),
            dry_run=dry_run,
            assume_yes=assume_yes,
            allow_overwrite=force_restore,
            continue_on_error=continue_on_error,
            gate=AutoGate() if assume_yes else ConsoleGate(),
            confirm=ConsoleGate(require_word="yes"),
        )
    except ConfirmationCancelled:
        click.secho("Cleanup cancelled. Nothing was changed.", fg="yellow")
        return

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.report is not None
    _print_report(result.report, quiet=ctx.obj.get("quiet", False))
    click.echo()
    if not result.ok:
        sys.exit(1)


@cli.command()
@click.option("--reverse", is_flag=True, help="Show the cleanup order instead.")
@click.option("--only", default=None, help="Comma-separated step ids.")
@click.option("--with-deps", is_flag=True, help="Include the dependencies of --only steps.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, reverse: bool, only: str | None, with_deps: bool, as_json: bool) -> None:
    """Print the resolved execution order."""
    from provision.core.use_cases.plan import plan_run

    result = plan_run(
        config_path=ctx.obj.get("config_path"),
        only=_split_ids(only),
        with_deps=with_deps,
        reverse=reverse,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.error is None else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    label = "Cleanup" if reverse else "Install"
    click.secho(f"\n📋 {label} order ({len(result.steps)} steps):", fg="cyan", bold=True)
    for i, step in enumerate(result.steps, 1):
        deps = f"  ← {', '.join(step.depends_on)}" if step.depends_on else ""
        click.echo(f"   {i:>2}. {step.id}{deps}")
        if ctx.obj.get("verbose") and step.description:
            click.echo(f"       {step.description}")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def steps(ctx: click.Context, as_json: bool) -> None:
    """List registered steps and their flags."""
    from provision.core.use_cases.plan import list_steps

    result = list_steps(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.error is None else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if not result.steps:
        click.secho("No steps defined.", fg="yellow")
        return

    click.secho(f"\n📋 Steps ({len(result.steps)}):", fg="cyan", bold=True)
    for step in result.steps:
        flags = []
        if step.destructive:
            flags.append("destructive")
        if step.interactive:
            flags.append("interactive")
        if not step.reversible:
            flags.append("irreversible")
        flag_label = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"   • {step.id} ({step.action.name}){flag_label}")
        if step.description:
            click.echo(f"       {step.description}")
    click.echo()


@cli.command()
@click.option("-n", "count", default=20, type=int, help="Number of entries to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def report(ctx: click.Context, count: int, as_json: bool) -> None:
    """Show recent run log entries."""
    from provision.core.config.loader import (
        ConfigError,
        config_root,
        find_config_file,
        load_config,
        run_log_path,
    )
    from provision.core.persistence.run_log import RunLog

    config_path = ctx.obj.get("config_path") or find_config_file()
    try:
        if config_path is None:
            raise ConfigError("No provision.yml found.")
        config = load_config(config_path)
    except ConfigError as e:
        if as_json:
            click.echo(json.dumps({"error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    entries = RunLog(run_log_path(config, config_root(config_path))).read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.secho("No runs logged yet.", fg="yellow")
        return

    click.secho(f"\n📜 Last {len(entries)} step results:", fg="cyan", bold=True)
    for e in entries:
        icon, color = _OUTCOME_STYLE.get(Outcome(e.outcome), ("•", "white"))
        dry = " [dry-run]" if e.dry_run else ""
        reason = f" ({e.reason})" if e.reason else ""
        click.secho(f"   {icon} {e.timestamp[:19]}  {e.mode:<7} {e.step_id}{reason}{dry}", fg=color)
    click.echo()


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate provision.yml configuration."""
    from provision.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Name:  {result.config.name}")
        click.echo(f"   Steps: {len(result.config.steps)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


# ── Register sub-command groups from provision/ui/cli/ ─────────────

from provision.ui.cli.backups import backups  # noqa: E402

cli.add_command(backups)


if __name__ == "__main__":
    cli()
