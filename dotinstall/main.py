"""
dotinstall — CLI entrypoint.

Usage:
    dotinstall --help
    dotinstall --dry-run
    dotinstall --source ~/dotfiles --extra dev-apps
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from dotinstall import __version__
from dotinstall.core.data import DEFAULT_PROFILE, list_profiles
from dotinstall.core.models.action import OutcomeStatus
from dotinstall.core.models.manifest import ExtraGroup
from dotinstall.core.observability.logging_config import resolve_level, setup_logging

_STATUS_STYLE = {
    OutcomeStatus.SUCCEEDED: ("✓", "green"),
    OutcomeStatus.SUCCEEDED_VIA_FALLBACK: ("✓", "yellow"),
    OutcomeStatus.SKIPPED: ("⊘", "bright_black"),
    OutcomeStatus.FAILED: ("✗", "red"),
    OutcomeStatus.WOULD_RUN: ("◌", "cyan"),
}


def _confirm_extra(extra: ExtraGroup) -> bool:
    question = extra.prompt or f"Install optional group '{extra.name}'?"
    return click.confirm(question, default=False)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="dotinstall")
@click.option("--dry-run", "-n", is_flag=True, help="Show what would be done without changing anything.")
@click.option(
    "--source",
    "source_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Dotfiles repo containing config/ and scripts/.",
)
@click.option(
    "--manifest",
    "manifest_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Manifest YAML (default: <source>/manifest.yml, else the bundled profile).",
)
@click.option(
    "--profile",
    type=click.Choice(list_profiles()),
    default=DEFAULT_PROFILE,
    show_default=True,
    help="Bundled profile used when the source has no manifest.",
)
@click.option("--extra", "extras", multiple=True, help="Include an optional group (repeatable).")
@click.option("--all-extras", is_flag=True, help="Include every optional group.")
@click.option("--no-prompt", is_flag=True, help="Never ask about optional groups.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output the report as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Log every action as it runs.")
@click.option("--quiet", "-q", is_flag=True, help="Only print the summary.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
def cli(
    dry_run: bool,
    source_dir: Path,
    manifest_path: Path | None,
    profile: str,
    extras: tuple[str, ...],
    all_extras: bool,
    no_prompt: bool,
    as_json: bool,
    verbose: bool,
    quiet: bool,
    debug: bool,
) -> None:
    """Install and configure the desktop profile described by a manifest.

    Examples:

        dotinstall --dry-run

        dotinstall --source ~/dotfiles --extra dev-apps

        dotinstall --all-extras --json
    """
    from dotinstall.core.use_cases.install import run_install

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(level=resolve_level(verbose=verbose, quiet=quiet, debug=debug))

    interactive = sys.stdin.isatty() and not (no_prompt or as_json)
    if dry_run and not (quiet or as_json):
        click.secho("🔍 DRY RUN — nothing will be installed, copied or changed", fg="yellow", bold=True)

    result = run_install(
        source_dir=source_dir,
        manifest_path=manifest_path,
        profile=profile,
        dry_run=dry_run,
        extras=list(extras) if extras else None,
        all_extras=all_extras,
        prompt=_confirm_extra if interactive else None,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)

    report = result.report
    assert report is not None  # guaranteed after error check above

    if not quiet:
        mode_label = "[dry-run] " if report.dry_run else ""
        click.secho(f"\n⚡ {mode_label}{report.plan_name} ({report.family})", fg="cyan", bold=True)
        click.echo(f"   Actions: {report.planned}")
        if report.extras:
            click.echo(f"   Extras: {', '.join(report.extras)}")
        if report.excluded:
            click.echo(f"   Not available on {report.family}: {', '.join(report.excluded)}")
        click.echo()

        for outcome, line in zip(report.outcomes, _outcome_blocks(report.transcript())):
            _, color = _STATUS_STYLE[outcome.status]
            click.secho(line[0], fg=color)
            for extra_line in line[1:]:
                click.echo(extra_line)

    # Summary
    click.echo()
    counts = report.counts()
    summary = ", ".join(f"{name}: {count}" for name, count in counts.items() if count)
    status_color = {"ok": "green", "partial": "yellow"}.get(report.status, "red")
    click.secho(f"   Result: {report.status} ({summary or 'nothing to do'})", fg=status_color, bold=True)

    if report.not_attempted:
        click.secho(f"   Not attempted: {report.not_attempted}", fg="yellow")
    if report.abort is not None:
        click.secho(f"   ✗ {report.abort}", fg="red", err=True)
    if report.interrupt_note:
        click.secho(f"   {report.interrupt_note}", fg="yellow")
    if report.backup_root is not None:
        click.echo(f"   💾 Backups ({report.backup_count}): {report.backup_root}")

    notes = result.manifest.notes if result.manifest else []
    if notes and not (quiet or report.dry_run) and report.exit_code == 0:
        click.echo()
        click.secho("📝 Next steps:", fg="cyan", bold=True)
        for note in notes:
            click.echo(f"   • {note}")

    click.echo()
    sys.exit(report.exit_code)


def _outcome_blocks(lines: list[str]) -> list[list[str]]:
    """Group transcript lines so each outcome's detail stays with its headline."""
    blocks: list[list[str]] = []
    for line in lines:
        if line.startswith("       ") and blocks:
            blocks[-1].append(line)
        else:
            blocks.append([line])
    return blocks


if __name__ == "__main__":
    cli()
