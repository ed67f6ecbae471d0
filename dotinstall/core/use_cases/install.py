"""
Install use case — the full run, from manifest to report.

This is the top-level orchestrator: it loads the manifest, checks
preconditions, settles the optional extras, resolves the plan, executes
it and builds the report. Fatal errors (preconditions, manifest) come
back as ``InstallResult.error``; nothing here calls ``sys.exit``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from dotinstall.adapters.registry import AdapterRegistry, default_registry
from dotinstall.core.config.loader import find_manifest, load_manifest
from dotinstall.core.context import RunContext, cancel_on_interrupt
from dotinstall.core.data import DEFAULT_PROFILE
from dotinstall.core.engine.executor import execute_plan
from dotinstall.core.engine.report import InstallReport, build_report
from dotinstall.core.engine.resolver import ResolveInputs, resolve_plan
from dotinstall.core.errors import ManifestError, PreconditionError
from dotinstall.core.models.manifest import ExtraGroup, Manifest
from dotinstall.core.models.plan import Plan
from dotinstall.core.preconditions import check_preconditions

logger = logging.getLogger(__name__)

# Asked once per extra group when no selection was given up front
ExtraPrompt = Callable[[ExtraGroup], bool]


@dataclass
class InstallResult:
    """Result of one installer run."""

    report: InstallReport | None = None
    plan: Plan | None = None
    manifest: Manifest | None = None
    manifest_path: Path | None = None
    family: str | None = None
    error: str | None = None
    error_kind: str | None = None   # "precondition" or "manifest"
    unavailable: list[str] = field(default_factory=list)   # adapters the plan needs but cannot use

    @property
    def exit_code(self) -> int:
        if self.error:
            return 1
        return self.report.exit_code if self.report else 0

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            result["error_kind"] = self.error_kind
            return result

        result["manifest"] = str(self.manifest_path) if self.manifest_path else None
        if self.unavailable:
            result["unavailable"] = list(self.unavailable)
        if self.manifest and self.manifest.notes:
            result["notes"] = list(self.manifest.notes)
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def select_extras(
    manifest: Manifest,
    requested: list[str] | None = None,
    all_extras: bool = False,
    prompt: ExtraPrompt | None = None,
) -> frozenset[str]:
    """Settle which optional groups to include, before the plan is built.

    Explicit names win, then ``all_extras``, then the prompt callback.
    Unknown names are left in so the resolver reports them.
    """
    if requested:
        return frozenset(requested)
    if all_extras:
        return frozenset(extra.name for extra in manifest.extras)
    if prompt is None:
        return frozenset()
    return frozenset(extra.name for extra in manifest.extras if prompt(extra))


def unavailable_adapters(plan: Plan, registry: AdapterRegistry) -> list[str]:
    """Adapters the plan needs that are missing or unavailable on this machine.

    Each one is logged as a warning before anything runs; their actions
    still run and fail visibly.
    """
    needed = {a.adapter for action in plan.actions for a in (action, *action.fallbacks)}
    status = registry.adapter_status()
    missing = sorted(name for name in needed if not status.get(name, {}).get("available", False))
    for name in missing:
        logger.warning("Adapter '%s' is not available; its actions will fail", name)
    return missing


def run_install(
    source_dir: Path,
    manifest_path: Path | None = None,
    profile: str = DEFAULT_PROFILE,
    dry_run: bool = False,
    extras: list[str] | None = None,
    all_extras: bool = False,
    prompt: ExtraPrompt | None = None,
    registry: AdapterRegistry | None = None,
    context: RunContext | None = None,
    os_release_path: Path | None = None,
    euid: int | None = None,
) -> InstallResult:
    """Install the profile described by a manifest.

    Args:
        source_dir: Dotfiles repo root (``config/`` and ``scripts/`` inside).
        manifest_path: Explicit manifest; default is the repo's
            ``manifest.yml`` or the bundled profile.
        profile: Bundled profile name used when the repo has no manifest.
        dry_run: Preview only. Prompts are never shown in dry-run.
        extras: Optional groups to include, by name.
        all_extras: Include every optional group.
        prompt: Asked per optional group when nothing was selected.
        registry: Optional pre-configured adapter registry.
        context: Optional pre-built run context (tests pass a temp home).
        os_release_path: Override for the OS identification file.
        euid: Override for the effective user id.

    Returns:
        InstallResult with the report, or ``error`` on a fatal problem.
    """
    result = InstallResult()

    # ── Load manifest ────────────────────────────────────────────
    try:
        if manifest_path is None:
            manifest_path = find_manifest(source_dir, profile)
        result.manifest_path = manifest_path
        manifest = load_manifest(manifest_path)
        result.manifest = manifest
    except ManifestError as e:
        result.error = str(e)
        result.error_kind = "manifest"
        return result

    # ── Preconditions ────────────────────────────────────────────
    try:
        family = check_preconditions(
            source_dir,
            manifest.families,
            os_release_path=os_release_path,
            euid=euid,
        )
        result.family = family
    except PreconditionError as e:
        result.error = str(e)
        result.error_kind = "precondition"
        return result

    if context is None:
        context = RunContext.for_user(source_dir, dry_run=dry_run)

    # ── Resolve plan ─────────────────────────────────────────────
    chosen = select_extras(
        manifest,
        requested=extras,
        all_extras=all_extras,
        prompt=None if context.dry_run else prompt,
    )
    try:
        plan = resolve_plan(manifest, ResolveInputs.from_context(context, family, chosen))
        result.plan = plan
    except ManifestError as e:
        result.error = str(e)
        result.error_kind = "manifest"
        return result

    # ── Execute ──────────────────────────────────────────────────
    if registry is None:
        registry = default_registry()
    if not context.dry_run:
        result.unavailable = unavailable_adapters(plan, registry)

    with cancel_on_interrupt(context.cancel):
        execution = execute_plan(plan, registry, context)

    result.report = build_report(execution, plan, context.backups)
    logger.info(
        "Run finished: %s, exit code %d",
        result.report.status,
        result.report.exit_code,
    )
    return result
