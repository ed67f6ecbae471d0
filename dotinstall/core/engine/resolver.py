"""
Plan resolver — turns a manifest into an ordered, immutable Plan.

The resolver is a pure function: no filesystem access, no commands, no
prompts. Optional extras are decided before it runs and handed in via
ResolveInputs. Actions come out in dependency order:

    1. repositories / package-manager bootstrap
    2. core packages
    3. selected optional extras
    4. directory creation
    5. config directory copies (with backup)
    6. text-block merges (environment file first, then rc/INI files)
    7. session settings, services, post-install commands

Each package's eligible install methods become the primary Action plus
its ``fallbacks`` chain, in manifest order. A malformed entry raises
ManifestError and no Plan is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from dotinstall.core.context import CONFIG_TEMPLATE_DIR, SCRIPTS_DIR, RunContext, expand_home
from dotinstall.core.errors import ManifestError
from dotinstall.core.models.action import Action, ActionKind
from dotinstall.core.models.manifest import (
    CommandEntry,
    ConfigDirEntry,
    InstallMethod,
    Manifest,
    PackageEntry,
    RepositoryEntry,
    SessionSetting,
    TextBlockEntry,
)
from dotinstall.core.models.plan import Plan

logger = logging.getLogger(__name__)

PHASE_REPOSITORIES = 1
PHASE_PACKAGES = 2
PHASE_EXTRAS = 3
PHASE_DIRECTORIES = 4
PHASE_CONFIG = 5
PHASE_MERGES = 6
PHASE_SESSION = 7

# Package manager used for bare package names
NATIVE_MANAGER = {
    "arch": "pacman",
    "fedora": "dnf",
}

# Methods tied to one family; anything absent here works everywhere
METHOD_FAMILY = {
    "pacman": "arch",
    "yay": "arch",
    "paru": "arch",
    "dnf": "fedora",
}


@dataclass(frozen=True)
class ResolveInputs:
    """Everything the resolver needs besides the manifest."""

    family: str
    home: Path
    config_root: Path
    source_dir: Path
    extras: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_context(
        cls,
        context: RunContext,
        family: str,
        extras: frozenset[str] | set[str] = frozenset(),
    ) -> ResolveInputs:
        return cls(
            family=family,
            home=context.home,
            config_root=context.config_root,
            source_dir=context.source_dir,
            extras=frozenset(extras),
        )

    @property
    def scripts_dir(self) -> Path:
        return self.source_dir / SCRIPTS_DIR

    def expand(self, raw: str) -> Path:
        return expand_home(raw, self.home)


def _method_argv(
    method: InstallMethod,
    package: str,
    inputs: ResolveInputs,
    entry_label: str,
) -> list[str]:
    """Build the install command for one method."""
    via = method.via
    if via == "pacman":
        return ["sudo", "pacman", "-S", "--needed", "--noconfirm", package]
    if via in ("yay", "paru"):
        return [via, "-S", "--needed", "--noconfirm", package]
    if via == "dnf":
        return ["sudo", "dnf", "install", "-y", package]
    if via == "flatpak":
        return ["flatpak", "install", "-y", method.remote, package]
    if via == "cargo":
        return ["cargo", "install", package]
    if via == "script":
        if not method.script:
            raise ManifestError("method 'script' needs a 'script' path", entry=entry_label)
        return ["bash", str(inputs.scripts_dir / method.script)]
    if via == "command":
        if not method.command:
            raise ManifestError("method 'command' needs a non-empty 'command'", entry=entry_label)
        return list(method.command)
    raise ManifestError(f"unknown install method '{via}'", entry=entry_label)


def _applies(families: list[str] | None, family: str) -> bool:
    return families is None or family in families


class _PlanBuilder:
    """Accumulates Actions, rejecting duplicate ids."""

    def __init__(self, inputs: ResolveInputs):
        self.inputs = inputs
        self.actions: list[Action] = []
        self.excluded: list[str] = []
        self._ids: set[str] = set()

    def add(self, action: Action, entry_label: str) -> None:
        if not action.target.strip():
            raise ManifestError("empty target", entry=entry_label)
        if action.id in self._ids:
            raise ManifestError(f"duplicate entry '{action.target}'", entry=entry_label)
        self._ids.add(action.id)
        self.actions.append(action)

    # ── Phase 1 ──────────────────────────────────────────────────

    def repository(self, index: int, entry: RepositoryEntry) -> None:
        label = f"repositories[{index}] {entry.name}"
        if not _applies(entry.families, self.inputs.family):
            return

        sources = [s for s in (entry.copr, entry.flatpak_remote, entry.command) if s]
        if len(sources) != 1:
            raise ManifestError(
                "expected exactly one of 'copr', 'flatpak_remote', 'command'",
                entry=label,
            )

        if entry.copr:
            argv = ["sudo", "dnf", "copr", "enable", "-y", entry.copr]
            text = f"Would enable COPR repository {entry.copr}"
        elif entry.flatpak_remote:
            argv = ["flatpak", "remote-add", "--if-not-exists", entry.name, entry.flatpak_remote]
            text = f"Would add flatpak remote {entry.name}"
        else:
            argv = list(entry.command or [])
            text = f"Would enable repository {entry.name}"

        action_id = f"{PHASE_REPOSITORIES}:{ActionKind.ENABLE_REPOSITORY}:{entry.name}"
        fallbacks = []
        for n, fallback_argv in enumerate(entry.fallbacks, start=1):
            if not fallback_argv:
                raise ManifestError(f"fallback {n} has an empty command", entry=label)
            fallbacks.append(Action(
                id=f"{action_id}#fallback{n}",
                kind=ActionKind.ENABLE_REPOSITORY,
                target=entry.name,
                phase=PHASE_REPOSITORIES,
                command=tuple(fallback_argv),
                description=f"Would run {' '.join(fallback_argv)}",
            ))

        self.add(Action(
            id=action_id,
            kind=ActionKind.ENABLE_REPOSITORY,
            target=entry.name,
            phase=PHASE_REPOSITORIES,
            command=tuple(argv),
            skip_if_command=entry.skip_if_command,
            required=entry.required,
            fallbacks=tuple(fallbacks),
            description=entry.description or text,
        ), label)

    # ── Phases 2 and 3 ───────────────────────────────────────────

    def package(self, phase: int, label: str, entry: PackageEntry, group_required: bool) -> None:
        family = self.inputs.family
        if not entry.name.strip():
            raise ManifestError("empty target", entry=label)
        if not _applies(entry.families, family):
            self.excluded.append(entry.name)
            return

        methods = entry.methods
        if not methods:
            native = NATIVE_MANAGER.get(family)
            if native is None:
                raise ManifestError(f"no native package manager for family '{family}'", entry=label)
            methods = [InstallMethod(via=native)]  # type: ignore[arg-type]

        eligible = [m for m in methods if METHOD_FAMILY.get(m.via, family) == family]
        if not eligible:
            logger.debug("No install method for %s on %s", entry.name, family)
            self.excluded.append(entry.name)
            return

        action_id = f"{phase}:{ActionKind.INSTALL_PACKAGE}:{entry.name}"
        candidates = []
        for n, method in enumerate(eligible):
            package = method.package or entry.name
            argv = _method_argv(method, package, self.inputs, label)
            candidates.append(Action(
                id=action_id if n == 0 else f"{action_id}#fallback{n}",
                kind=ActionKind.INSTALL_PACKAGE,
                target=package,
                phase=phase,
                command=tuple(argv),
                description=f"Would install {package} via {method.via}",
            ))

        primary = candidates[0]
        required = entry.required if entry.required is not None else group_required
        self.add(primary.model_copy(update={
            "fallbacks": tuple(candidates[1:]),
            "required": required,
            "description": entry.description or primary.description,
        }), label)

    # ── Phase 4 ──────────────────────────────────────────────────

    def directory(self, path: Path, label: str) -> None:
        action_id = f"{PHASE_DIRECTORIES}:{ActionKind.CREATE_DIR}:{path}"
        if action_id in self._ids:
            return
        self.add(Action(
            id=action_id,
            kind=ActionKind.CREATE_DIR,
            target=str(path),
            phase=PHASE_DIRECTORIES,
            description=f"Would create directory {path}",
        ), label)

    # ── Phase 5 ──────────────────────────────────────────────────

    def config_dir(self, index: int, entry: ConfigDirEntry) -> None:
        name, source, dest = entry.name, entry.source, entry.dest
        label = f"config_dirs[{index}] {name}"
        if not name.strip() or "/" in name:
            raise ManifestError("config dir name must be a single path component", entry=label)
        source_path = self.inputs.source_dir / (source or f"{CONFIG_TEMPLATE_DIR}/{name}")
        dest_path = self.inputs.expand(dest) if dest else self.inputs.config_root / name
        self.add(Action(
            id=f"{PHASE_CONFIG}:{ActionKind.COPY_CONFIG_DIR}:{dest_path}",
            kind=ActionKind.COPY_CONFIG_DIR,
            target=str(dest_path),
            source=str(source_path),
            executable=tuple(entry.executable),
            phase=PHASE_CONFIG,
            required=entry.required,
            description=f"Would back up and replace {dest_path} with {source_path}",
        ), label)

    # ── Phase 6 ──────────────────────────────────────────────────

    def merge(self, key: str, label: str, block: TextBlockEntry) -> None:
        if not block.content.strip():
            raise ManifestError("text block has no content", entry=label)
        if block.marker and not any(block.marker in line for line in block.content.splitlines()):
            # A marker the block never writes would never be found on the next run
            raise ManifestError("marker must appear in the block content", entry=label)
        target = self.inputs.expand(block.target)
        where = f"[{block.section}] in {target}" if block.section else str(target)
        self.add(Action(
            id=f"{PHASE_MERGES}:{ActionKind.MERGE_TEXT_BLOCK}:{key}",
            kind=ActionKind.MERGE_TEXT_BLOCK,
            target=str(target),
            phase=PHASE_MERGES,
            content=block.content,
            marker=block.marker,
            section=block.section,
            requires_path=str(target) if block.only_if_exists else None,
            required=block.required,
            description=block.description or f"Would merge block into {where}",
        ), label)

    # ── Phase 7 ──────────────────────────────────────────────────

    def session_setting(self, index: int, setting: SessionSetting) -> None:
        label = f"session_settings[{index}] {setting.key}"
        if setting.command:
            argv = list(setting.command)
        elif setting.namespace:
            argv = ["gsettings", "set", setting.namespace, setting.key, setting.value]
        else:
            raise ManifestError("needs either 'namespace' or 'command'", entry=label)
        target = f"{setting.namespace}.{setting.key}" if setting.namespace else setting.key
        self.add(Action(
            id=f"{PHASE_SESSION}:{ActionKind.SET_ENV_VAR}:{target}",
            kind=ActionKind.SET_ENV_VAR,
            target=target,
            phase=PHASE_SESSION,
            command=tuple(argv),
            description=f"Would set {target} = {setting.value}",
        ), label)

    def service(self, index: int, name: str, user: bool) -> None:
        label = f"services[{index}] {name}"
        if user:
            argv = ["systemctl", "--user", "enable", "--now", name]
        else:
            argv = ["sudo", "systemctl", "enable", "--now", name]
        scope = "user " if user else ""
        self.add(Action(
            id=f"{PHASE_SESSION}:{ActionKind.ENABLE_SERVICE}:{name}",
            kind=ActionKind.ENABLE_SERVICE,
            target=name,
            phase=PHASE_SESSION,
            command=tuple(argv),
            description=f"Would enable {scope}service {name}",
        ), label)

    def command(self, index: int, entry: CommandEntry) -> None:
        label = f"commands[{index}] {entry.name}"
        if not _applies(entry.families, self.inputs.family):
            return
        if not entry.command:
            raise ManifestError("empty command", entry=label)
        self.add(Action(
            id=f"{PHASE_SESSION}:{ActionKind.RUN_COMMAND}:{entry.name}",
            kind=ActionKind.RUN_COMMAND,
            target=entry.name,
            phase=PHASE_SESSION,
            command=tuple(entry.command),
            timeout=entry.timeout,
            skip_if_command=entry.skip_if_command,
            requires_path=str(self.inputs.expand(entry.requires_path)) if entry.requires_path else None,
            required=entry.required,
            description=entry.description or f"Would run {' '.join(entry.command)}",
        ), label)


def resolve_plan(manifest: Manifest, inputs: ResolveInputs) -> Plan:
    """Build the ordered Plan for one run.

    Args:
        manifest: Validated manifest.
        inputs: OS family, paths and pre-selected extras.

    Returns:
        Plan with Actions in dependency order.

    Raises:
        ManifestError: On any malformed entry or unknown extra selection.
    """
    if inputs.family not in manifest.families:
        raise ManifestError(
            f"family '{inputs.family}' is not supported by this manifest "
            f"({', '.join(manifest.families)})",
            entry=manifest.name,
        )

    unknown = sorted(name for name in inputs.extras if manifest.get_extra(name) is None)
    if unknown:
        raise ManifestError(f"unknown extra(s) selected: {', '.join(unknown)}", entry="extras")

    builder = _PlanBuilder(inputs)

    for i, repo in enumerate(manifest.repositories):
        builder.repository(i, repo)

    for g, group in enumerate(manifest.packages):
        for p, entry in enumerate(group.packages):
            label = f"packages[{g}].{group.category}[{p}] {entry.name}"
            builder.package(PHASE_PACKAGES, label, entry, group.required)

    selected = [extra for extra in manifest.extras if extra.name in inputs.extras]
    for extra in selected:
        for p, entry in enumerate(extra.packages):
            builder.package(PHASE_EXTRAS, f"extras.{extra.name}[{p}] {entry.name}", entry, False)

    if manifest.config_dirs:
        builder.directory(inputs.config_root, "config_root")
    for d, raw in enumerate(manifest.directories):
        if not raw.strip():
            raise ManifestError("empty target", entry=f"directories[{d}]")
        builder.directory(inputs.expand(raw), f"directories[{d}] {raw}")

    for c, entry in enumerate(manifest.config_dirs):
        builder.config_dir(c, entry)

    if manifest.environment is not None and manifest.environment.variables:
        env = manifest.environment
        builder.merge("environment", "environment", TextBlockEntry(
            target=env.file,
            content=env.render(),
            marker=env.marker,
            description=f"Would add {len(env.variables)} environment variables to {env.file}",
        ))
    for b, block in enumerate(manifest.text_blocks):
        builder.merge(f"{b}:{block.target}", f"text_blocks[{b}] {block.target}", block)

    for s, setting in enumerate(manifest.session_settings):
        builder.session_setting(s, setting)
    for s, service in enumerate(manifest.services):
        builder.service(s, service.name, service.user)
    for c, command in enumerate(manifest.commands):
        builder.command(c, command)

    plan = Plan(
        name=manifest.name,
        family=inputs.family,
        actions=tuple(builder.actions),
        excluded=tuple(builder.excluded),
        extras=tuple(extra.name for extra in selected),
    )
    logger.info(
        "Resolved plan '%s' for %s: %d actions, %d excluded",
        plan.name, plan.family, plan.total_actions, len(plan.excluded),
    )
    return plan
