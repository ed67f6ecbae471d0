"""
Preconditions — checks that run once, before any plan is resolved.

    - never run as root (home files would end up root-owned)
    - the OS identification file must map to a supported family
    - the dotfiles repo must provide ``config/`` and ``scripts/``

Every failure raises PreconditionError naming what is wrong.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotinstall.core.context import CONFIG_TEMPLATE_DIR, SCRIPTS_DIR
from dotinstall.core.errors import PreconditionError

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")

# Distribution IDs that share a package-manager family
FAMILY_ALIASES: dict[str, frozenset[str]] = {
    "arch": frozenset({"arch", "archarm", "endeavouros", "manjaro", "cachyos", "garuda"}),
    "fedora": frozenset({"fedora", "nobara", "ultramarine", "fedora-asahi-remix"}),
}


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release ``KEY=value`` lines, stripping optional quotes."""
    result: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        result[key.strip()] = value.strip().strip("\"'")
    return result


def read_os_release(path: Path | None = None) -> dict[str, str]:
    """Read the OS identification file.

    ``DOTINSTALL_OS_RELEASE`` overrides the default ``/etc/os-release``.
    """
    if path is None:
        override = os.environ.get("DOTINSTALL_OS_RELEASE")
        path = Path(override) if override else OS_RELEASE_PATH
    try:
        return parse_os_release(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PreconditionError(f"Cannot read OS identification file {path}: {e}") from e


def detect_family(os_release: dict[str, str], supported: list[str]) -> str:
    """Map ID / ID_LIKE to one of the supported package-manager families."""
    candidates = [os_release.get("ID", "").lower()]
    candidates.extend(os_release.get("ID_LIKE", "").lower().split())

    for distro_id in candidates:
        if not distro_id:
            continue
        for family in supported:
            if distro_id == family or distro_id in FAMILY_ALIASES.get(family, ()):
                return family

    name = os_release.get("PRETTY_NAME") or os_release.get("NAME") or "unknown"
    raise PreconditionError(
        f"Unsupported operating system '{name}'. "
        f"This profile supports: {', '.join(supported)}"
    )


def check_not_root(euid: int | None = None) -> None:
    if euid is None:
        euid = os.geteuid()
    if euid == 0:
        raise PreconditionError(
            "Refusing to run as root: configuration would be written with root ownership. "
            "Run as your normal user; commands that need privileges use sudo."
        )


def check_source_layout(source_dir: Path) -> None:
    """The dotfiles repo must contain both collaborator directories."""
    if not (source_dir / CONFIG_TEMPLATE_DIR).is_dir():
        raise PreconditionError(
            f"Config directory not found: {source_dir / CONFIG_TEMPLATE_DIR}. "
            "Run from the dotfiles repo or pass --source."
        )
    if not (source_dir / SCRIPTS_DIR).is_dir():
        raise PreconditionError(
            f"Scripts directory not found: {source_dir / SCRIPTS_DIR}. "
            "Run from the dotfiles repo or pass --source."
        )


def check_preconditions(
    source_dir: Path,
    supported_families: list[str],
    os_release_path: Path | None = None,
    euid: int | None = None,
) -> str:
    """Run every precondition in order and return the detected OS family.

    Raises:
        PreconditionError: On the first failed check.
    """
    check_not_root(euid)
    family = detect_family(read_os_release(os_release_path), supported_families)
    check_source_layout(source_dir)
    logger.info("Preconditions ok: family=%s source=%s", family, source_dir)
    return family
