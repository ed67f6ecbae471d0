"""
Bundled data — profile manifests shipped with the package.

    from dotinstall.core.data import bundled_profile

    path = bundled_profile()            # profiles/hyprland.yml
    path = bundled_profile("hyprland")
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent
DEFAULT_PROFILE = "hyprland"


def bundled_profile(name: str = DEFAULT_PROFILE) -> Path:
    """Path of a bundled profile manifest (may not exist for unknown names)."""
    path = _DATA_DIR / "profiles" / f"{name}.yml"
    if not path.exists():
        logger.warning("Bundled profile not found: %s", path)
    return path


def list_profiles() -> list[str]:
    """Names of all bundled profiles."""
    return sorted(p.stem for p in (_DATA_DIR / "profiles").glob("*.yml"))
