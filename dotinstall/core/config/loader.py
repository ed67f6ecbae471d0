"""
Manifest loader — reads a profile manifest into domain models.

Reads YAML, validates against the Pydantic schema, and returns a typed
Manifest. Anything malformed surfaces as a ManifestError before a plan
is ever built.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from dotinstall.core.data import DEFAULT_PROFILE, bundled_profile
from dotinstall.core.errors import ManifestError
from dotinstall.core.models.manifest import Manifest

logger = logging.getLogger(__name__)

# Default manifest filename inside a dotfiles repo
MANIFEST_FILE = "manifest.yml"


def find_manifest(source_dir: Path, profile: str = DEFAULT_PROFILE) -> Path:
    """Locate the manifest for a dotfiles repo.

    Uses ``<source_dir>/manifest.yml`` when present, otherwise the
    bundled profile of that name.
    """
    candidate = source_dir / MANIFEST_FILE
    if candidate.is_file():
        return candidate
    logger.debug("No %s in %s, using bundled profile '%s'", MANIFEST_FILE, source_dir, profile)
    return bundled_profile(profile)


def load_manifest(path: Path) -> Manifest:
    """Load and validate a manifest.

    Args:
        path: Path to the manifest YAML.

    Returns:
        Validated Manifest model.

    Raises:
        ManifestError: If the file is missing, unreadable or invalid.
    """
    if not path.is_file():
        raise ManifestError(f"Manifest not found: {path}")

    logger.debug("Loading manifest from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(_describe_validation_error(e), entry=str(path)) from e

    logger.info(
        "Loaded manifest '%s': %d package groups, %d config dirs",
        manifest.name,
        len(manifest.packages),
        len(manifest.config_dirs),
    )
    return manifest


def _describe_validation_error(error: ValidationError) -> str:
    """One line per problem, each naming the offending entry's location."""
    lines = []
    for problem in error.errors():
        location = ".".join(str(part) for part in problem["loc"])
        lines.append(f"{location}: {problem['msg']}")
    return "invalid manifest\n  " + "\n  ".join(lines)
