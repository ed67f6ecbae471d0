"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest

from dotinstall.adapters.mock import MockAdapter
from dotinstall.adapters.registry import AdapterRegistry
from dotinstall.core.context import RunContext


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A throwaway home directory."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """A minimal dotfiles repo with config/ and scripts/."""
    source = tmp_path / "dotfiles"
    (source / "config" / "kitty").mkdir(parents=True)
    (source / "config" / "kitty" / "kitty.conf").write_text("font_size 12\n")
    (source / "config" / "hypr").mkdir()
    (source / "config" / "hypr" / "hyprland.conf").write_text("monitor=,preferred,auto,1\n")
    (source / "scripts").mkdir()
    (source / "scripts" / "daily.sh").write_text("#!/bin/bash\necho daily\n")
    return source


@pytest.fixture
def run_context(home: Path, source_dir: Path) -> RunContext:
    """Real-mode run context rooted in the temp home."""
    return RunContext(home=home, config_root=home / ".config", source_dir=source_dir)


@pytest.fixture
def os_release(tmp_path: Path) -> Path:
    """An Arch Linux os-release file."""
    path = tmp_path / "os-release"
    path.write_text(textwrap.dedent("""\
        NAME="Arch Linux"
        PRETTY_NAME="Arch Linux"
        ID=arch
        BUILD_ID=rolling
    """))
    return path


@pytest.fixture
def mock_registry() -> tuple[AdapterRegistry, MockAdapter, MockAdapter]:
    """Registry whose shell and filesystem adapters are both mocks."""
    registry = AdapterRegistry()
    shell = MockAdapter(adapter_name="shell")
    filesystem = MockAdapter(adapter_name="filesystem")
    registry.register(shell)
    registry.register(filesystem)
    return registry, shell, filesystem


def _snapshot_tree(root: Path) -> dict[str, bytes | None]:
    result: dict[str, bytes | None] = {}
    for path in sorted(root.rglob("*")):
        key = str(path.relative_to(root))
        result[key] = None if path.is_dir() else path.read_bytes()
    return result


@pytest.fixture
def snapshot_tree():
    """Map every path under a root to its bytes (None for directories)."""
    return _snapshot_tree
