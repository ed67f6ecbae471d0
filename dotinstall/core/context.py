"""
Run context — everything one installer run carries around.

There is no process-wide state: the CLI builds one RunContext and
passes it to the resolver inputs, the executor and the adapters.

    - home / config_root: where user configuration lives
    - source_dir: the dotfiles repo (``config/`` and ``scripts/`` inside)
    - dry_run: preview only, no side effects
    - cancel: set on user interrupt; checked between actions
    - backups: lazily created, timestamp-named backup root
"""

from __future__ import annotations

import logging
import os
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from dotinstall.core.engine.backup import BackupSet

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE_DIR = "config"
SCRIPTS_DIR = "scripts"


def expand_home(raw: str, home: Path) -> Path:
    """Expand a leading ``~`` against an explicit home directory."""
    if raw == "~":
        return home
    if raw.startswith("~/"):
        return home / raw[2:]
    return Path(raw)


def default_config_root(home: Path) -> Path:
    """Config root: DOTINSTALL_CONFIG_ROOT > XDG_CONFIG_HOME > ~/.config."""
    override = os.environ.get("DOTINSTALL_CONFIG_ROOT") or os.environ.get("XDG_CONFIG_HOME")
    if override:
        return expand_home(override, home)
    return home / ".config"


def _run_timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


class CancellationToken:
    """Cooperative stop signal. The executor finishes the running action first."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class RunContext:
    """Per-run values shared by the resolver, executor and adapters."""

    home: Path
    config_root: Path
    source_dir: Path
    dry_run: bool = False
    timestamp: str = field(default_factory=_run_timestamp)
    cancel: CancellationToken = field(default_factory=CancellationToken)
    backups: BackupSet | None = None

    def __post_init__(self) -> None:
        if self.backups is None:
            self.backups = BackupSet(self.config_root, self.timestamp, home=self.home)

    @classmethod
    def for_user(
        cls,
        source_dir: Path,
        dry_run: bool = False,
        home: Path | None = None,
    ) -> RunContext:
        home = home or Path.home()
        return cls(
            home=home,
            config_root=default_config_root(home),
            source_dir=source_dir.resolve(),
            dry_run=dry_run,
        )

    @property
    def config_dir(self) -> Path:
        """Config-template directory inside the dotfiles repo."""
        return self.source_dir / CONFIG_TEMPLATE_DIR

    @property
    def scripts_dir(self) -> Path:
        """Helper scripts directory inside the dotfiles repo."""
        return self.source_dir / SCRIPTS_DIR

    def expand(self, raw: str) -> Path:
        return expand_home(raw, self.home)


@contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[CancellationToken]:
    """Turn the first Ctrl-C into a cancellation request.

    A second Ctrl-C raises KeyboardInterrupt as usual.
    """
    if threading.current_thread() is not threading.main_thread():
        # Signal handlers can only be installed from the main thread
        yield token
        return

    previous = signal.getsignal(signal.SIGINT)

    def _handler(signum, frame):
        if token.is_cancelled():
            raise KeyboardInterrupt
        token.cancel()
        logger.warning("Interrupted — finishing the current action, then stopping")

    signal.signal(signal.SIGINT, _handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)
