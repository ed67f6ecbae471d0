"""
BackupSet — one lazily created, timestamp-named backup root per run.

Before the executor overwrites a config directory or rewrites a text
file, the existing content is saved here. The root is only created on
the first overwrite, so a run that replaces nothing leaves no trace.
All backups of a run share the run's timestamp.

Layout mirrors where things lived: ``~/.config/kitty`` is saved as
``<root>/kitty``, ``~/.bashrc`` as ``<root>/.bashrc``.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from dotinstall.core.models.backup import BackupEntry
from dotinstall.core.persistence.backup_ledger import BackupLedger

logger = logging.getLogger(__name__)

BACKUP_PREFIX = ".config_backup_"


class BackupSet:
    """Backups made during one run, under a single root directory."""

    def __init__(self, config_root: Path, timestamp: str, home: Path | None = None):
        self._config_root = config_root
        self._home = home
        self._timestamp = timestamp
        self._root: Path | None = None
        self._ledger: BackupLedger | None = None
        self._entries: list[BackupEntry] = []

    @property
    def root(self) -> Path | None:
        """The backup root, or None if nothing has been backed up yet."""
        return self._root

    @property
    def entries(self) -> list[BackupEntry]:
        return list(self._entries)

    def _ensure_root(self) -> Path:
        if self._root is not None:
            return self._root

        candidate = self._config_root / f"{BACKUP_PREFIX}{self._timestamp}"
        suffix = 1
        while candidate.exists():
            candidate = self._config_root / f"{BACKUP_PREFIX}{self._timestamp}-{suffix}"
            suffix += 1

        candidate.mkdir(parents=True)
        self._root = candidate
        self._ledger = BackupLedger(candidate)
        logger.info("Backup root created: %s", candidate)
        return candidate

    def _relative(self, path: Path) -> Path:
        for base in (self._config_root, self._home):
            if base is None:
                continue
            try:
                return path.relative_to(base)
            except ValueError:
                continue
        return Path(path.name)

    def snapshot(self, path: Path, move: bool = False) -> BackupEntry:
        """Save ``path`` under the backup root.

        Args:
            path: Existing file or directory about to be overwritten.
            move: Move it aside (a rename on the same filesystem) instead
                of copying it. The caller then owns the empty slot.

        Returns:
            The recorded BackupEntry.
        """
        root = self._ensure_root()
        base = root / self._relative(path)
        dest = base
        suffix = 1
        while dest.exists() or dest.is_symlink():
            dest = base.with_name(f"{base.name}~{suffix}")
            suffix += 1
        dest.parent.mkdir(parents=True, exist_ok=True)

        if move:
            shutil.move(str(path), str(dest))
        elif path.is_dir() and not path.is_symlink():
            shutil.copytree(path, dest, symlinks=True)
        else:
            shutil.copy2(path, dest, follow_symlinks=False)

        entry = BackupEntry(
            original_path=str(path),
            backup_path=str(dest),
            moved=move,
        )
        self._entries.append(entry)
        assert self._ledger is not None
        self._ledger.write(entry)
        logger.info("Backed up %s → %s", path, dest)
        return entry
