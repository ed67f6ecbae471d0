"""
Backup ledger — append-only record of what a run moved aside.

Each backup root carries a ``backups.ndjson`` file with one line per
BackupEntry, so a user can map every saved file back to where it
lived before the run. Entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from dotinstall.core.models.backup import BackupEntry

logger = logging.getLogger(__name__)

LEDGER_FILE = "backups.ndjson"


class BackupLedger:
    """Append-only NDJSON writer for BackupEntry records."""

    def __init__(self, backup_root: Path):
        self._path = backup_root / LEDGER_FILE

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: BackupEntry) -> None:
        """Append one entry to the ledger."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Backup ledger entry written: %s", entry.original_path)
        except OSError as e:
            logger.error("Failed to write backup ledger entry: %s", e)

