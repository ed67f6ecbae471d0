"""
Backup models — records of user content moved aside before an overwrite.

A BackupEntry is permanent, user-owned recovery state. The installer
creates entries but never deletes the files they point at.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class BackupEntry(BaseModel):
    """One pre-existing file or directory saved under the run's backup root."""

    model_config = ConfigDict(frozen=True)

    original_path: str
    backup_path: str
    timestamp: str = Field(default_factory=_now_iso)
    moved: bool = False             # True = original moved aside, False = copied
