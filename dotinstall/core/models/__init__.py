"""
Domain models — Pydantic types for the installer.

All models are re-exported here for convenient access:

    from dotinstall.core.models import Action, Outcome, Plan, Manifest
"""

from dotinstall.core.models.action import (
    Action,
    ActionKind,
    Attempt,
    Outcome,
    OutcomeStatus,
    Receipt,
)
from dotinstall.core.models.backup import BackupEntry
from dotinstall.core.models.manifest import (
    CommandEntry,
    ConfigDirEntry,
    EnvironmentBlock,
    ExtraGroup,
    InstallMethod,
    Manifest,
    PackageEntry,
    PackageGroup,
    RepositoryEntry,
    ServiceEntry,
    SessionSetting,
    TextBlockEntry,
)
from dotinstall.core.models.plan import Plan

__all__ = [
    # action.py
    "Action",
    "ActionKind",
    "Attempt",
    # backup.py
    "BackupEntry",
    # manifest.py
    "CommandEntry",
    "ConfigDirEntry",
    "EnvironmentBlock",
    "ExtraGroup",
    "InstallMethod",
    "Manifest",
    "Outcome",
    "OutcomeStatus",
    "PackageEntry",
    "PackageGroup",
    # plan.py
    "Plan",
    "Receipt",
    "RepositoryEntry",
    "ServiceEntry",
    "SessionSetting",
    "TextBlockEntry",
]
