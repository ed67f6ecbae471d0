"""
Action, Receipt and Outcome models — the execution contract.

Actions represent planned units of work. Receipts are what an adapter
returns for a single attempt. Outcomes are what the executor records
for an Action once its primary form and fallbacks have been tried.

Adapters NEVER raise: the engine sends Actions, adapters return
Receipts, the executor folds Receipts into Outcomes.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from dotinstall.core.models.backup import BackupEntry


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ActionKind(StrEnum):
    INSTALL_PACKAGE = "install_package"
    ENABLE_REPOSITORY = "enable_repository"
    COPY_CONFIG_DIR = "copy_config_dir"
    MERGE_TEXT_BLOCK = "merge_text_block"
    SET_ENV_VAR = "set_env_var"
    CREATE_DIR = "create_dir"
    RUN_COMMAND = "run_command"
    ENABLE_SERVICE = "enable_service"


# Kinds carried out by the filesystem adapter; everything else is a command.
FILESYSTEM_KINDS = frozenset({
    ActionKind.COPY_CONFIG_DIR,
    ActionKind.MERGE_TEXT_BLOCK,
    ActionKind.CREATE_DIR,
})

# Kinds that need a live desktop session or service bus. Their failure
# is recorded but never aborts the plan, whatever ``required`` says.
BEST_EFFORT_KINDS = frozenset({
    ActionKind.SET_ENV_VAR,
    ActionKind.ENABLE_SERVICE,
})


class Action(BaseModel):
    """One planned unit of install/copy/merge work.

    Actions are built by the plan resolver and never mutated afterwards.
    ``fallbacks`` are alternative Actions tried left to right when the
    primary form fails.
    """

    model_config = ConfigDict(frozen=True)

    id: str                                 # unique within a plan
    kind: ActionKind
    target: str                             # package name or path
    description: str = ""                   # dry-run preview text
    phase: int = 0
    required: bool = False
    fallbacks: tuple[Action, ...] = ()

    # Command-backed kinds
    command: tuple[str, ...] = ()
    timeout: int = 600
    skip_if_command: str | None = None      # skip when this executable is on PATH

    # Filesystem kinds
    source: str | None = None               # copy_config_dir source directory
    executable: tuple[str, ...] = ()        # globs made executable after the copy
    content: str = ""                       # merge_text_block payload
    marker: str | None = None               # idempotency marker line
    section: str | None = None              # INI section to merge under
    requires_path: str | None = None        # skip when this path does not exist

    @property
    def adapter(self) -> str:
        """Name of the adapter that carries out this kind of action."""
        return "filesystem" if self.kind in FILESYSTEM_KINDS else "shell"

    @property
    def best_effort(self) -> bool:
        return self.kind in BEST_EFFORT_KINDS

    @property
    def fatal_on_failure(self) -> bool:
        """Whether exhausting every attempt aborts the rest of the plan."""
        return self.required and not self.best_effort

    def preview(self) -> str:
        """Dry-run text, including the fallback chain if there is one."""
        text = self.description or f"Would {self.kind.value.replace('_', ' ')} {self.target}"
        if self.fallbacks:
            chain = " → ".join(f.description or f.target for f in self.fallbacks)
            text = f"{text} (fallbacks: {chain})"
        return text


class Receipt(BaseModel):
    """Result of one adapter attempt.

    The adapter NEVER raises exceptions — failures are captured here.
    """

    adapter: str
    action_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    backups: list[BackupEntry] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the action failed."""
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="failed",
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        adapter: str,
        action_id: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="skipped",
            output=reason,
            **kwargs,
        )


class OutcomeStatus(StrEnum):
    SUCCEEDED = "succeeded"
    SUCCEEDED_VIA_FALLBACK = "succeeded_via_fallback"
    SKIPPED = "skipped"
    FAILED = "failed"
    WOULD_RUN = "would_run"


class Attempt(BaseModel):
    """One try at an Action: index 0 is the primary form, 1..n the fallbacks."""

    model_config = ConfigDict(frozen=True)

    index: int
    action_id: str
    target: str
    status: Literal["ok", "skipped", "failed"]
    error: str | None = None
    duration_ms: int = 0

    @classmethod
    def from_receipt(cls, index: int, action: Action, receipt: Receipt) -> Attempt:
        return cls(
            index=index,
            action_id=action.id,
            target=action.target,
            status=receipt.status,
            error=receipt.error,
            duration_ms=receipt.duration_ms,
        )


class Outcome(BaseModel):
    """Recorded result of attempting one Action. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    action: Action
    status: OutcomeStatus
    detail: str = ""
    reason: str | None = None
    fallback_index: int | None = None       # 1-based, set for succeeded_via_fallback
    attempts: tuple[Attempt, ...] = ()
    backups: tuple[BackupEntry, ...] = ()
    failure: Literal["action_failure", "fallback_exhausted"] | None = None
    fatal: bool = False

    @property
    def ok(self) -> bool:
        return self.status in (OutcomeStatus.SUCCEEDED, OutcomeStatus.SUCCEEDED_VIA_FALLBACK)

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED

    @property
    def label(self) -> str:
        """Status as shown in transcripts, e.g. ``succeeded_via_fallback(2)``."""
        if self.status == OutcomeStatus.SUCCEEDED_VIA_FALLBACK:
            return f"{self.status.value}({self.fallback_index})"
        if self.status in (OutcomeStatus.SKIPPED, OutcomeStatus.FAILED) and self.reason:
            return f"{self.status.value}({self.reason})"
        return self.status.value
