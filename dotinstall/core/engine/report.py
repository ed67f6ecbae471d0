"""
Report builder — turn the executor's outcomes into what the user sees.

    - a count per outcome status (every status key always present)
    - an ordered, human-readable transcript, failures with their detail
    - the process exit code
    - the backup root, verbatim, when anything was moved aside
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from dotinstall.core.engine.backup import BackupSet
from dotinstall.core.engine.executor import ExecutionReport
from dotinstall.core.errors import ActionFailure
from dotinstall.core.models.action import Outcome, OutcomeStatus
from dotinstall.core.models.plan import Plan

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130    # 128 + SIGINT, what shells report for Ctrl-C


@dataclass
class InstallReport:
    """Final summary of one run."""

    plan_name: str = ""
    family: str = ""
    dry_run: bool = False
    outcomes: list[Outcome] = field(default_factory=list)
    planned: int = 0
    excluded: list[str] = field(default_factory=list)
    extras: list[str] = field(default_factory=list)
    abort: ActionFailure | None = None
    cancelled: bool = False
    backup_root: Path | None = None
    backup_count: int = 0

    def counts(self) -> dict[str, int]:
        """Number of outcomes per status. Every status is listed, even at zero."""
        result = {status.value: 0 for status in OutcomeStatus}
        for outcome in self.outcomes:
            result[outcome.status.value] += 1
        return result

    @property
    def not_attempted(self) -> int:
        """Planned actions that never ran because of an abort or cancel."""
        return self.planned - len(self.outcomes)

    @property
    def exit_code(self) -> int:
        if self.abort is not None:
            return EXIT_FAILED
        if self.cancelled:
            return EXIT_CANCELLED
        return EXIT_OK

    @property
    def interrupt_note(self) -> str | None:
        """Why the run stopped early on Ctrl-C, or None when it did not."""
        if not self.cancelled or self.abort is not None:
            return None
        return f"Interrupted by Ctrl-C: stopped before the next action (exit code {EXIT_CANCELLED})"

    @property
    def status(self) -> str:
        if self.abort is not None:
            return "aborted"
        if self.cancelled:
            return "cancelled"
        if any(o.failed for o in self.outcomes):
            return "partial"
        return "ok"

    def transcript(self) -> list[str]:
        """One line per outcome, in execution order, plus failure detail.

        A cancelled run ends with a line saying the 130 exit code came
        from Ctrl-C.
        """
        lines: list[str] = []
        for number, outcome in enumerate(self.outcomes, start=1):
            action = outcome.action
            line = f"{number:>3}. [{outcome.label}] {action.id}"
            if outcome.status == OutcomeStatus.WOULD_RUN:
                line = f"{line}: {outcome.detail}"
            lines.append(line)

            if outcome.status == OutcomeStatus.SUCCEEDED_VIA_FALLBACK:
                for attempt in outcome.attempts[:-1]:
                    lines.append(f"       ↳ attempt {attempt.index} ({attempt.target}) failed: "
                                 f"{_summary(attempt.error)}")
            elif outcome.failed:
                for detail_line in outcome.detail.splitlines()[:10]:
                    lines.append(f"       │ {detail_line}")
                if action.required and not outcome.fatal:
                    lines.append("       │ (needs a live session; not treated as fatal)")
        if self.interrupt_note:
            lines.append(f"  ✗ {self.interrupt_note}")
        return lines

    def to_dict(self) -> dict:
        return {
            "plan": self.plan_name,
            "family": self.family,
            "dry_run": self.dry_run,
            "status": self.status,
            "exit_code": self.exit_code,
            "planned": self.planned,
            "counts": self.counts(),
            "not_attempted": self.not_attempted,
            "excluded": list(self.excluded),
            "extras": list(self.extras),
            "abort": str(self.abort) if self.abort else None,
            "cancelled": self.cancelled,
            "interrupt": self.interrupt_note,
            "backup_root": str(self.backup_root) if self.backup_root else None,
            "outcomes": [
                {
                    "id": o.action.id,
                    "kind": o.action.kind.value,
                    "target": o.action.target,
                    "status": o.status.value,
                    "label": o.label,
                    "fallback_index": o.fallback_index,
                    "reason": o.reason,
                    "detail": o.detail,
                    "attempts": [a.model_dump(mode="json") for a in o.attempts],
                    "backups": [b.model_dump(mode="json") for b in o.backups],
                }
                for o in self.outcomes
            ],
        }


def _summary(error: str | None) -> str:
    lines = (error or "").strip().splitlines()
    return lines[0] if lines else "failed"


def build_report(
    execution: ExecutionReport,
    plan: Plan,
    backups: BackupSet | None = None,
) -> InstallReport:
    """Build the final report from an execution and the plan it ran."""
    report = InstallReport(
        plan_name=plan.name,
        family=plan.family,
        dry_run=execution.dry_run,
        outcomes=list(execution.outcomes),
        planned=plan.total_actions,
        excluded=list(plan.excluded),
        extras=list(plan.extras),
        abort=execution.abort,
        cancelled=execution.cancelled,
    )
    if backups is not None and backups.root is not None:
        report.backup_root = backups.root
        report.backup_count = len(backups.entries)
    return report
