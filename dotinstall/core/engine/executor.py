"""
Engine executor — the central install loop.

Takes a resolved Plan, runs each Action through the adapter registry
strictly in order, folds the per-attempt Receipts into one Outcome per
Action, and stops early when a required Action fails or the run is
cancelled.

Flow:
    plan → for each action: primary → fallback 1 → … → outcome → next
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from dotinstall.adapters.registry import AdapterRegistry
from dotinstall.core.context import RunContext
from dotinstall.core.errors import ActionFailure
from dotinstall.core.models.action import Action, Attempt, Outcome, OutcomeStatus
from dotinstall.core.models.backup import BackupEntry
from dotinstall.core.models.plan import Plan

logger = logging.getLogger(__name__)

_STATUS_MARKERS = {
    OutcomeStatus.SUCCEEDED: "✓",
    OutcomeStatus.SUCCEEDED_VIA_FALLBACK: "✓",
    OutcomeStatus.SKIPPED: "⊘",
    OutcomeStatus.FAILED: "✗",
    OutcomeStatus.WOULD_RUN: "◌",
}


@dataclass
class ExecutionReport:
    """Outcomes of one executor run, in execution order."""

    plan_name: str = ""
    dry_run: bool = False
    outcomes: list[Outcome] = field(default_factory=list)
    abort: ActionFailure | None = None      # set when a required action failed
    cancelled: bool = False

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def aborted(self) -> bool:
        return self.abort is not None

    @property
    def completed(self) -> bool:
        """Whether every planned action got an outcome."""
        return not self.aborted and not self.cancelled


def _first_line(text: str | None) -> str:
    lines = (text or "").strip().splitlines()
    return lines[0] if lines else ""


def execute_action(action: Action, registry: AdapterRegistry, run: RunContext) -> Outcome:
    """Try an action's primary form, then each fallback, and record the result.

    Every attempt is kept in ``Outcome.attempts`` so earlier failures stay
    visible even when a later fallback succeeds.
    """
    if run.dry_run:
        return Outcome(
            action=action,
            status=OutcomeStatus.WOULD_RUN,
            detail=action.preview(),
        )

    attempts: list[Attempt] = []
    backups: list[BackupEntry] = []

    for index, candidate in enumerate((action, *action.fallbacks)):
        if index > 0:
            logger.info("  ↪ fallback %d for %s: %s", index, action.id, candidate.target)

        receipt = registry.execute_action(candidate, run)
        attempts.append(Attempt.from_receipt(index, candidate, receipt))
        backups.extend(receipt.backups)

        if receipt.status == "skipped":
            return Outcome(
                action=action,
                status=OutcomeStatus.SKIPPED,
                reason=receipt.output or "skipped",
                attempts=tuple(attempts),
                backups=tuple(backups),
            )

        if receipt.ok:
            if index == 0:
                return Outcome(
                    action=action,
                    status=OutcomeStatus.SUCCEEDED,
                    detail=receipt.output,
                    attempts=tuple(attempts),
                    backups=tuple(backups),
                )
            return Outcome(
                action=action,
                status=OutcomeStatus.SUCCEEDED_VIA_FALLBACK,
                detail=receipt.output,
                fallback_index=index,
                attempts=tuple(attempts),
                backups=tuple(backups),
            )

        logger.debug("Attempt %d of %s failed: %s", index, action.id, receipt.error)

    if action.fallbacks:
        failure = "fallback_exhausted"
        reason = f"all {len(attempts)} alternatives failed"
        detail = "\n".join(
            f"[{a.index}] {a.target}: {_first_line(a.error) or 'failed'}" for a in attempts
        )
    else:
        failure = "action_failure"
        reason = _first_line(attempts[-1].error) or "failed"
        detail = attempts[-1].error or ""

    return Outcome(
        action=action,
        status=OutcomeStatus.FAILED,
        detail=detail,
        reason=reason,
        attempts=tuple(attempts),
        backups=tuple(backups),
        failure=failure,
        fatal=action.fatal_on_failure,
    )


def execute_plan(plan: Plan, registry: AdapterRegistry, run: RunContext) -> ExecutionReport:
    """Execute all actions in a plan, one at a time.

    Args:
        plan: The resolved plan.
        registry: Adapter registry for dispatch.
        run: Run context (dry-run flag, cancellation token, backups).

    Returns:
        ExecutionReport with one Outcome per action that was reached.
    """
    report = ExecutionReport(plan_name=plan.name, dry_run=run.dry_run)

    for action in plan.actions:
        if run.cancel.is_cancelled():
            report.cancelled = True
            logger.warning(
                "Cancelled before %s (%d of %d actions done)",
                action.id,
                report.total,
                plan.total_actions,
            )
            break

        outcome = execute_action(action, registry, run)
        report.outcomes.append(outcome)

        logger.info(
            "%s %s → %s",
            _STATUS_MARKERS[outcome.status],
            action.id,
            outcome.label,
        )

        if outcome.failed and outcome.fatal:
            report.abort = ActionFailure.from_outcome(outcome)
            logger.error("Aborting: %s", report.abort)
            break

        if outcome.failed and action.required and action.best_effort:
            logger.warning("%s failed but needs a live session; continuing", action.id)

    return report
