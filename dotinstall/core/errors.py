"""
Error taxonomy for the installer.

PreconditionError and ManifestError are fatal and always raised before
any Action runs. ActionFailure (and FallbackExhausted) are never raised
by adapters or the executor: failures live in Outcomes, and one of these
is only built to describe the required Action that aborted a plan.
"""

from __future__ import annotations

from dotinstall.core.models.action import Outcome


class InstallerError(Exception):
    """Base class for every installer error."""


class PreconditionError(InstallerError):
    """Wrong privilege level, unsupported OS family, missing collaborator dirs."""


class ManifestError(InstallerError):
    """Malformed manifest input. Names the offending entry."""

    def __init__(self, message: str, entry: str | None = None):
        self.entry = entry
        if entry:
            message = f"{entry}: {message}"
        super().__init__(message)


class ActionFailure(InstallerError):
    """A required Action failed and aborted the rest of the plan."""

    def __init__(self, outcome: Outcome):
        self.outcome = outcome
        action = outcome.action
        reason = outcome.reason or "failed"
        message = f"Required action '{action.id}' failed: {reason}"
        if outcome.detail:
            message = f"{message}\n{outcome.detail}"
        super().__init__(message)

    @classmethod
    def from_outcome(cls, outcome: Outcome) -> ActionFailure:
        """Build the matching failure type for a fatal Outcome."""
        if outcome.failure == "fallback_exhausted":
            return FallbackExhausted(outcome)
        return cls(outcome)


class FallbackExhausted(ActionFailure):
    """Every listed alternative of a required Action failed."""
