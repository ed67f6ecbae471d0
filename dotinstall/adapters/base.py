"""
Adapter base — the protocol contract between the executor and the system.

The executor only talks to adapters through this protocol, never
directly to package managers or the filesystem.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, ConfigDict, InstanceOf

from dotinstall.core.context import RunContext
from dotinstall.core.engine.backup import BackupSet
from dotinstall.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to carry out one attempt.

    This is the adapter's view of the world: the action to perform and
    the run it belongs to (home directory, backup set).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    action: Action
    run: InstanceOf[RunContext]

    @property
    def backups(self) -> BackupSet:
        assert self.run.backups is not None
        return self.run.backups

    @property
    def home(self) -> Path:
        return self.run.home


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name, is_available, validate, execute
        3. Register it in the AdapterRegistry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier ('shell', 'filesystem')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt.

        MUST never raise exceptions. All failures are captured
        in the Receipt with status='failed'.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
