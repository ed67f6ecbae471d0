"""
Mock adapter — scripted stand-in for the shell and filesystem adapters.

Nothing is installed, copied or written. Each attempt is recorded, and
its result is looked up by action ID (fallbacks have their own
``#fallbackN`` IDs) or, failing that, by target:

    shell = MockAdapter(adapter_name="shell")
    shell.set_failure("2:install_package:zen-browser", "target not found")
    shell.set_failure("firefox")            # any action targeting firefox
"""

from __future__ import annotations

from dotinstall.adapters.base import Adapter, ExecutionContext
from dotinstall.core.models.action import Action, Receipt


class MockAdapter(Adapter):
    """Records every attempt and answers with a scripted Receipt.

    Unscripted actions succeed.
    """

    def __init__(self, adapter_name: str = "mock", available: bool = True):
        self._name = adapter_name
        self._available = available
        self._script: dict[str, Receipt] = {}
        self._attempts: list[Action] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def attempts(self) -> list[Action]:
        """Actions received, in call order."""
        return list(self._attempts)

    @property
    def call_count(self) -> int:
        return len(self._attempts)

    @property
    def called_ids(self) -> list[str]:
        return [action.id for action in self._attempts]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, key: str, receipt: Receipt) -> None:
        """Answer attempts matching ``key`` (action ID or target) with ``receipt``."""
        self._script[key] = receipt

    def set_failure(self, key: str, error: str = "Mock failure") -> None:
        self._script[key] = Receipt.failure(adapter=self._name, action_id=key, error=error)

    def set_skip(self, key: str, reason: str = "already present") -> None:
        self._script[key] = Receipt.skip(adapter=self._name, action_id=key, reason=reason)

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        action = context.action
        self._attempts.append(action)

        scripted = self._script.get(action.id) or self._script.get(action.target)
        if scripted is not None:
            return scripted.model_copy(update={"action_id": action.id})

        return Receipt.success(
            adapter=self._name,
            action_id=action.id,
            output=f"[mock] {action.kind} {action.target}",
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Forget recorded attempts and scripted responses."""
        self._attempts.clear()
        self._script.clear()
