"""
Adapter registry — central dispatch for all adapter operations.

The registry is the single point of adapter management. It handles
registration, lookup and the execution of one attempt. The executor
never talks to adapters directly — always through the registry.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

from dotinstall.adapters.base import Adapter, ExecutionContext
from dotinstall.core.context import RunContext
from dotinstall.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry and dispatcher for adapters.

    Features:
        - Register adapters by name
        - Execute one attempt of an action through its adapter
        - Query adapter availability
    """

    def __init__(self) -> None:
        self._adapters: dict[str, Adapter] = {}

    def register(self, adapter: Adapter) -> None:
        """Register an adapter.

        Args:
            adapter: The adapter instance to register.
        """
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def get(self, name: str) -> Adapter | None:
        """Look up an adapter by name."""
        return self._adapters.get(name)

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all registered adapters."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status

    def execute_action(self, action: Action, run: RunContext) -> Receipt:
        """Execute one attempt of an action through its adapter.

        This is the main dispatch method. It:
        1. Resolves the adapter
        2. Applies the ``requires_path`` skip condition
        3. Validates the action
        4. Executes
        5. Returns a Receipt (never raises)

        Args:
            action: The action (primary form or one fallback).
            run: The current run context.

        Returns:
            Receipt with execution results.
        """
        start_time = time.monotonic()

        adapter = self.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        if action.requires_path and not Path(action.requires_path).exists():
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason="target missing",
                metadata={"requires_path": action.requires_path},
            )

        context = ExecutionContext(action=action, run=run)

        # Validate
        try:
            is_valid, error_msg = adapter.validate(context)
            if not is_valid:
                return Receipt.failure(
                    adapter=action.adapter,
                    action_id=action.id,
                    error=f"Validation failed: {error_msg}",
                )
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation error: {e}",
            )

        # Execute
        try:
            receipt = adapter.execute(context)
        except Exception as e:
            # Adapters should never raise, but defense in depth
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        # Add timing
        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        receipt.duration_ms = elapsed_ms

        return receipt


def default_registry() -> AdapterRegistry:
    """Registry with the real shell and filesystem adapters."""
    from dotinstall.adapters.shell.command import ShellCommandAdapter
    from dotinstall.adapters.shell.filesystem import FilesystemAdapter

    registry = AdapterRegistry()
    registry.register(ShellCommandAdapter())
    registry.register(FilesystemAdapter())
    return registry
