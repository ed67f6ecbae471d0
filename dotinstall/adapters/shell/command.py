"""
Shell command adapter — run package managers and other commands.

Handles every command-backed action kind: repository enabling, package
installs, session settings, service enables and post-install commands.
Commands run as argv lists (never through a shell) and block until
they finish or time out. Children ignore SIGINT, so a first Ctrl-C lets
the running command finish and the run stops before the next action.
"""

from __future__ import annotations

import logging
import shutil
import signal
import subprocess
import time

from dotinstall.adapters.base import Adapter, ExecutionContext
from dotinstall.core.models.action import Receipt

logger = logging.getLogger(__name__)

# Keep receipts readable: only the tail of long outputs is retained
_OUTPUT_TAIL = 2000


def _tail(text: str | None) -> str:
    if not text:
        return ""
    return text[-_OUTPUT_TAIL:].strip()


def _ignore_interrupt() -> None:
    """Run in the child before exec: leave Ctrl-C to the parent."""
    signal.signal(signal.SIGINT, signal.SIG_IGN)


class ShellCommandAdapter(Adapter):
    """Execute action commands and capture their output.

    Action fields:
        command: argv to execute.
        timeout: seconds before the command is killed.
        skip_if_command: skip when this executable is already on PATH.
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.action.command:
            return False, "Missing command"
        if context.action.timeout <= 0:
            return False, f"Invalid timeout: {context.action.timeout}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        action = context.action
        command = list(action.command)

        if action.skip_if_command and shutil.which(action.skip_if_command):
            return Receipt.skip(
                adapter=self.name,
                action_id=action.id,
                reason="already present",
                metadata={"found": shutil.which(action.skip_if_command)},
            )

        if shutil.which(command[0]) is None:
            return Receipt.failure(
                adapter=self.name,
                action_id=action.id,
                error=f"Command not found: {command[0]}",
                metadata={"command": command},
            )

        logger.debug("Executing: %s", " ".join(command))
        start = time.monotonic()

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=action.timeout,
                cwd=str(context.home),
                preexec_fn=_ignore_interrupt,
            )

            elapsed_ms = int((time.monotonic() - start) * 1000)
            output = _tail(result.stdout)
            stderr = _tail(result.stderr)

            if result.returncode == 0:
                return Receipt.success(
                    adapter=self.name,
                    action_id=action.id,
                    output=output,
                    duration_ms=elapsed_ms,
                    metadata={
                        "command": command,
                        "return_code": result.returncode,
                        "stderr": stderr,
                    },
                )
            else:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=action.id,
                    error=stderr or f"Command exited with code {result.returncode}",
                    duration_ms=elapsed_ms,
                    metadata={
                        "command": command,
                        "return_code": result.returncode,
                        "stdout": output,
                    },
                )

        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=action.id,
                error=f"Command timed out after {action.timeout}s",
                metadata={"command": command, "timeout": action.timeout},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=action.id,
                error=f"Command execution error: {e}",
                metadata={"command": command},
            )
