"""
Shell command adapter — run one external program to completion.

The tool adapters (package manager, openssl, sbsign, efibootmgr) are
subclasses that only know how to spell an argv; running it and turning
the exit status into a Receipt happens here.

No timeout is applied. A package transaction or an NVRAM write killed
halfway leaves the host worse off than a slow one.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time

from sbprovision.adapters.base import Adapter, ExecutionContext
from sbprovision.core.models.action import Receipt

logger = logging.getLogger(__name__)

_OUTPUT_TAIL = 4000


class ShellCommandAdapter(Adapter):
    """Run ``params['argv']`` with optional ``env`` overrides."""

    #: Binary whose presence makes this adapter available.
    binary = "sh"

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        valid, reason = super().validate(context)
        # Tool subclasses build their own argv.
        if valid and not self.operations and not isinstance(context.param("argv"), list):
            return False, "Missing required param: 'argv'"
        return valid, reason

    def execute(self, context: ExecutionContext) -> Receipt:
        return self._run(context, list(context.param("argv")), env_overrides=context.param("env"))

    def _run(
        self,
        context: ExecutionContext,
        argv: list[str],
        *,
        env_overrides: dict[str, str] | None = None,
    ) -> Receipt:
        """Run ``argv`` and build a receipt from its exit status."""
        env = os.environ.copy()
        if env_overrides:
            env.update(env_overrides)
        action_id = context.action.id

        logger.debug("Executing: %s", " ".join(argv))
        start = time.monotonic()
        try:
            result = subprocess.run(argv, cwd=context.cwd, env=env, capture_output=True, text=True)
        except FileNotFoundError:
            return Receipt.failure(
                adapter=self.name, action_id=action_id, command=argv,
                error=f"Command not found: {argv[0]}", tool_missing=True,
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name, action_id=action_id, command=argv,
                error=f"Cannot execute {argv[0]}: {e}",
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = result.stdout.strip()[-_OUTPUT_TAIL:]
        stderr = result.stderr.strip()[-_OUTPUT_TAIL:]
        common = {
            "adapter": self.name,
            "action_id": action_id,
            "command": argv,
            "exit_code": result.returncode,
            "duration_ms": elapsed_ms,
        }

        if result.returncode == 0:
            return Receipt.success(output=stdout, metadata={"stderr": stderr}, **common)
        return Receipt.failure(
            error=stderr or f"{argv[0]} exited with status {result.returncode}",
            metadata={"stdout": stdout},
            **common,
        )
