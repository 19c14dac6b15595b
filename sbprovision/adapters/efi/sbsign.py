"""
sbsign adapter — Authenticode signing of EFI binaries.

Wraps ``sbsign`` for signing and ``sbverify`` for checking whether a
binary already carries a signature from a given certificate.
"""

from __future__ import annotations

import shutil

from sbprovision.adapters.base import ExecutionContext
from sbprovision.adapters.shell.command import ShellCommandAdapter
from sbprovision.core.models.action import Receipt


class SbsignAdapter(ShellCommandAdapter):
    """EFI binary signing.

    Operations:
        sign: ``key_path``, ``cert_path``, ``input_path`` and
            ``output_path`` (may equal ``input_path``).
        verify: ``cert_path`` and ``input_path``. Skipped when
            sbverify is not installed.
    """

    binary = "sbsign"
    operations = ("sign", "verify")

    @property
    def name(self) -> str:
        return "sbsign"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        valid, reason = super().validate(context)
        if not valid:
            return valid, reason
        required = ["cert_path", "input_path"]
        if context.operation == "sign":
            required += ["key_path", "output_path"]
        missing = context.missing(*required)
        return (False, f"Missing required param: '{missing}'") if missing else (True, "")

    def execute(self, context: ExecutionContext) -> Receipt:
        if context.operation == "verify":
            if shutil.which("sbverify") is None:
                return Receipt.skip(adapter=self.name, action_id=context.action.id, reason="sbverify not found")
            return self._run(context, [
                "sbverify",
                "--cert", str(context.param("cert_path")),
                str(context.param("input_path")),
            ])

        return self._run(context, [
            "sbsign",
            "--key", str(context.param("key_path")),
            "--cert", str(context.param("cert_path")),
            "--output", str(context.param("output_path")),
            str(context.param("input_path")),
        ])
