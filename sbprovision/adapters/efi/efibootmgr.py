"""
efibootmgr adapter — firmware boot entry listing and creation.

Entries are created with ``--create-only``: the new entry is written to
NVRAM but BootOrder is not touched. Ordering stays with the operator.
"""

from __future__ import annotations

from sbprovision.adapters.base import ExecutionContext
from sbprovision.adapters.shell.command import ShellCommandAdapter
from sbprovision.core.models.action import Receipt


class EfibootmgrAdapter(ShellCommandAdapter):
    """Firmware boot entries.

    Operations:
        list: ``efibootmgr -v``.
        create: needs ``device`` (disk holding the ESP), ``partition``
            (its number), ``label`` and ``loader`` (backslash path on
            the ESP).
    """

    binary = "efibootmgr"
    operations = ("create", "list")

    @property
    def name(self) -> str:
        return "efibootmgr"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        valid, reason = super().validate(context)
        if valid and context.operation == "create":
            missing = context.missing("device", "partition", "label", "loader")
            if missing:
                return False, f"Missing required param: '{missing}'"
        return valid, reason

    def execute(self, context: ExecutionContext) -> Receipt:
        if context.operation == "list":
            return self._run(context, ["efibootmgr", "-v"])

        return self._run(context, [
            "efibootmgr",
            "--create-only",
            "--disk", str(context.param("device")),
            "--part", str(int(context.param("partition"))),
            "--label", str(context.param("label")),
            "--loader", str(context.param("loader")),
        ])
