"""
Package manager adapter — install packages through the host's manager.

Knows how to spell an unattended install for apt, pacman, dnf and
zypper. It reports only whether the transaction succeeded; whether the
expected files actually appeared is the provisioner's concern.
"""

from __future__ import annotations

import logging
import shutil

from sbprovision.adapters.base import ExecutionContext
from sbprovision.adapters.shell.command import ShellCommandAdapter
from sbprovision.core.data.platforms import INSTALL_COMMANDS, INSTALL_ENV
from sbprovision.core.models.action import Receipt

logger = logging.getLogger(__name__)


class PackageManagerAdapter(ShellCommandAdapter):
    """``install`` a list of ``packages`` with ``manager`` in one transaction."""

    operations = ("install",)

    @property
    def name(self) -> str:
        return "package_manager"

    def is_available(self) -> bool:
        return any(shutil.which(cmd[0]) for cmd in INSTALL_COMMANDS.values())

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        valid, reason = super().validate(context)
        if not valid:
            return valid, reason
        manager = context.param("manager", "")
        if manager not in INSTALL_COMMANDS:
            return False, f"Unsupported package manager '{manager}'"
        if context.missing("packages"):
            return False, "Missing required param: 'packages'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        manager = context.param("manager")
        packages = list(context.param("packages"))

        logger.info("Installing via %s: %s", manager, ", ".join(packages))
        receipt = self._run(context, INSTALL_COMMANDS[manager] + packages, env_overrides=INSTALL_ENV.get(manager))
        receipt.metadata["packages"] = packages
        return receipt
