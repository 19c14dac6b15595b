"""
Adapter base — how services reach external tools.

Services never call a package manager, openssl, sbsign, efibootmgr or
the ESP filesystem directly. They build an Action and hand it to the
AdapterRegistry, which picks the adapter named by ``Action.adapter``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from sbprovision.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """The Action being executed plus where to execute it."""

    action: Action
    cwd: str | None = None

    @property
    def operation(self) -> str:
        return self.action.operation

    def param(self, key: str, default: Any = None) -> Any:
        return self.action.params.get(key, default)

    def missing(self, *keys: str) -> str | None:
        """First of ``keys`` with no usable value, or None."""
        for key in keys:
            if self.param(key) in (None, "", []):
                return key
        return None


class Adapter(ABC):
    """One external tool behind the Action/Receipt contract.

    ``execute`` must not raise; failures belong in the Receipt.
    ``operations`` lists what ``validate`` accepts by default.
    """

    operations: tuple[str, ...] = ()

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key, also used as ``Action.adapter``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the backing tool can be used on this host."""

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Reject unknown operations. Subclasses add parameter checks."""
        if self.operations and context.operation not in self.operations:
            valid = ", ".join(sorted(self.operations))
            return False, f"Unknown operation '{context.operation}'. Valid: {valid}"
        return True, ""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Perform the operation and describe the outcome."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
