"""
Action and Receipt models — tool requests and their outcomes.

Every external side effect of a provisioning run (a package
transaction, certificate issuance, signing, an NVRAM write, a copy onto
the ESP) is requested as an Action and answered with a Receipt.
Adapters never raise: a tool that failed, or was not installed at all,
comes back as a failed Receipt carrying the command line it ran and the
exit status it got.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

ReceiptStatus = Literal["ok", "skipped", "failed"]


class Action(BaseModel):
    """One operation requested of one adapter, e.g. ``sbsign``/``sign``."""

    id: str
    adapter: str
    operation: str = ""
    params: dict[str, Any] = Field(default_factory=dict)

    def describe(self) -> str:
        return f"{self.adapter}.{self.operation}" if self.operation else self.adapter


class Receipt(BaseModel):
    """What an adapter did with an Action.

    ``command`` and ``exit_code`` are set by adapters that shell out;
    in-process adapters (filesystem copies) leave them empty.
    """

    adapter: str
    action_id: str
    status: ReceiptStatus = "ok"

    command: list[str] = Field(default_factory=list)
    exit_code: int | None = None
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    tool_missing: bool = False

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    def explain(self) -> str:
        """One line suitable for an error cause or a log record."""
        if self.ok:
            return self.output.splitlines()[-1] if self.output else "ok"
        if self.skipped:
            return self.output or "skipped"
        if self.tool_missing:
            return f"{self.command[0] if self.command else self.adapter} is not installed"
        detail = (self.error or "").strip().splitlines()
        last = detail[-1] if detail else "no error output"
        if self.exit_code is not None:
            return f"exit status {self.exit_code}: {last}"
        return last

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="ok", output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)

    @classmethod
    def skip(cls, adapter: str, action_id: str, reason: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="skipped", output=reason, **kwargs)
