"""
Enrollment plan — the manual steps left for the operator.

A plan is data, not text: renderers (CLI, the JSON artifact) decide
how it looks.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class EnrollmentStep(BaseModel):
    """One manual step, in order."""

    order: int
    action: str
    detail: str = ""


class EnrollmentPlan(BaseModel):
    """Deterministic list of steps remaining after provisioning."""

    secure_boot: str
    steps: list[EnrollmentStep] = Field(default_factory=list)
    certificate_path: str | None = None
    certificate_esp_path: str | None = None
    certificate_fingerprint: str | None = None
    notes: list[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        """No manual steps left."""
        return not self.steps
