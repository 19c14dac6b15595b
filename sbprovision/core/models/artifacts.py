"""
ESP artifact models — what must end up on the EFI System Partition.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ESPArtifact(BaseModel):
    """One (source, destination) copy the deployer is responsible for."""

    name: str
    source: str
    destination: str
    kind: Literal["file", "tree"] = "file"
    required: bool = True
    # False: an existing destination is kept even when it differs.
    replace: bool = True


class ESPArtifactSet(BaseModel):
    """Everything that must exist on the ESP after deployment."""

    esp_path: str
    artifacts: list[ESPArtifact] = Field(default_factory=list)

    def names(self) -> list[str]:
        return [a.name for a in self.artifacts]


class ArtifactResult(BaseModel):
    """Deployment outcome for a single artifact."""

    name: str
    destination: str
    status: Literal["copied", "unchanged", "skipped", "missing"]
    detail: str = ""


class DeploymentReport(BaseModel):
    """Outcome of one ESP deployment pass."""

    results: list[ArtifactResult] = Field(default_factory=list)

    @property
    def missing(self) -> list[str]:
        return [r.name for r in self.results if r.status == "missing"]

    @property
    def changed(self) -> bool:
        return any(r.status == "copied" for r in self.results)

    def status_of(self, name: str) -> str | None:
        for r in self.results:
            if r.name == name:
                return r.status
        return None
