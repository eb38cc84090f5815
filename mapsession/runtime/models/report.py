"""Restore report: the non-fatal side channel of a session restore."""

from __future__ import annotations

from pydantic import BaseModel, Field

from mapsession.runtime.models.enums import RestorePart, RestoreStep


class PartialRestoreWarning(BaseModel):
    """One sub-part of the map that could not be restored."""

    part: RestorePart
    target: str | None = None
    """Layer id or basemap identifier the warning refers to, if any."""
    reason: str

    def __str__(self) -> str:
        target = f" '{self.target}'" if self.target else ""
        return f"{self.part}{target}: {self.reason}"


class RestoreReport(BaseModel):
    """Outcome of one restore pass."""

    steps: list[RestoreStep] = Field(default_factory=list)
    warnings: list[PartialRestoreWarning] = Field(default_factory=list)
    basemap_restored: bool = False
    camera_restored: bool = False
    removed_layers: list[str] = Field(default_factory=list)
    restored_layers: list[str] = Field(default_factory=list)
    missing_layers: list[str] = Field(default_factory=list)

    @property
    def step(self) -> RestoreStep | None:
        return self.steps[-1] if self.steps else None

    @property
    def complete(self) -> bool:
        return not self.warnings

    def enter(self, step: RestoreStep) -> None:
        self.steps.append(step)

    def warn(self, part: RestorePart, reason: str, target: str | None = None) -> PartialRestoreWarning:
        warning = PartialRestoreWarning(part=part, target=target, reason=reason)
        self.warnings.append(warning)
        return warning

    def warnings_for(self, part: RestorePart) -> list[PartialRestoreWarning]:
        return [w for w in self.warnings if w.part == part]
