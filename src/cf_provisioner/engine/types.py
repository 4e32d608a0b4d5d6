"""Engine types (step status, outcomes, results)."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class StepStatus(str, Enum):
    PENDING = "pending"
    CHECKING = "checking"
    EXISTS = "exists"
    CREATING = "creating"
    DONE = "done"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset({StepStatus.CHECKING, StepStatus.FAILED}),
    StepStatus.CHECKING: frozenset({StepStatus.EXISTS, StepStatus.CREATING, StepStatus.FAILED}),
    StepStatus.EXISTS: frozenset({StepStatus.DONE, StepStatus.FAILED}),
    StepStatus.CREATING: frozenset({StepStatus.EXISTS, StepStatus.DONE, StepStatus.FAILED}),
    StepStatus.DONE: frozenset(),
    StepStatus.FAILED: frozenset(),
}


class Outcome(str, Enum):
    CREATED = "created"
    REUSED = "reused"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class StepResult(BaseModel):
    step: str
    address: str
    resource_type: str
    status: StepStatus
    outcome: Outcome
    attributes: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    fatal: bool = False

    @property
    def provisioned(self) -> bool:
        """True if the remote resource exists after this step."""
        return self.outcome in (Outcome.CREATED, Outcome.REUSED, Outcome.UPDATED)


class PipelineResult(BaseModel):
    project: str
    url: str | None = None
    results: list[StepResult] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    failed_step: str | None = None

    def summary(self) -> dict[str, int]:
        counts = {o.value: 0 for o in Outcome}
        for r in self.results:
            counts[r.outcome.value] += 1
        return counts

    def by_outcome(self, outcome: Outcome) -> list[StepResult]:
        return [r for r in self.results if r.outcome == outcome]

    def created(self) -> list[StepResult]:
        return self.by_outcome(Outcome.CREATED)

    def reused(self) -> list[StepResult]:
        return self.by_outcome(Outcome.REUSED)

    def provisioned(self) -> list[StepResult]:
        return [r for r in self.results if r.provisioned]

    def get(self, address: str) -> StepResult | None:
        return next((r for r in self.results if r.address == address), None)
