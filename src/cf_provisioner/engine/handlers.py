"""Engine-facing step handler interfaces."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from cf_provisioner.engine.errors import (
    InvalidTransitionError,
    ResourceConflictError,
    StepFailure,
)
from cf_provisioner.engine.types import ALLOWED_TRANSITIONS, Outcome, StepResult, StepStatus
from cf_provisioner.resources.base import Resource

if TYPE_CHECKING:
    from cf_provisioner.core.client import CloudflareClient
    from cf_provisioner.engine.wrangler import WranglerCLI

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Resource)


@dataclass(frozen=True)
class StepContext:
    """Context passed to handlers.

    ``client`` authenticates with the scoped token; ``wrangler`` carries the
    same token in its child-process environment.
    """

    client: CloudflareClient
    account_id: str
    wrangler: WranglerCLI


@dataclass
class Step:
    """Status tracker for one resource.

    ``PENDING -> CHECKING -> {EXISTS | CREATING} -> DONE``, or ``-> FAILED``.
    ``CREATING -> EXISTS`` covers a create that reports "already exists".
    """

    name: str
    resource: Resource
    status: StepStatus = StepStatus.PENDING
    history: list[StepStatus] = field(default_factory=lambda: [StepStatus.PENDING])

    def advance(self, target: StepStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.name, self.status.value, target.value)
        self.status = target
        self.history.append(target)

    def result(
        self,
        outcome: Outcome,
        attributes: dict[str, Any] | None = None,
        *,
        error: str | None = None,
        fatal: bool = False,
    ) -> StepResult:
        return StepResult(
            step=self.name,
            address=self.resource.address,
            resource_type=self.resource.resource_type,
            status=self.status,
            outcome=outcome,
            attributes=attributes or {},
            error=error,
            fatal=fatal,
        )


def skipped(step: str, resource: Resource, reason: str) -> StepResult:
    """Record a step that did not run."""
    logger.info("Skipping %s: %s", resource.address, reason)
    return Step(step, resource).result(Outcome.SKIPPED, {"reason": reason})


class StepHandler(Generic[R]):
    """Base class for idempotent provisioning steps.

    Subclasses implement ``find`` (lookup by natural key) and ``create``;
    ``reconcile`` optionally brings an existing resource in line and returns
    the new attributes, or None to reuse it untouched.
    """

    step_name: ClassVar[str]

    def find(self, ctx: StepContext, desired: R) -> dict[str, Any] | None:
        """Return the remote resource matching *desired*'s natural key, or None."""
        raise NotImplementedError

    def create(self, ctx: StepContext, desired: R) -> dict[str, Any]:
        """Create the resource. Return stored attributes."""
        raise NotImplementedError

    def reconcile(
        self, ctx: StepContext, desired: R, existing: dict[str, Any]
    ) -> dict[str, Any] | None:
        _ = ctx, desired, existing
        return None

    def _existing(
        self, ctx: StepContext, desired: R, existing: dict[str, Any]
    ) -> tuple[Outcome, dict[str, Any]]:
        updated = self.reconcile(ctx, desired, existing)
        if updated is None:
            logger.info("%s exists, reusing", desired.address)
            return Outcome.REUSED, existing
        logger.info("%s updated in place", desired.address)
        return Outcome.UPDATED, updated

    def ensure(self, ctx: StepContext, desired: R, *, fatal: bool = True) -> StepResult:
        """Check-then-create *desired*.

        Raises:
            StepFailure: Any error; the failed record is on ``.result`` and the
                original exception is chained via ``__cause__``.
        """
        step = Step(self.step_name, desired)
        try:
            step.advance(StepStatus.CHECKING)
            existing = self.find(ctx, desired)
            if existing is not None:
                step.advance(StepStatus.EXISTS)
                outcome, attrs = self._existing(ctx, desired, existing)
            else:
                step.advance(StepStatus.CREATING)
                try:
                    attrs = self.create(ctx, desired)
                    outcome = Outcome.CREATED
                    logger.info("%s created", desired.address)
                except ResourceConflictError:
                    step.advance(StepStatus.EXISTS)
                    outcome, attrs = self._existing(
                        ctx, desired, self.find(ctx, desired) or {"name": desired.name}
                    )
            step.advance(StepStatus.DONE)
            return step.result(outcome, attrs)
        except Exception as exc:
            if step.status is not StepStatus.FAILED:
                step.advance(StepStatus.FAILED)
            raise StepFailure(step.result(Outcome.FAILED, error=str(exc), fatal=fatal)) from exc
