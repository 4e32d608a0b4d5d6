"""Provisioner error types."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cf_provisioner.engine.types import PipelineResult, StepResult


class ProvisionerError(Exception):
    """Base exception for provisioner errors."""


class PermissionLookupError(ProvisionerError):
    """Raised when the permission-group catalog cannot be used."""


class APIError(ProvisionerError):
    """A Cloudflare API call returned a non-success envelope."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        errors: Sequence[dict[str, Any]] = (),
        endpoint: str | None = None,
    ) -> None:
        self.status = status
        self.errors = list(errors)
        self.endpoint = endpoint
        detail = message
        if endpoint:
            detail = f"{message} ({endpoint})"
        super().__init__(detail)

    @property
    def codes(self) -> list[int]:
        return [e["code"] for e in self.errors if isinstance(e.get("code"), int)]

    def mentions(self, *fragments: str) -> bool:
        """Return True if any error message contains one of *fragments* (case-insensitive)."""
        text = " ".join(str(e.get("message", "")) for e in self.errors).lower()
        text = f"{text} {self}".lower()
        return any(f.lower() in text for f in fragments)


class AuthenticationError(APIError):
    """The credential used for a call was rejected by Cloudflare."""


class ResourceConflictError(APIError):
    """The resource already exists. Steps treat this as the reuse outcome."""


class StorageNotEnabledError(APIError):
    """R2 object storage has not been enabled on the account."""

    instructions = (
        "Enable R2 Storage in the Cloudflare dashboard:",
        "1. Go to https://dash.cloudflare.com/",
        "2. Select your account",
        '3. Click "R2 Object Storage" in the left sidebar',
        '4. Click "Enable R2" and follow the setup process',
        "5. Re-run the deployment",
    )


class DiscoveryError(ProvisionerError):
    """Raised when an account or zone cannot be determined unambiguously."""


class ParseError(ProvisionerError):
    """CLI output did not contain an expected identifier."""

    def __init__(self, key: str, output: str) -> None:
        tail = output.strip()[-400:]
        super().__init__(f"Could not find '{key}' in command output: {tail!r}")
        self.key = key
        self.output = output


class ExecutionError(ProvisionerError):
    """A child process could not be started or exited non-zero."""

    def __init__(self, command: Sequence[str], returncode: int | None, output: str = "") -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        cmd = " ".join(self.command)
        detail = output.strip()
        if len(detail) > 400:
            detail = f"...{detail[-397:]}"
        if returncode is None:
            msg = f"Could not run {cmd!r}: {detail}"
        else:
            msg = f"Command {cmd!r} exited with code {returncode}"
            if detail:
                msg += f": {detail}"
        super().__init__(msg)


class ManifestError(ProvisionerError):
    """The deployment manifest is missing or cannot be written."""


class InvalidTransitionError(ProvisionerError):
    """A step attempted an illegal status transition."""

    def __init__(self, step: str, current: str, target: str) -> None:
        super().__init__(f"Step {step}: invalid transition {current} -> {target}")
        self.step = step
        self.current = current
        self.target = target


class StepFailure(ProvisionerError):
    """A step ended in FAILED.  ``result`` is the failed step's record."""

    def __init__(self, result: StepResult) -> None:
        self.result = result
        super().__init__(f"{result.address}: {result.error}")


class PipelineError(ProvisionerError):
    """Raised when a fatal step failure aborts the pipeline.

    Carries the partial result (what was provisioned before the failure) so
    callers can report which resources remain.  The original exception is
    chained via ``__cause__``.
    """

    def __init__(self, *, result: PipelineResult, step: str, message: str) -> None:
        self.result = result
        self.step = step
        super().__init__(f"Step {step} failed: {message}")
