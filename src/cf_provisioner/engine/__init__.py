"""Provisioning pipeline for Cloudflare resources."""

from cf_provisioner.engine.errors import (
    APIError,
    AuthenticationError,
    DiscoveryError,
    ExecutionError,
    InvalidTransitionError,
    ManifestError,
    ParseError,
    PermissionLookupError,
    PipelineError,
    ProvisionerError,
    ResourceConflictError,
    StepFailure,
    StorageNotEnabledError,
)
from cf_provisioner.engine.executor import DeploymentExecutor, extract_identifier
from cf_provisioner.engine.handlers import StepContext, StepHandler
from cf_provisioner.engine.pipeline import ProgressCallback, ProvisioningPipeline
from cf_provisioner.engine.types import Outcome, PipelineResult, StepResult, StepStatus
from cf_provisioner.engine.wrangler import DatabaseInfo, WranglerCLI

__all__ = [
    "APIError",
    "AuthenticationError",
    "DatabaseInfo",
    "DeploymentExecutor",
    "DiscoveryError",
    "ExecutionError",
    "InvalidTransitionError",
    "ManifestError",
    "Outcome",
    "ParseError",
    "PermissionLookupError",
    "PipelineError",
    "PipelineResult",
    "ProgressCallback",
    "ProvisionerError",
    "ProvisioningPipeline",
    "ResourceConflictError",
    "StepContext",
    "StepFailure",
    "StepHandler",
    "StepResult",
    "StepStatus",
    "StorageNotEnabledError",
    "WranglerCLI",
    "extract_identifier",
]
