"""YAML configuration loading and convenience deploy API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import SecretStr

from cf_provisioner.config.loader import DEFAULT_CONFIG_FILE, ConfigError, load_config
from cf_provisioner.config.schema import Config, ProviderConfig
from cf_provisioner.core.client import CloudflareClient, GlobalKeyAuth
from cf_provisioner.core.discovery import ResourceDiscovery
from cf_provisioner.core.ledger import LedgerFile
from cf_provisioner.engine.executor import DeploymentExecutor
from cf_provisioner.engine.pipeline import ProgressCallback, ProvisioningPipeline
from cf_provisioner.engine.wrangler import WranglerCLI

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from cf_provisioner.engine.types import PipelineResult

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "Config",
    "ConfigError",
    "ProviderConfig",
    "cleanup",
    "client_from_config",
    "deploy",
    "discovery",
    "load",
    "load_config",
    "pipeline_from_config",
]


def load(path: Path | str) -> Config:
    """Load a YAML configuration file."""
    return load_config(path)


def client_from_config(config: Config) -> CloudflareClient:
    """Build the identity client (global key) from a ``Config`` instance."""
    if not config.provider.email:
        raise ConfigError(
            "provider.email is required (set in YAML or CLOUDFLARE_EMAIL env var)"
        )
    if not config.provider.api_key:
        raise ConfigError("provider.api_key is required (set CLOUDFLARE_API_KEY env var)")
    auth = GlobalKeyAuth(email=config.provider.email, api_key=SecretStr(config.provider.api_key))
    return CloudflareClient(
        auth, api_base=config.provider.api_base, timeout=config.provider.timeout
    )


def pipeline_from_config(
    config: Config, *, echo: Callable[[str], None] | None = None
) -> ProvisioningPipeline:
    """Build a ``ProvisioningPipeline`` from a ``Config`` instance."""
    executor = DeploymentExecutor(
        verbose=config.deployment.verbose, echo=echo, cwd=config.config_dir
    )
    return ProvisioningPipeline(
        config,
        client=client_from_config(config),
        wrangler=WranglerCLI(executor, binary=config.deployment.wrangler),
    )


def deploy(
    config: Config,
    *,
    progress: ProgressCallback | None = None,
    echo: Callable[[str], None] | None = None,
) -> PipelineResult:
    """Provision and deploy in one step."""
    return pipeline_from_config(config, echo=echo).run(progress=progress)


def discovery(config: Config) -> ResourceDiscovery:
    return ResourceDiscovery(client_from_config(config))


def cleanup(config: Config) -> tuple[list[str], list[str]]:
    """Revoke tokens left in the pending-token ledger.

    Returns ``(revoked, remaining)`` token ids.
    """
    pipeline = ProvisioningPipeline(
        config,
        client=client_from_config(config),
        wrangler=WranglerCLI(DeploymentExecutor(), binary=config.deployment.wrangler),
    )
    revoked = pipeline.revoke_stale_tokens()
    remaining = [p.id for p in LedgerFile(config.ledger_file).pending()]
    return revoked, remaining
