"""Configuration models for YAML-based provisioning."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cf_provisioner.core.client import DEFAULT_API_BASE


class ProviderConfig(BaseSettings):
    """Cloudflare identity credential and API settings.

    Fields can be set via YAML (constructor kwargs) or environment variables
    with the ``CLOUDFLARE_`` prefix.  Constructor kwargs take precedence.

    ``api_key`` (the global API key) is typically provided via the
    ``CLOUDFLARE_API_KEY`` environment variable rather than YAML to avoid
    committing secrets to version control.  It is only used to mint and
    revoke the short-lived scoped token.
    """

    model_config = SettingsConfigDict(env_prefix="CLOUDFLARE_")

    email: str | None = None
    api_key: str | None = None
    account_id: str | None = None
    api_base: str = DEFAULT_API_BASE
    timeout: float = 30.0


def _none_to_list(v: Any) -> Any:
    return v if v is not None else []


def _none_to_dict(v: Any) -> Any:
    return v if v is not None else {}


class ProjectConfig(BaseModel):
    name: str = Field(pattern=r"^[a-z0-9][a-z0-9-]*$")
    output_dir: Path = Path("dist")
    production_branch: str = "main"
    domain: str | None = None
    commit_message: str = "Automated deploy"

    @field_validator("domain")
    @classmethod
    def _normalize_domain(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().lower().removeprefix("https://").removeprefix("http://").rstrip("/")
        return v or None


class FeaturesConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    database: bool = False
    storage: bool = False
    access: bool = False
    dns: bool = True


class DatabaseConfig(BaseModel):
    name: str | None = None
    binding: str = "DB"
    schema_file: Path | None = None
    seed_file: Path | None = None


class StorageConfig(BaseModel):
    bucket_name: str | None = None
    binding: str = "R2"


class AccessConfig(BaseModel):
    admin_path: str = "/admin/*"
    admin_emails: Annotated[list[str], BeforeValidator(_none_to_list)] = []
    app_name: str = "Admin Access"
    session_duration: str = "720h"


class DeploymentConfig(BaseModel):
    verbose: bool = False
    wrangler: str = "wrangler"


class Config(BaseModel):
    """Provisioning configuration, validated directly from the YAML structure."""

    provider: ProviderConfig
    project: ProjectConfig
    features: FeaturesConfig = FeaturesConfig()
    database: DatabaseConfig = DatabaseConfig()
    storage: StorageConfig = StorageConfig()
    access: AccessConfig = AccessConfig()
    deployment: DeploymentConfig = DeploymentConfig()
    manifest_path: Path = Path("wrangler.toml")
    ledger_path: Path = Path(".cf-provisioner/pending-tokens.json")
    vars: Annotated[dict[str, str], BeforeValidator(_none_to_dict)] = {}
    config_dir: Path = Path()

    def resolve_path(self, path: Path) -> Path:
        """Interpret *path* relative to the directory holding the config file."""
        return path if path.is_absolute() else self.config_dir / path

    @property
    def database_name(self) -> str:
        return self.database.name or self.project.name

    @property
    def bucket_name(self) -> str:
        return self.storage.bucket_name or f"{self.project.name}-uploads"

    @property
    def manifest_file(self) -> Path:
        return self.resolve_path(self.manifest_path)

    @property
    def ledger_file(self) -> Path:
        return self.resolve_path(self.ledger_path)

    @property
    def output_path(self) -> Path:
        return self.resolve_path(self.project.output_dir)

    @property
    def enabled_features(self) -> set[str]:
        return {name for name, on in self.features.model_dump().items() if on}

    @property
    def admin_domain(self) -> str | None:
        """Host plus path protected by the Access application."""
        if not self.project.domain:
            return None
        return f"{self.project.domain}{self.access.admin_path}"

    @property
    def site_url(self) -> str:
        if self.project.domain:
            return f"https://{self.project.domain}"
        return f"https://{self.project.name}.pages.dev"
