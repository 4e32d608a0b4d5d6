"""YAML configuration file loader."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dotenv import dotenv_values
from pydantic import ValidationError
from ruamel.yaml import YAML

from cf_provisioner.config.schema import Config
from cf_provisioner.resources import BucketResource, DatabaseResource

if TYPE_CHECKING:
    from cf_provisioner.resources.base import Resource

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "cf-provisioner.yaml"


class ConfigError(Exception):
    """Raised for configuration loading / validation errors."""


# Field name → environment variable.
_PROVIDER_ENV_MAP: dict[str, str] = {
    "email": "CLOUDFLARE_EMAIL",
    "api_key": "CLOUDFLARE_API_KEY",
    "account_id": "CLOUDFLARE_ACCOUNT_ID",
    "api_base": "CLOUDFLARE_API_BASE",
    "timeout": "CLOUDFLARE_TIMEOUT",
}


def _resolve_provider(raw_provider: dict[str, Any], config_dir: Path) -> dict[str, Any]:
    """Resolve provider fields from YAML, env vars, and ``.env`` file.

    Priority (highest wins): YAML value > env var > ``.env`` file.
    """
    env_file = config_dir / ".env"
    dotenv_vals = dotenv_values(env_file, encoding="utf-8-sig") if env_file.is_file() else {}

    resolved: dict[str, Any] = {}
    for field, env_key in _PROVIDER_ENV_MAP.items():
        val = raw_provider.get(field)
        if val is None:
            val = os.environ.get(env_key)
        if val is None:
            val = dotenv_vals.get(env_key)
        if val is not None:
            resolved[field] = val

    return resolved


def _check_name(model: type[Resource], name: str, label: str) -> list[str]:
    try:
        model(name=name)
    except ValidationError:
        return [f"{label} {name!r} is not a valid {model.resource_type} name"]
    return []


def _validate_features(config: Config) -> list[str]:
    """Check that every enabled feature has what it needs."""
    errors: list[str] = []
    if config.features.access:
        if not config.project.domain:
            errors.append("features.access requires project.domain")
        if not config.access.admin_emails:
            errors.append("features.access requires at least one access.admin_emails entry")
    for label, path in (
        ("database.schema_file", config.database.schema_file),
        ("database.seed_file", config.database.seed_file),
    ):
        if path is not None and not config.features.database:
            logger.warning("%s is set but features.database is disabled", label)
    if config.features.database:
        errors += _check_name(DatabaseResource, config.database_name, "database.name")
    if config.features.storage:
        errors += _check_name(BucketResource, config.bucket_name, "storage.bucket_name")
    return errors


def load_config(path: Path | str) -> Config:
    """Load a YAML configuration file and return a ``Config`` object.

    Raises:
        ConfigError: On YAML parse errors, missing sections, or validation failures.
    """
    path = Path(path)

    try:
        raw = YAML(typ="safe").load(path)
    except Exception as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")

    try:
        raw["provider"] = _resolve_provider(raw.get("provider") or {}, path.parent)
        config = Config.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    config.config_dir = path.parent

    for attr in ("schema_file", "seed_file"):
        value = getattr(config.database, attr)
        if value is not None:
            setattr(config.database, attr, config.resolve_path(value))

    errors = _validate_features(config)
    if errors:
        raise ConfigError("\n".join(errors))

    logger.info(
        "Loaded config from %s (project %s, features: %s)",
        path,
        config.project.name,
        ", ".join(sorted(config.enabled_features)) or "none",
    )
    return config
