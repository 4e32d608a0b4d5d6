"""Deployment manifest (wrangler.toml) generation and targeted key updates."""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from cf_provisioner.core.files import write_atomic
from cf_provisioner.engine.errors import ManifestError

if TYPE_CHECKING:
    from cf_provisioner.config.schema import Config

logger = logging.getLogger(__name__)

DATABASE_ID_PLACEHOLDER = "PLACEHOLDER_DATABASE_ID"


def _key_pattern(key: str) -> re.Pattern[str]:
    # Not preceded by an identifier char, so `database_id` leaves `preview_database_id` alone.
    return re.compile(rf'(?<![\w-]){re.escape(key)}\s*=\s*"[^"\n]*"')


class ConfigWriter:
    """Persists provisioned identifiers into the deployment manifest.

    Only the matched ``key = "..."`` assignments are rewritten; every other
    byte of the file is preserved.
    """

    def __init__(self, manifest_path: Path) -> None:
        self._path = Path(manifest_path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def _read(self) -> str:
        try:
            with self._path.open(encoding="utf-8", newline="") as f:
                return f.read()
        except OSError as exc:
            raise ManifestError(f"Cannot read manifest {self._path}: {exc}") from exc

    def read_key(self, key: str) -> str | None:
        """Return the first quoted value assigned to *key*, or None."""
        match = _key_pattern(key).search(self._read())
        if match is None:
            return None
        return match.group(0).split("=", 1)[1].strip().strip('"')

    def upsert_key(self, key: str, value: str) -> bool:
        """Replace every ``key = "..."`` with ``key = "value"``.

        Returns True if the file content changed.  Applying the same upsert
        twice leaves the file byte-identical.
        """
        if '"' in value or "\n" in value:
            raise ManifestError(f"Refusing to write unquotable value for {key}: {value!r}")
        content = self._read()
        replacement = f'{key} = "{value}"'
        updated, count = _key_pattern(key).subn(lambda _m: replacement, content)
        if count == 0:
            logger.warning("Key %s not found in %s; nothing updated", key, self._path)
            return False
        if updated == content:
            logger.debug("Manifest %s already has %s = %s", self._path, key, value)
            return False
        try:
            write_atomic(self._path, updated)
        except OSError as exc:
            raise ManifestError(f"Cannot write manifest {self._path}: {exc}") from exc
        logger.info("Updated %s in %s (%d occurrence(s))", key, self._path, count)
        return True


def upsert_key(manifest_path: Path, key: str, value: str) -> bool:
    """Module-level shortcut for :meth:`ConfigWriter.upsert_key`."""
    return ConfigWriter(manifest_path).upsert_key(key, value)


def render_manifest(config: Config, *, today: str | None = None) -> str:
    """Render the initial manifest for *config*."""
    date = today or datetime.now(UTC).date().isoformat()
    lines = [
        f'name = "{config.project.name}"',
        f'compatibility_date = "{date}"',
        f'pages_build_output_dir = "{config.project.output_dir.as_posix()}"',
        "",
    ]
    if config.features.database:
        lines += [
            "[[d1_databases]]",
            f'binding = "{config.database.binding}"',
            f'database_name = "{config.database_name}"',
            f'database_id = "{DATABASE_ID_PLACEHOLDER}"',
            "",
        ]
    if config.features.storage:
        lines += [
            "[[r2_buckets]]",
            f'binding = "{config.storage.binding}"',
            f'bucket_name = "{config.bucket_name}"',
            f'preview_bucket_name = "{config.bucket_name}"',
            "",
        ]
    if config.vars:
        lines.append("[vars]")
        lines += [f'{k} = "{v}"' for k, v in config.vars.items()]
        lines.append("")
    return "\n".join(lines)


def write_manifest(config: Config, *, force: bool = False) -> Path:
    """Write the initial manifest; an existing file is kept unless *force*."""
    path = config.manifest_file
    if path.exists() and not force:
        raise ManifestError(f"Manifest already exists: {path} (use --force to overwrite)")
    write_atomic(path, render_manifest(config))
    logger.info("Wrote manifest %s", path)
    return path
