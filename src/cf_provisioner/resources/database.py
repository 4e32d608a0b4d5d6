"""D1 database resource model."""

from __future__ import annotations

from pathlib import Path
from typing import ClassVar

from pydantic import Field

from cf_provisioner.resources.base import Resource


class DatabaseResource(Resource):
    """A D1 database, optionally initialised from schema and seed SQL files.

    The files are executed only when they exist on disk.
    """

    resource_type: ClassVar[str] = "cloudflare_d1_database"

    name: str = Field(pattern=r"^[a-z0-9][a-z0-9_-]*$")
    binding: str = "DB"
    schema_file: Path | None = None
    seed_file: Path | None = None

    def import_files(self) -> list[Path]:
        """Schema then seed, skipping files that are unset or missing."""
        return [f for f in (self.schema_file, self.seed_file) if f is not None and f.is_file()]
