"""R2 bucket resource model."""

from __future__ import annotations

from typing import ClassVar

from pydantic import Field

from cf_provisioner.resources.base import Resource


class BucketResource(Resource):
    """An R2 object-storage bucket."""

    resource_type: ClassVar[str] = "cloudflare_r2_bucket"

    name: str = Field(pattern=r"^[a-z0-9][a-z0-9-]{1,61}[a-z0-9]$")
    binding: str = "R2"
