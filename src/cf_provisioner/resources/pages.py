"""Pages project and custom domain resource models."""

from __future__ import annotations

from pathlib import Path
from typing import ClassVar

from pydantic import Field

from cf_provisioner.resources.base import Resource


class PagesProjectResource(Resource):
    """A Pages project and the build output deployed to it."""

    resource_type: ClassVar[str] = "cloudflare_pages_project"

    name: str = Field(pattern=r"^[a-z0-9][a-z0-9-]*$")
    production_branch: str = "main"
    output_dir: Path
    commit_message: str = "Automated deploy"

    @property
    def subdomain(self) -> str:
        return f"{self.name}.pages.dev"


class CustomDomainResource(Resource):
    """A custom domain attached to a Pages project.

    ``name`` is the fully qualified domain (``example.com``, ``www.example.com``).
    """

    resource_type: ClassVar[str] = "cloudflare_pages_domain"

    project: str
