"""Base resource class for Cloudflare resources."""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, computed_field


class Resource(BaseModel):
    """Base class for all managed Cloudflare resources.

    Resources are pure data - they define the desired state.
    Handlers know how to look them up and create them.
    """

    model_config = ConfigDict(extra="forbid")

    resource_type: ClassVar[str]

    name: str

    @property
    def natural_key(self) -> Any:
        """Key used to test whether the resource already exists remotely."""
        return self.name

    @computed_field
    @property
    def address(self) -> str:
        """Unique address for this resource (e.g., 'cloudflare_d1_database.shop')."""
        return f"{self.resource_type}.{self.name}"
