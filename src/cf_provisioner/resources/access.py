"""Access application and policy resource models."""

from __future__ import annotations

from typing import ClassVar

from pydantic import Field

from cf_provisioner.resources.base import Resource


class AccessApplicationResource(Resource):
    """A self-hosted Access application protecting ``domain`` (host + path)."""

    resource_type: ClassVar[str] = "cloudflare_access_application"

    domain: str
    session_duration: str = "720h"

    @property
    def natural_key(self) -> str:
        return self.domain

    def to_api(self) -> dict[str, object]:
        return {
            "name": self.name,
            "domain": self.domain,
            "session_duration": self.session_duration,
            "type": "self_hosted",
        }


class AccessPolicyResource(Resource):
    """An allow policy listing the emails admitted to an Access application.

    The email list is authoritative: re-applying replaces whatever the remote
    policy held.
    """

    resource_type: ClassVar[str] = "cloudflare_access_policy"

    app_id: str
    emails: list[str] = Field(min_length=1)
    decision: str = "allow"

    @property
    def natural_key(self) -> tuple[str, str]:
        return (self.app_id, self.name)

    def include(self) -> list[dict[str, object]]:
        return [{"email": {"email": e}} for e in self.emails]

    def to_api(self) -> dict[str, object]:
        return {"name": self.name, "decision": self.decision, "include": self.include()}
