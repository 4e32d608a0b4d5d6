"""DNS record resource model."""

from __future__ import annotations

from typing import ClassVar, Literal

from cf_provisioner.resources.base import Resource


class DNSRecordResource(Resource):
    """A DNS record, keyed by ``(zone_id, name)``."""

    resource_type: ClassVar[str] = "cloudflare_dns_record"

    zone_id: str
    type: Literal["CNAME"] = "CNAME"
    content: str
    ttl: int = 3600
    proxied: bool = True

    @property
    def natural_key(self) -> tuple[str, str]:
        return (self.zone_id, self.name)

    def to_api(self) -> dict[str, object]:
        return {
            "type": self.type,
            "name": self.name,
            "content": self.content,
            "ttl": self.ttl,
            "proxied": self.proxied,
        }
