"""DNS record handler (upsert by zone id + record name)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cf_provisioner.engine.handlers import StepHandler

if TYPE_CHECKING:
    from cf_provisioner.engine.handlers import StepContext
    from cf_provisioner.resources.dns import DNSRecordResource

logger = logging.getLogger(__name__)

_COMPARED = ("type", "content", "ttl", "proxied")


def _attrs(raw: dict[str, Any]) -> dict[str, Any]:
    return {k: raw.get(k) for k in ("id", "name", *_COMPARED)}


class DNSRecordHandler(StepHandler["DNSRecordResource"]):
    """Create a record, or update the existing one with the same name in place.

    Never creates a second record for a name that already has one.
    """

    step_name = "dns"

    def find(self, ctx: StepContext, desired: DNSRecordResource) -> dict[str, Any] | None:
        records = ctx.client.list_dns_records(desired.zone_id, name=desired.name)
        if not records:
            return None
        same_type = [r for r in records if r.get("type") == desired.type]
        return _attrs((same_type or records)[0])

    def create(self, ctx: StepContext, desired: DNSRecordResource) -> dict[str, Any]:
        return _attrs(ctx.client.create_dns_record(desired.zone_id, desired.to_api()))

    def reconcile(
        self, ctx: StepContext, desired: DNSRecordResource, existing: dict[str, Any]
    ) -> dict[str, Any] | None:
        wanted = desired.to_api()
        if all(existing.get(k) == wanted[k] for k in _COMPARED):
            return None
        logger.info(
            "Updating %s record %s: %s -> %s",
            desired.type,
            desired.name,
            existing.get("content"),
            desired.content,
        )
        updated = ctx.client.update_dns_record(desired.zone_id, str(existing["id"]), wanted)
        return _attrs(updated)
