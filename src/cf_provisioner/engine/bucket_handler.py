"""R2 bucket handler implementing lookup/create via the REST API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cf_provisioner.engine.handlers import StepHandler

if TYPE_CHECKING:
    from cf_provisioner.engine.handlers import StepContext
    from cf_provisioner.resources.storage import BucketResource


class BucketHandler(StepHandler["BucketResource"]):
    """Check-then-create for R2 buckets.

    Listing raises ``StorageNotEnabledError`` when R2 has not been enabled on
    the account, before any creation is attempted.
    """

    step_name = "bucket"

    def find(self, ctx: StepContext, desired: BucketResource) -> dict[str, Any] | None:
        for bucket in ctx.client.list_buckets(ctx.account_id):
            if bucket.get("name") == desired.name:
                return {"name": desired.name, "location": bucket.get("location")}
        return None

    def create(self, ctx: StepContext, desired: BucketResource) -> dict[str, Any]:
        result = ctx.client.create_bucket(ctx.account_id, desired.name) or {}
        return {"name": desired.name, "location": result.get("location")}
