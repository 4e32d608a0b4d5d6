"""Pages custom domain handler."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cf_provisioner.engine.handlers import StepHandler

if TYPE_CHECKING:
    from cf_provisioner.engine.handlers import StepContext
    from cf_provisioner.resources.pages import CustomDomainResource


class CustomDomainHandler(StepHandler["CustomDomainResource"]):
    """Attach a custom domain to a Pages project if not already attached."""

    step_name = "domain"

    def _attrs(self, desired: CustomDomainResource, raw: dict[str, Any]) -> dict[str, Any]:
        return {"name": desired.name, "project": desired.project, "status": raw.get("status")}

    def find(self, ctx: StepContext, desired: CustomDomainResource) -> dict[str, Any] | None:
        for domain in ctx.client.list_pages_domains(ctx.account_id, desired.project):
            if domain.get("name") == desired.name:
                return self._attrs(desired, domain)
        return None

    def create(self, ctx: StepContext, desired: CustomDomainResource) -> dict[str, Any]:
        raw = ctx.client.add_pages_domain(ctx.account_id, desired.project, desired.name) or {}
        return self._attrs(desired, raw)
