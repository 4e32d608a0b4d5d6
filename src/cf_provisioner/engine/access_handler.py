"""Access application and policy handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cf_provisioner.engine.handlers import StepHandler

if TYPE_CHECKING:
    from cf_provisioner.engine.handlers import StepContext
    from cf_provisioner.resources.access import AccessApplicationResource, AccessPolicyResource

logger = logging.getLogger(__name__)


def policy_emails(policy: dict[str, Any]) -> list[str]:
    """Emails admitted by a policy's ``include`` rules."""
    emails: list[str] = []
    for rule in policy.get("include") or []:
        value = rule.get("email") if isinstance(rule, dict) else None
        if isinstance(value, dict) and value.get("email"):
            emails.append(str(value["email"]))
        elif isinstance(value, list):
            emails.extend(str(v) for v in value)
        elif isinstance(value, str):
            emails.append(value)
    return emails


class AccessApplicationHandler(StepHandler["AccessApplicationResource"]):
    """Find an Access application by protected domain, create if absent."""

    step_name = "access_app"

    def _attrs(self, raw: dict[str, Any]) -> dict[str, Any]:
        return {"id": raw.get("id"), "name": raw.get("name"), "domain": raw.get("domain")}

    def find(self, ctx: StepContext, desired: AccessApplicationResource) -> dict[str, Any] | None:
        for app in ctx.client.list_access_apps(ctx.account_id):
            if app.get("domain") == desired.domain:
                return self._attrs(app)
        return None

    def create(self, ctx: StepContext, desired: AccessApplicationResource) -> dict[str, Any]:
        return self._attrs(ctx.client.create_access_app(ctx.account_id, desired.to_api()))


class AccessPolicyHandler(StepHandler["AccessPolicyResource"]):
    """Upsert the admin allow policy; the configured email list replaces the remote one."""

    step_name = "access_policy"

    def _attrs(self, raw: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": raw.get("id"),
            "name": raw.get("name"),
            "decision": raw.get("decision"),
            "emails": policy_emails(raw),
            "precedence": raw.get("precedence"),
        }

    def find(self, ctx: StepContext, desired: AccessPolicyResource) -> dict[str, Any] | None:
        for policy in ctx.client.list_access_policies(ctx.account_id, desired.app_id):
            if policy.get("name") == desired.name:
                return self._attrs(policy)
        return None

    def create(self, ctx: StepContext, desired: AccessPolicyResource) -> dict[str, Any]:
        return self._attrs(
            ctx.client.create_access_policy(ctx.account_id, desired.app_id, desired.to_api())
        )

    def reconcile(
        self, ctx: StepContext, desired: AccessPolicyResource, existing: dict[str, Any]
    ) -> dict[str, Any] | None:
        if existing.get("emails") == desired.emails and existing.get("decision") == desired.decision:
            return None
        payload = desired.to_api()
        if existing.get("precedence") is not None:
            payload["precedence"] = existing["precedence"]
        logger.info(
            "Replacing %s emails on %s: %s -> %s",
            desired.name,
            desired.app_id,
            existing.get("emails"),
            desired.emails,
        )
        updated = ctx.client.update_access_policy(
            ctx.account_id, desired.app_id, str(existing["id"]), payload
        )
        return self._attrs(updated)
