"""Scoped API token issuance and revocation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field, SecretStr

from cf_provisioner.engine.errors import APIError, AuthenticationError, PermissionLookupError

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from cf_provisioner.core.client import CloudflareClient

logger = logging.getLogger(__name__)

Scope = Literal["account", "user"]

ACCOUNT_SCOPE = "com.cloudflare.api.account"
ZONE_SCOPE = "com.cloudflare.api.account.zone"
USER_SCOPE = "com.cloudflare.api.user"


@dataclass(frozen=True, slots=True)
class Capability:
    """A logical permission mapped onto catalog permission-group names.

    ``names`` are tried in order; the first one present in the catalog with an
    acceptable scope wins.  ``feature`` gates the capability on a project
    feature (``None`` = always requested).  ``catalog_scopes`` overrides the
    catalog scopes accepted for the group; by default only the policy's own
    scope is.
    """

    key: str
    names: tuple[str, ...]
    scope: Scope
    feature: str | None = None
    catalog_scopes: frozenset[str] | None = None

    @property
    def accepted_scopes(self) -> frozenset[str]:
        if self.catalog_scopes is not None:
            return self.catalog_scopes
        return frozenset({ACCOUNT_SCOPE if self.scope == "account" else USER_SCOPE})


CAPABILITIES: tuple[Capability, ...] = (
    Capability("pages:write", ("Pages Write",), "account"),
    Capability("pages:read", ("Pages Read",), "account"),
    Capability("scripts:write", ("Workers Scripts Write",), "account"),
    # DNS groups are published with the zone scope but granted through the account policy.
    Capability(
        "dns:write",
        ("DNS Write",),
        "account",
        catalog_scopes=frozenset({ACCOUNT_SCOPE, ZONE_SCOPE}),
    ),
    Capability("account:settings:read", ("Account Settings Read",), "account"),
    Capability("user:read", ("User Details Read",), "user"),
    Capability("user:memberships:read", ("Memberships Read",), "user"),
    Capability("storage:write", ("Workers R2 Storage Write",), "account", feature="storage"),
    Capability("storage:read", ("Workers R2 Storage Read",), "account", feature="storage"),
    Capability("d1:write", ("D1 Write", "Workers D1 Database Write"), "account", feature="database"),
    Capability(
        "access:apps:write",
        ("Access: Apps and Policies Write", "Access: Apps and Policies Edit"),
        "account",
        feature="access",
    ),
    Capability("access:apps:read", ("Access: Apps and Policies Read",), "account", feature="access"),
)


class PermissionGroupRef(BaseModel):
    id: str
    name: str = ""


class Policy(BaseModel):
    effect: Literal["allow", "deny"] = "allow"
    resource_scope: str
    permission_groups: list[PermissionGroupRef]

    def to_api(self) -> dict[str, object]:
        return {
            "effect": self.effect,
            "resources": {self.resource_scope: "*"},
            "permission_groups": [{"id": g.id} for g in self.permission_groups],
        }


class ScopedCredential(BaseModel):
    """A short-lived API token restricted to the permission groups a run needs."""

    value: SecretStr
    id: str
    policies: list[Policy] = Field(default_factory=list)
    issued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    dropped: list[str] = Field(default_factory=list)

    def permission_group_names(self) -> set[str]:
        return {g.name for p in self.policies for g in p.permission_groups}


def required_capabilities(features: Collection[str]) -> list[Capability]:
    """Capabilities requested for the given set of enabled features."""
    return [c for c in CAPABILITIES if c.feature is None or c.feature in features]


def find_permission_group(
    catalog: Iterable[dict[str, object]], capability: Capability
) -> PermissionGroupRef | None:
    """Find a catalog entry whose name AND scope match *capability*."""
    accepted = capability.accepted_scopes
    entries = list(catalog)
    for name in capability.names:
        for entry in entries:
            scopes = entry.get("scopes") or []
            if entry.get("name") == name and accepted.intersection(scopes):  # type: ignore[arg-type]
                return PermissionGroupRef(id=str(entry["id"]), name=name)
    return None


def build_policies(
    catalog: Iterable[dict[str, object]],
    features: Collection[str],
    *,
    account_id: str,
    user_id: str,
) -> tuple[list[Policy], list[str]]:
    """Build token policies for *features*.

    Returns ``(policies, dropped_capability_keys)``.  A policy with no groups
    is omitted entirely.
    """
    entries = list(catalog)
    groups: dict[Scope, list[PermissionGroupRef]] = {"account": [], "user": []}
    dropped: list[str] = []
    for cap in required_capabilities(features):
        group = find_permission_group(entries, cap)
        if group is None:
            dropped.append(cap.key)
            continue
        if all(g.id != group.id for g in groups[cap.scope]):
            groups[cap.scope].append(group)

    policies: list[Policy] = []
    if groups["account"]:
        policies.append(
            Policy(
                resource_scope=f"{ACCOUNT_SCOPE}.{account_id}",
                permission_groups=groups["account"],
            )
        )
    if groups["user"]:
        policies.append(
            Policy(resource_scope=f"{USER_SCOPE}.{user_id}", permission_groups=groups["user"])
        )
    return policies, dropped


class CredentialBroker:
    """Mints and revokes scoped API tokens using the identity credential."""

    def __init__(self, client: CloudflareClient, *, token_name: str = "cf-provisioner") -> None:
        self._client = client
        self._token_name = token_name

    def mint(
        self,
        features: Collection[str],
        account_id: str,
        user_id: str | None = None,
    ) -> ScopedCredential:
        """Create a token covering exactly the permission groups *features* need.

        Raises:
            AuthenticationError: The identity credential was rejected.
            PermissionLookupError: The permission-group catalog is unavailable.
            APIError: Token creation failed.
        """
        if user_id is None:
            user_id = str(self._client.get_user()["id"])

        try:
            catalog = self._client.list_permission_groups()
        except AuthenticationError:
            raise
        except APIError as exc:
            raise PermissionLookupError(f"Failed to fetch permission groups: {exc}") from exc

        policies, dropped = build_policies(
            catalog, features, account_id=account_id, user_id=user_id
        )
        for key in dropped:
            logger.warning("Permission group for %s not found; capability dropped", key)
        if not policies:
            raise PermissionLookupError("No permission groups matched; cannot create a token")

        today = datetime.now(UTC).date().isoformat()
        payload = {
            "name": f"{self._token_name} {today}",
            "policies": [p.to_api() for p in policies],
        }
        result = self._client.create_token(payload)
        credential = ScopedCredential(
            value=SecretStr(str(result["value"])),
            id=str(result["id"]),
            policies=policies,
            dropped=dropped,
        )
        logger.info(
            "Scoped token %s issued (%d permission groups)",
            credential.id,
            len(credential.permission_group_names()),
        )
        return credential

    def revoke(self, credential: ScopedCredential | None) -> bool:
        """Delete the token. Never raises; failures are logged.

        Returns True if the remote delete succeeded.
        """
        if credential is None:
            return False
        return self.revoke_id(credential.id)

    def revoke_id(self, token_id: str) -> bool:
        """Delete a token by id with the identity credential. Never raises."""
        try:
            self._client.delete_token(token_id)
        except APIError as exc:
            logger.warning("Failed to revoke token %s: %s", token_id, exc)
            return False
        except Exception:
            logger.exception("Unexpected error revoking token %s", token_id)
            return False
        logger.info("Scoped token %s revoked", token_id)
        return True
