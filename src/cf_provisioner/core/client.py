"""Cloudflare API client - connection configuration and REST calls."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Self

import requests
from pydantic import BaseModel, SecretStr

from cf_provisioner.engine.errors import (
    APIError,
    AuthenticationError,
    ResourceConflictError,
    StorageNotEnabledError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.cloudflare.com/client/v4"

# Invalid/missing auth headers, invalid API key, unknown token.
_AUTH_CODES = frozenset({6003, 6103, 9103, 9106, 9109})
# Bucket exists, DNS record exists, Pages domain already added.
_CONFLICT_CODES = frozenset({10004, 81053, 81057, 8000018})
_CONFLICT_FRAGMENTS = ("already exists", "already added", "already been taken", "already in use")
_STORAGE_DISABLED_CODE = 10042


class GlobalKeyAuth(BaseModel):
    """Account email + global API key (identity credential)."""

    email: str
    api_key: SecretStr

    def headers(self) -> dict[str, str]:
        return {"X-Auth-Email": self.email, "X-Auth-Key": self.api_key.get_secret_value()}


class TokenAuth(BaseModel):
    """Bearer API token (scoped credential)."""

    token: SecretStr

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token.get_secret_value()}"}


def _classify_failure(
    status: int | None, errors: list[dict[str, Any]], endpoint: str
) -> APIError:
    codes = {e.get("code") for e in errors}
    message = next((str(e["message"]) for e in errors if e.get("message")), "Unknown error")
    kwargs: dict[str, Any] = {"status": status, "errors": errors, "endpoint": endpoint}

    if status == 401 or codes & _AUTH_CODES:
        return AuthenticationError(f"Authentication failed: {message}", **kwargs)
    if _STORAGE_DISABLED_CODE in codes or "enable r2" in message.lower():
        return StorageNotEnabledError(f"R2 storage is not enabled: {message}", **kwargs)
    lowered = message.lower()
    if codes & _CONFLICT_CODES or any(f in lowered for f in _CONFLICT_FRAGMENTS):
        return ResourceConflictError(f"Already exists: {message}", **kwargs)
    return APIError(f"API error: {message}", **kwargs)


class CloudflareClient:
    """Thin client for the Cloudflare v4 REST API.

    Every call returns the decoded JSON envelope's ``result`` (or the whole
    envelope via :meth:`request`) and raises a typed :class:`APIError` when
    ``success`` is false.

    Examples:
        client = CloudflareClient(GlobalKeyAuth(email="me@example.com", api_key=key))
        scoped = client.with_token(credential.value)
    """

    def __init__(
        self,
        auth: GlobalKeyAuth | TokenAuth,
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.auth = auth
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()

    def with_token(self, token: SecretStr | str) -> Self:
        """Return a client sharing this session but authenticating with *token*."""
        secret = token if isinstance(token, SecretStr) else SecretStr(token)
        return type(self)(
            TokenAuth(token=secret),
            api_base=self.api_base,
            timeout=self.timeout,
            session=self._session,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        """Perform a call and return the decoded envelope."""
        endpoint = f"{method} {path}"
        headers = {"Content-Type": "application/json", **self.auth.headers()}
        try:
            resp = self._session.request(
                method,
                f"{self.api_base}{path}",
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise APIError(f"Request failed: {exc}", endpoint=endpoint) from exc

        logger.debug("%s -> %s", endpoint, resp.status_code)
        try:
            body = resp.json()
        except ValueError as exc:
            raise APIError(
                f"Invalid JSON response (HTTP {resp.status_code})",
                status=resp.status_code,
                endpoint=endpoint,
            ) from exc

        if not isinstance(body, dict) or not body.get("success"):
            errors = (body.get("errors") or []) if isinstance(body, dict) else []
            raise _classify_failure(resp.status_code, list(errors), endpoint)
        return body

    def _result(self, method: str, path: str, **kwargs: Any) -> Any:
        return self.request(method, path, **kwargs).get("result")

    # -- identity / tokens ---------------------------------------------------

    def get_user(self) -> dict[str, Any]:
        return self._result("GET", "/user")

    def list_permission_groups(self) -> list[dict[str, Any]]:
        return self._result("GET", "/user/tokens/permission_groups") or []

    def create_token(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._result("POST", "/user/tokens", json=payload)

    def delete_token(self, token_id: str) -> None:
        self.request("DELETE", f"/user/tokens/{token_id}")

    # -- R2 ------------------------------------------------------------------

    def list_buckets(self, account_id: str) -> list[dict[str, Any]]:
        result = self._result("GET", f"/accounts/{account_id}/r2/buckets") or {}
        return list(result.get("buckets") or [])

    def create_bucket(self, account_id: str, name: str) -> dict[str, Any]:
        return self._result("POST", f"/accounts/{account_id}/r2/buckets", json={"name": name})

    # -- Pages ---------------------------------------------------------------

    def list_pages_domains(self, account_id: str, project: str) -> list[dict[str, Any]]:
        return self._result("GET", f"/accounts/{account_id}/pages/projects/{project}/domains") or []

    def add_pages_domain(self, account_id: str, project: str, domain: str) -> dict[str, Any]:
        return self._result(
            "POST",
            f"/accounts/{account_id}/pages/projects/{project}/domains",
            json={"name": domain},
        )

    # -- DNS -----------------------------------------------------------------

    def find_zones(self, name: str) -> list[dict[str, Any]]:
        return self._result("GET", "/zones", params={"name": name}) or []

    def list_dns_records(
        self, zone_id: str, *, name: str, record_type: str | None = None
    ) -> list[dict[str, Any]]:
        params = {"name": name}
        if record_type:
            params["type"] = record_type
        return self._result("GET", f"/zones/{zone_id}/dns_records", params=params) or []

    def create_dns_record(self, zone_id: str, record: dict[str, Any]) -> dict[str, Any]:
        return self._result("POST", f"/zones/{zone_id}/dns_records", json=record)

    def update_dns_record(
        self, zone_id: str, record_id: str, record: dict[str, Any]
    ) -> dict[str, Any]:
        return self._result("PUT", f"/zones/{zone_id}/dns_records/{record_id}", json=record)

    # -- Access --------------------------------------------------------------

    def list_access_apps(self, account_id: str) -> list[dict[str, Any]]:
        return self._result("GET", f"/accounts/{account_id}/access/apps") or []

    def create_access_app(self, account_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self._result("POST", f"/accounts/{account_id}/access/apps", json=payload)

    def list_access_policies(self, account_id: str, app_id: str) -> list[dict[str, Any]]:
        return self._result("GET", f"/accounts/{account_id}/access/apps/{app_id}/policies") or []

    def create_access_policy(
        self, account_id: str, app_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return self._result(
            "POST", f"/accounts/{account_id}/access/apps/{app_id}/policies", json=payload
        )

    def update_access_policy(
        self, account_id: str, app_id: str, policy_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return self._result(
            "PUT",
            f"/accounts/{account_id}/access/apps/{app_id}/policies/{policy_id}",
            json=payload,
        )
