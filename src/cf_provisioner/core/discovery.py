"""Paginated discovery of accounts and zones."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from cf_provisioner.engine.errors import DiscoveryError

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from cf_provisioner.core.client import CloudflareClient

logger = logging.getLogger(__name__)

PAGE_SIZE = 50


class Account(BaseModel):
    id: str
    name: str


class Zone(BaseModel):
    id: str
    name: str
    account_id: str | None = None


class ResourceDiscovery:
    """Enumerates accounts and zones visible to a credential."""

    def __init__(self, client: CloudflareClient, *, page_size: int = PAGE_SIZE) -> None:
        self._client = client
        self._page_size = page_size

    def _paginate(
        self, path: str, params: Mapping[str, Any] | None = None
    ) -> Iterator[dict[str, Any]]:
        """Yield result items page by page, ordered by name ascending.

        Stops after the first page when the response carries no
        ``total_pages`` metadata.
        """
        page = 1
        while True:
            query = {
                **(params or {}),
                "per_page": self._page_size,
                "page": page,
                "order": "name",
                "direction": "asc",
            }
            body = self._client.request("GET", path, params=query)
            yield from body.get("result") or []

            total_pages = (body.get("result_info") or {}).get("total_pages")
            if not total_pages:
                return
            page += 1
            if page > total_pages:
                return

    def list_accounts(self) -> list[Account]:
        accounts = [Account(id=a["id"], name=a["name"]) for a in self._paginate("/accounts")]
        logger.debug("Discovered %d accounts", len(accounts))
        return accounts

    def list_zones(self, account_id: str) -> list[Zone]:
        zones = [
            Zone(id=z["id"], name=z["name"], account_id=account_id)
            for z in self._paginate("/zones", {"account.id": account_id})
        ]
        logger.debug("Discovered %d zones in account %s", len(zones), account_id)
        return zones

    def find_zone(self, name: str) -> Zone | None:
        """Look up a zone by domain name."""
        for z in self._client.find_zones(name):
            if z.get("name") == name:
                account = (z.get("account") or {}).get("id")
                return Zone(id=z["id"], name=z["name"], account_id=account)
        return None

    def resolve_account_id(self) -> str:
        """Return the only visible account id.

        Raises:
            DiscoveryError: No account, or more than one to choose from.
        """
        accounts = self.list_accounts()
        if not accounts:
            raise DiscoveryError("No Cloudflare accounts are visible to this credential")
        if len(accounts) > 1:
            choices = ", ".join(f"{a.name} ({a.id})" for a in accounts)
            raise DiscoveryError(
                f"Multiple accounts found; set provider.account_id to one of: {choices}"
            )
        logger.info("Using account %s (%s)", accounts[0].name, accounts[0].id)
        return accounts[0].id
