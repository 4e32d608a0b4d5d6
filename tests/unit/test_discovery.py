"""Tests for account and zone discovery."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cf_provisioner.core.discovery import ResourceDiscovery
from cf_provisioner.engine.errors import DiscoveryError

if TYPE_CHECKING:
    from conftest import CloudflareState, FakeCloudflare


class TestPagination:
    def test_collects_every_page(self, fake_cf: FakeCloudflare, cf_state: CloudflareState) -> None:
        cf_state.accounts = [{"id": f"acc-{i:03d}", "name": f"Account {i:03d}"} for i in range(130)]

        accounts = ResourceDiscovery(fake_cf).list_accounts()

        assert len(accounts) == 130
        assert len({a.id for a in accounts}) == 130
        assert [a.name for a in accounts] == sorted(a.name for a in accounts)
        assert len(cf_state.calls_to("GET", "/accounts")) == 3

    def test_query_parameters(self, fake_cf: FakeCloudflare, cf_state: CloudflareState) -> None:
        seen: list[dict] = []
        original = fake_cf._route

        def spy(method, path, params, payload):
            seen.append(params)
            return original(method, path, params, payload)

        fake_cf._route = spy  # type: ignore[method-assign]
        ResourceDiscovery(fake_cf).list_accounts()

        assert seen[0] == {"per_page": 50, "page": 1, "order": "name", "direction": "asc"}

    def test_missing_total_pages_stops_after_first_page(
        self, fake_cf: FakeCloudflare, cf_state: CloudflareState
    ) -> None:
        cf_state.accounts = [{"id": f"a{i}", "name": f"n{i:03d}"} for i in range(75)]
        cf_state.paginate_without_info = True

        accounts = ResourceDiscovery(fake_cf).list_accounts()

        assert len(accounts) == 50
        assert len(cf_state.calls_to("GET", "/accounts")) == 1

    def test_zero_results(self, fake_cf: FakeCloudflare, cf_state: CloudflareState) -> None:
        cf_state.accounts = []

        assert ResourceDiscovery(fake_cf).list_accounts() == []

    def test_zones_filtered_by_account(
        self, fake_cf: FakeCloudflare, cf_state: CloudflareState
    ) -> None:
        cf_state.zones = [
            {"id": "z1", "name": "example.com", "account": {"id": "acc-1"}},
            {"id": "z2", "name": "other.org", "account": {"id": "acc-2"}},
        ]

        zones = ResourceDiscovery(fake_cf).list_zones("acc-1")

        assert [(z.id, z.name, z.account_id) for z in zones] == [("z1", "example.com", "acc-1")]


class TestFindZone:
    def test_found(self, fake_cf: FakeCloudflare, cf_state: CloudflareState) -> None:
        cf_state.zones = [{"id": "z1", "name": "example.com", "account": {"id": "acc-1"}}]

        zone = ResourceDiscovery(fake_cf).find_zone("example.com")

        assert zone is not None
        assert zone.id == "z1"
        assert zone.account_id == "acc-1"

    def test_missing(self, fake_cf: FakeCloudflare) -> None:
        assert ResourceDiscovery(fake_cf).find_zone("nowhere.dev") is None


class TestResolveAccount:
    def test_single_account(self, fake_cf: FakeCloudflare) -> None:
        assert ResourceDiscovery(fake_cf).resolve_account_id() == "acc-1"

    def test_multiple_accounts_lists_candidates(
        self, fake_cf: FakeCloudflare, cf_state: CloudflareState
    ) -> None:
        cf_state.accounts = [{"id": "a1", "name": "Alpha"}, {"id": "b2", "name": "Beta"}]

        with pytest.raises(DiscoveryError, match=r"Alpha \(a1\), Beta \(b2\)"):
            ResourceDiscovery(fake_cf).resolve_account_id()

    def test_no_accounts(self, fake_cf: FakeCloudflare, cf_state: CloudflareState) -> None:
        cf_state.accounts = []

        with pytest.raises(DiscoveryError, match="No Cloudflare accounts"):
            ResourceDiscovery(fake_cf).resolve_account_id()
