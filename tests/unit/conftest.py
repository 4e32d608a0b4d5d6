"""Shared fixtures for unit tests."""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest
from pydantic import SecretStr

from cf_provisioner.config import load
from cf_provisioner.core.client import CloudflareClient, GlobalKeyAuth, _classify_failure
from cf_provisioner.engine.executor import CommandResult, DeploymentExecutor
from cf_provisioner.engine.pipeline import ProvisioningPipeline
from cf_provisioner.engine.wrangler import WranglerCLI

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from pathlib import Path

    from cf_provisioner.config.schema import Config

_CF_ENV_VARS = (
    "CLOUDFLARE_EMAIL",
    "CLOUDFLARE_API_KEY",
    "CLOUDFLARE_ACCOUNT_ID",
    "CLOUDFLARE_API_BASE",
    "CLOUDFLARE_TIMEOUT",
    "CLOUDFLARE_API_TOKEN",
    "CF_PROVISIONER_LOG",
)

ACCOUNT_ID = "acc-1"
USER_ID = "user-1"

CATALOG: list[dict[str, Any]] = [
    {"id": "pg-pages-w", "name": "Pages Write", "scopes": ["com.cloudflare.api.account"]},
    {"id": "pg-pages-r", "name": "Pages Read", "scopes": ["com.cloudflare.api.account"]},
    {"id": "pg-scripts-w", "name": "Workers Scripts Write", "scopes": ["com.cloudflare.api.account"]},
    {"id": "pg-dns-w", "name": "DNS Write", "scopes": ["com.cloudflare.api.account.zone"]},
    {"id": "pg-settings-r", "name": "Account Settings Read", "scopes": ["com.cloudflare.api.account"]},
    {"id": "pg-user-r", "name": "User Details Read", "scopes": ["com.cloudflare.api.user"]},
    {"id": "pg-member-r", "name": "Memberships Read", "scopes": ["com.cloudflare.api.user"]},
    {"id": "pg-r2-w", "name": "Workers R2 Storage Write", "scopes": ["com.cloudflare.api.account"]},
    {"id": "pg-r2-r", "name": "Workers R2 Storage Read", "scopes": ["com.cloudflare.api.account"]},
    {"id": "pg-d1-w", "name": "D1 Write", "scopes": ["com.cloudflare.api.account"]},
    {
        "id": "pg-access-w",
        "name": "Access: Apps and Policies Write",
        "scopes": ["com.cloudflare.api.account"],
    },
    {
        "id": "pg-access-r",
        "name": "Access: Apps and Policies Read",
        "scopes": ["com.cloudflare.api.account"],
    },
]


@pytest.fixture(autouse=True)
def _clean_cf_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove CLOUDFLARE_* env vars so unit tests don't leak host config."""
    for var in _CF_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Config]:
    """Factory fixture: write YAML + optional .env, return loaded Config."""

    def _make(yaml_str: str, *, dotenv: str | None = None) -> Config:
        (tmp_path / "config.yaml").write_text(yaml_str)
        if dotenv is not None:
            (tmp_path / ".env").write_text(dotenv)
        return load(tmp_path / "config.yaml")

    return _make


# ---------------------------------------------------------------------------
# In-memory Cloudflare API
# ---------------------------------------------------------------------------


@dataclass
class CloudflareState:
    """Remote state behind :class:`FakeCloudflare`."""

    user_id: str = USER_ID
    accounts: list[dict[str, Any]] = field(
        default_factory=lambda: [{"id": ACCOUNT_ID, "name": "Demo Account"}]
    )
    zones: list[dict[str, Any]] = field(default_factory=list)
    catalog: list[dict[str, Any]] = field(default_factory=lambda: list(CATALOG))
    tokens: dict[str, dict[str, Any]] = field(default_factory=dict)
    revoked: list[str] = field(default_factory=list)
    r2_enabled: bool = True
    buckets: list[dict[str, Any]] = field(default_factory=list)
    pages_domains: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    dns_records: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    access_apps: list[dict[str, Any]] = field(default_factory=list)
    access_policies: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    # (method, path fragment) -> (status, errors) forced failures
    failures: dict[tuple[str, str], tuple[int, list[dict[str, Any]]]] = field(default_factory=dict)
    calls: list[tuple[str, str, str]] = field(default_factory=list)
    paginate_without_info: bool = False

    def calls_to(self, method: str, fragment: str) -> list[tuple[str, str, str]]:
        return [c for c in self.calls if c[0] == method and fragment in c[1]]


class FakeCloudflare(CloudflareClient):
    """``CloudflareClient`` whose ``request`` is served from :class:`CloudflareState`."""

    def __init__(self, auth: Any = None, *, state: CloudflareState | None = None, **kwargs: Any):
        kwargs.setdefault("session", MagicMock())
        super().__init__(
            auth or GlobalKeyAuth(email="ops@example.com", api_key=SecretStr("global-key")),
            **kwargs,
        )
        self.state = state or CloudflareState()

    def with_token(self, token: Any) -> FakeCloudflare:
        clone = super().with_token(token)
        clone.state = self.state
        return clone

    @property
    def credential_kind(self) -> str:
        return "token" if "Authorization" in self.auth.headers() else "global"

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        s = self.state
        s.calls.append((method, path, self.credential_kind))
        for (m, fragment), (status, errors) in s.failures.items():
            if m == method and fragment in path:
                raise _classify_failure(status, errors, f"{method} {path}")
        params = dict(params or {})
        result, info = self._route(method, path, params, json)
        body: dict[str, Any] = {"success": True, "errors": [], "messages": [], "result": result}
        if info is not None:
            body["result_info"] = info
        return body

    def _fail(self, status: int, code: int, message: str, method: str, path: str) -> None:
        raise _classify_failure(status, [{"code": code, "message": message}], f"{method} {path}")

    def _page(
        self, items: list[dict[str, Any]], params: dict[str, Any]
    ) -> tuple[list[dict[str, Any]], dict[str, Any] | None]:
        per_page = int(params.get("per_page", 20))
        page = int(params.get("page", 1))
        ordered = sorted(items, key=lambda i: i["name"])
        chunk = ordered[(page - 1) * per_page : page * per_page]
        if self.state.paginate_without_info:
            return chunk, None
        total_pages = max(1, -(-len(items) // per_page))
        return chunk, {
            "page": page,
            "per_page": per_page,
            "count": len(chunk),
            "total_count": len(items),
            "total_pages": total_pages,
        }

    def _route(
        self, method: str, path: str, params: dict[str, Any], payload: Any
    ) -> tuple[Any, dict[str, Any] | None]:
        s = self.state

        if path == "/user" and method == "GET":
            return {"id": s.user_id, "email": "ops@example.com"}, None
        if path == "/user/tokens/permission_groups":
            return s.catalog, None
        if path == "/user/tokens" and method == "POST":
            token_id = f"tok-{len(s.tokens) + len(s.revoked) + 1}"
            s.tokens[token_id] = dict(payload)
            return {"id": token_id, "value": f"secret-{token_id}"}, None
        if m := re.fullmatch(r"/user/tokens/([^/]+)", path):
            token_id = m.group(1)
            if token_id not in s.tokens:
                self._fail(404, 1003, "Token not found", method, path)
            del s.tokens[token_id]
            s.revoked.append(token_id)
            return {"id": token_id}, None

        if path == "/accounts":
            return self._page(s.accounts, params)
        if path == "/zones":
            if "name" in params:
                return [z for z in s.zones if z["name"] == params["name"]], None
            account = params.get("account.id")
            return self._page([z for z in s.zones if z["account"]["id"] == account], params)

        if m := re.fullmatch(r"/accounts/[^/]+/r2/buckets", path):
            if not s.r2_enabled:
                self._fail(403, 10042, "Please enable R2 through the Cloudflare Dashboard.", method, path)
            if method == "GET":
                return {"buckets": list(s.buckets)}, None
            if any(b["name"] == payload["name"] for b in s.buckets):
                self._fail(409, 10004, "The bucket you tried to create already exists", method, path)
            bucket = {"name": payload["name"], "location": "ENAM"}
            s.buckets.append(bucket)
            return bucket, None

        if m := re.fullmatch(r"/accounts/[^/]+/pages/projects/([^/]+)/domains", path):
            domains = s.pages_domains.setdefault(m.group(1), [])
            if method == "GET":
                return list(domains), None
            if any(d["name"] == payload["name"] for d in domains):
                self._fail(409, 8000018, "You have already added this custom domain.", method, path)
            domain = {"id": uuid.uuid4().hex, "name": payload["name"], "status": "pending"}
            domains.append(domain)
            return domain, None

        if m := re.fullmatch(r"/zones/([^/]+)/dns_records(?:/([^/]+))?", path):
            records = s.dns_records.setdefault(m.group(1), [])
            if method == "GET":
                return [r for r in records if r["name"] == params.get("name")], None
            if method == "POST":
                record = {"id": uuid.uuid4().hex, **payload}
                records.append(record)
                return record, None
            record = next(r for r in records if r["id"] == m.group(2))
            record.update(payload)
            return record, None

        if re.fullmatch(r"/accounts/[^/]+/access/apps", path):
            if method == "GET":
                return list(s.access_apps), None
            app = {"id": f"app-{len(s.access_apps) + 1}", **payload}
            s.access_apps.append(app)
            return app, None
        if m := re.fullmatch(r"/accounts/[^/]+/access/apps/([^/]+)/policies(?:/([^/]+))?", path):
            policies = s.access_policies.setdefault(m.group(1), [])
            if method == "GET":
                return list(policies), None
            if method == "POST":
                policy = {"id": f"pol-{len(policies) + 1}", "precedence": len(policies) + 1, **payload}
                policies.append(policy)
                return policy, None
            policy = next(p for p in policies if p["id"] == m.group(2))
            policy.clear()
            policy.update({"id": m.group(2), **payload})
            return policy, None

        raise AssertionError(f"Unrouted request: {method} {path}")


@pytest.fixture
def cf_state() -> CloudflareState:
    return CloudflareState()


@pytest.fixture
def fake_cf(cf_state: CloudflareState) -> FakeCloudflare:
    return FakeCloudflare(state=cf_state)


# ---------------------------------------------------------------------------
# Simulated wrangler
# ---------------------------------------------------------------------------


@dataclass
class WranglerState:
    databases: list[dict[str, str]] = field(default_factory=list)
    projects: list[str] = field(default_factory=list)
    executed: list[tuple[str, str]] = field(default_factory=list)
    deployments: list[dict[str, str]] = field(default_factory=list)
    commands: list[list[str]] = field(default_factory=list)
    envs: list[dict[str, str]] = field(default_factory=list)
    fail: dict[str, str] = field(default_factory=dict)


class FakeWranglerRunner:
    """``CommandRunner`` that answers wrangler invocations from :class:`WranglerState`."""

    def __init__(self, state: WranglerState) -> None:
        self.state = state

    def __call__(
        self,
        command: Sequence[str],
        env: Mapping[str, str],
        cwd: Path | None,
        echo: Callable[[str], None] | None,
    ) -> CommandResult:
        s = self.state
        args = list(command[1:])
        s.commands.append(list(command))
        s.envs.append(dict(env))
        key = " ".join(args[:2])
        if key in s.fail:
            return CommandResult(list(command), 1, s.fail[key])
        output = self._dispatch(args)
        if isinstance(output, CommandResult):
            return output
        if echo is not None:
            for line in output.splitlines():
                echo(line)
        return CommandResult(list(command), 0, output)

    def _dispatch(self, args: list[str]) -> str | CommandResult:
        s = self.state
        if args == ["--version"]:
            return " ⛅️ wrangler 3.57.1\n"
        if args[:2] == ["d1", "list"]:
            return json.dumps([{"uuid": d["id"], "name": d["name"]} for d in s.databases])
        if args[:2] == ["d1", "create"]:
            name = args[2]
            if any(d["name"] == name for d in s.databases):
                return CommandResult(["wrangler", *args], 1, f"✘ [ERROR] A database with name '{name}' already exists")
            db_id = str(uuid.uuid4())
            s.databases.append({"id": db_id, "name": name})
            return (
                f"✅ Successfully created DB '{name}'\n\n"
                "[[d1_databases]]\n"
                'binding = "DB"\n'
                f'database_name = "{name}"\n'
                f'database_id = "{db_id}"\n'
            )
        if args[:2] == ["d1", "execute"]:
            s.executed.append((args[2], args[args.index("--file") + 1]))
            return "🚣 Executed 3 commands in 0.52ms\n"
        if args[:3] == ["pages", "project", "list"]:
            rows = "".join(f"│ {p} │ {p}.pages.dev │ 1 minute ago │\n" for p in s.projects)
            return "┌─┐\n│ Project Name │ Project Domains │ Last Modified │\n├─┤\n" + rows + "└─┘\n"
        if args[:3] == ["pages", "project", "create"]:
            s.projects.append(args[3])
            return f"✨ Successfully created the '{args[3]}' project.\n"
        if args[:2] == ["pages", "deploy"]:
            project = args[args.index("--project-name") + 1]
            s.deployments.append({"dir": args[2], "project": project})
            return (
                "✨ Success! Uploaded 3 files (1.20 sec)\n"
                f"✨ Deployment complete! Take a peek over at https://a1b2c3d4.{project}.pages.dev\n"
            )
        raise AssertionError(f"Unexpected wrangler command: {args}")


@pytest.fixture
def wrangler_state() -> WranglerState:
    return WranglerState()


@pytest.fixture
def wrangler(wrangler_state: WranglerState) -> WranglerCLI:
    executor = DeploymentExecutor(
        runner=FakeWranglerRunner(wrangler_state),
        base_env={"PATH": "/usr/bin", "CF_API_TOKEN": "stale-token"},
    )
    return WranglerCLI(executor)


# ---------------------------------------------------------------------------
# Project on disk
# ---------------------------------------------------------------------------

DEMO_YAML = """\
provider:
  email: ops@example.com
  api_key: global-key
  account_id: acc-1

project:
  name: demo
  output_dir: dist

features:
  database: true
  storage: true

database:
  schema_file: schema.sql
  seed_file: seed.sql
"""


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A built site: ``dist/index.html`` plus schema and seed SQL."""
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "index.html").write_text("<html></html>\n")
    (tmp_path / "schema.sql").write_text("CREATE TABLE products (id INTEGER PRIMARY KEY);\n")
    (tmp_path / "seed.sql").write_text("INSERT INTO products (id) VALUES (1);\n")
    return tmp_path


@pytest.fixture
def make_pipeline(
    project_dir: Path,
    make_config: Callable[..., Config],
    fake_cf: FakeCloudflare,
    wrangler: WranglerCLI,
) -> Callable[..., ProvisioningPipeline]:
    """Factory fixture: pipeline over the fake API and simulated wrangler."""

    def _make(yaml_str: str = DEMO_YAML) -> ProvisioningPipeline:
        return ProvisioningPipeline(make_config(yaml_str), client=fake_cf, wrangler=wrangler)

    return _make
