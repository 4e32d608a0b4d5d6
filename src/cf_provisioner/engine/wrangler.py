"""Wrangler CLI adapter.

All parsing of wrangler's human-oriented output lives here; callers get typed
values (``DatabaseInfo``, project names, URLs).
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

from pydantic import BaseModel

from cf_provisioner.engine.errors import ExecutionError, ResourceConflictError
from cf_provisioner.engine.executor import extract_identifier

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from cf_provisioner.engine.executor import DeploymentExecutor

logger = logging.getLogger(__name__)

_UUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I)
_PAGES_URL = re.compile(r"https://[\w.-]+\.pages\.dev\S*")
_TABLE_SEPARATORS = re.compile(r"[│|]")
_JSON_ARRAY_START = re.compile(r"^\[", re.M)


class DatabaseInfo(BaseModel):
    id: str
    name: str


def credential_env(token: str, account_id: str) -> dict[str, str]:
    """Child-process variables that make wrangler act as the scoped token."""
    return {"CLOUDFLARE_API_TOKEN": token, "CLOUDFLARE_ACCOUNT_ID": account_id}


def _table_rows(output: str) -> list[list[str]]:
    """Split box-drawn or ASCII table output into rows of stripped cells."""
    rows: list[list[str]] = []
    for line in output.splitlines():
        if not _TABLE_SEPARATORS.search(line):
            continue
        cells = [c.strip() for c in _TABLE_SEPARATORS.split(line)]
        cells = [c for c in cells if c]
        if cells:
            rows.append(cells)
    return rows


def parse_d1_list(output: str) -> list[DatabaseInfo]:
    """Parse ``wrangler d1 list`` output (``--json`` or table form)."""
    start = _JSON_ARRAY_START.search(output)
    if start is not None:
        try:
            data = json.loads(output[start.start() :])
        except json.JSONDecodeError:
            data = None
        if isinstance(data, list):
            return [
                DatabaseInfo(id=str(d.get("uuid") or d.get("id")), name=str(d["name"]))
                for d in data
                if isinstance(d, dict) and d.get("name")
            ]

    databases: list[DatabaseInfo] = []
    for cells in _table_rows(output):
        uuid = next((c for c in cells if _UUID.match(c)), None)
        if uuid is None:
            continue
        others = [c for c in cells if c != uuid]
        if others:
            databases.append(DatabaseInfo(id=uuid, name=others[0]))
    return databases


def parse_pages_project_list(output: str) -> list[str]:
    """Parse ``wrangler pages project list`` output into project names."""
    names: list[str] = []
    for cells in _table_rows(output):
        first = cells[0]
        if first.lower() == "project name":
            continue
        names.append(first)
    return names


def parse_deployment_url(output: str) -> str | None:
    match = _PAGES_URL.search(output)
    return match.group(0).rstrip(".,)") if match else None


def _is_conflict(exc: ExecutionError) -> bool:
    text = exc.output.lower()
    return "already exists" in text or "already in use" in text


class WranglerCLI:
    """Typed facade over the ``wrangler`` commands the pipeline uses."""

    def __init__(
        self,
        executor: DeploymentExecutor,
        *,
        binary: str = "wrangler",
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._executor = executor
        self._binary = binary
        self._env = dict(env or {})

    def with_env(self, env: Mapping[str, str]) -> WranglerCLI:
        return WranglerCLI(self._executor, binary=self._binary, env={**self._env, **env})

    def _run(self, *args: str) -> str:
        return self._executor.run([self._binary, *args], self._env)

    def version(self) -> str:
        """Return the wrangler version, or raise ``ExecutionError`` if it is not installed."""
        output = self._run("--version").strip()
        logger.debug("Wrangler version: %s", output)
        return output

    # -- D1 ------------------------------------------------------------------

    def d1_list(self) -> list[DatabaseInfo]:
        return parse_d1_list(self._run("d1", "list", "--json"))

    def d1_create(self, name: str) -> DatabaseInfo:
        """Create a database and return its id.

        Raises:
            ResourceConflictError: A database with this name already exists.
            ParseError: The output did not contain a ``database_id``.
        """
        try:
            output = self._run("d1", "create", name)
        except ExecutionError as exc:
            if _is_conflict(exc):
                raise ResourceConflictError(
                    f"D1 database {name} already exists", endpoint="wrangler d1 create"
                ) from exc
            raise
        return DatabaseInfo(id=extract_identifier(output, "database_id"), name=name)

    def d1_execute(self, name: str, file: Path) -> str:
        return self._run("d1", "execute", name, "--remote", "--file", str(file))

    # -- Pages ---------------------------------------------------------------

    def pages_project_list(self) -> list[str]:
        return parse_pages_project_list(self._run("pages", "project", "list"))

    def pages_project_create(self, name: str, production_branch: str) -> None:
        try:
            self._run(
                "pages", "project", "create", name, f"--production-branch={production_branch}"
            )
        except ExecutionError as exc:
            if _is_conflict(exc):
                raise ResourceConflictError(
                    f"Pages project {name} already exists",
                    endpoint="wrangler pages project create",
                ) from exc
            raise

    def pages_deploy(
        self, directory: Path, *, project: str, branch: str, commit_message: str
    ) -> str | None:
        """Deploy *directory*; return the deployment URL if wrangler printed one."""
        output = self._run(
            "pages",
            "deploy",
            str(directory),
            "--project-name",
            project,
            f"--branch={branch}",
            "--commit-dirty=true",
            f"--commit-message={commit_message}",
        )
        return parse_deployment_url(output)
