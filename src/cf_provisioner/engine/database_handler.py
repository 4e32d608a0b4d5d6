"""D1 database handler backed by the wrangler CLI."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cf_provisioner.engine.errors import ExecutionError
from cf_provisioner.engine.handlers import StepHandler

if TYPE_CHECKING:
    from cf_provisioner.engine.handlers import StepContext
    from cf_provisioner.resources.database import DatabaseResource

logger = logging.getLogger(__name__)


class DatabaseHandler(StepHandler["DatabaseResource"]):
    """Check-then-create for D1 databases, plus schema/seed import."""

    step_name = "database"

    def find(self, ctx: StepContext, desired: DatabaseResource) -> dict[str, Any] | None:
        for db in ctx.wrangler.d1_list():
            if db.name == desired.name:
                return {"name": db.name, "id": db.id}
        return None

    def create(self, ctx: StepContext, desired: DatabaseResource) -> dict[str, Any]:
        info = ctx.wrangler.d1_create(desired.name)
        return {"name": info.name, "id": info.id}

    def import_files(self, ctx: StepContext, desired: DatabaseResource) -> tuple[list[str], list[str]]:
        """Execute schema then seed SQL against the database.

        A failed import is logged and reported, not raised: the site can
        still deploy without seed data.  Returns ``(imported, errors)``.
        """
        imported: list[str] = []
        errors: list[str] = []
        for path in desired.import_files():
            logger.info("Importing %s into %s", path, desired.name)
            try:
                ctx.wrangler.d1_execute(desired.name, path)
            except ExecutionError as exc:
                logger.error("Import of %s into %s failed: %s", path, desired.name, exc)
                errors.append(f"Import of {path.name} into {desired.name} failed: {exc}")
                continue
            imported.append(str(path))
        return imported, errors
