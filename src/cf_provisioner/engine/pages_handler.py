"""Pages project handler: project lookup/create and build-output deploy."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cf_provisioner.engine.errors import ProvisionerError
from cf_provisioner.engine.handlers import StepHandler

if TYPE_CHECKING:
    from cf_provisioner.engine.handlers import StepContext
    from cf_provisioner.resources.pages import PagesProjectResource

logger = logging.getLogger(__name__)


def validate_output_dir(desired: PagesProjectResource) -> None:
    """The build output must be a directory containing ``index.html``."""
    out = desired.output_dir
    if not out.is_dir():
        raise ProvisionerError(f"Build output directory not found: {out}")
    if not (out / "index.html").is_file():
        raise ProvisionerError(f"index.html not found in build output directory: {out}")


class PagesProjectHandler(StepHandler["PagesProjectResource"]):
    """Check-then-create for Pages projects via wrangler."""

    step_name = "project"

    def find(self, ctx: StepContext, desired: PagesProjectResource) -> dict[str, Any] | None:
        if desired.name in ctx.wrangler.pages_project_list():
            return {"name": desired.name, "subdomain": desired.subdomain}
        return None

    def create(self, ctx: StepContext, desired: PagesProjectResource) -> dict[str, Any]:
        ctx.wrangler.pages_project_create(desired.name, desired.production_branch)
        return {
            "name": desired.name,
            "subdomain": desired.subdomain,
            "production_branch": desired.production_branch,
        }

    def deploy(self, ctx: StepContext, desired: PagesProjectResource) -> str:
        """Upload the build output; return the deployment URL."""
        validate_output_dir(desired)
        logger.info("Deploying %s to %s", desired.output_dir, desired.name)
        url = ctx.wrangler.pages_deploy(
            desired.output_dir,
            project=desired.name,
            branch=desired.production_branch,
            commit_message=desired.commit_message,
        )
        return url or f"https://{desired.subdomain}"
