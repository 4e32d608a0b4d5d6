"""Provisioning pipeline: ordered, idempotent steps under one scoped token."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Literal

from cf_provisioner.core.credentials import CAPABILITIES, CredentialBroker
from cf_provisioner.core.discovery import ResourceDiscovery
from cf_provisioner.core.ledger import LedgerFile
from cf_provisioner.core.manifest import ConfigWriter, write_manifest
from cf_provisioner.engine.access_handler import AccessApplicationHandler, AccessPolicyHandler
from cf_provisioner.engine.bucket_handler import BucketHandler
from cf_provisioner.engine.database_handler import DatabaseHandler
from cf_provisioner.engine.dns_handler import DNSRecordHandler
from cf_provisioner.engine.domain_handler import CustomDomainHandler
from cf_provisioner.engine.errors import (
    DiscoveryError,
    PipelineError,
    ProvisionerError,
    StepFailure,
)
from cf_provisioner.engine.handlers import Step, StepContext, skipped
from cf_provisioner.engine.pages_handler import PagesProjectHandler, validate_output_dir
from cf_provisioner.engine.types import Outcome, PipelineResult, StepResult, StepStatus
from cf_provisioner.engine.wrangler import credential_env
from cf_provisioner.resources import (
    AccessApplicationResource,
    AccessPolicyResource,
    BucketResource,
    CustomDomainResource,
    DatabaseResource,
    DNSRecordResource,
    PagesProjectResource,
)

if TYPE_CHECKING:
    from cf_provisioner.config.schema import Config
    from cf_provisioner.core.client import CloudflareClient
    from cf_provisioner.core.credentials import ScopedCredential
    from cf_provisioner.engine.handlers import StepHandler
    from cf_provisioner.engine.wrangler import WranglerCLI
    from cf_provisioner.resources.base import Resource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, Literal["start", "done"]], None]

ACCESS_POLICY_NAME = "Admin Policy"


class ProvisioningPipeline:
    """Runs the provisioning steps in dependency order.

    The identity client (global key) is used only to mint and revoke the
    scoped token; every resource call goes through a client and a wrangler
    environment carrying the scoped token.  The token is revoked exactly
    once, whatever happens after it was minted.
    """

    def __init__(
        self,
        config: Config,
        *,
        client: CloudflareClient,
        wrangler: WranglerCLI,
        ledger: LedgerFile | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._wrangler = wrangler
        self._broker = CredentialBroker(client, token_name=f"cf-provisioner {config.project.name}")
        self._ledger = ledger or LedgerFile(config.ledger_file)
        self._writer = ConfigWriter(config.manifest_file)

    @property
    def broker(self) -> CredentialBroker:
        return self._broker

    # -- lifecycle -----------------------------------------------------------

    def revoke_stale_tokens(self) -> list[str]:
        """Revoke tokens left in the ledger by a run that never cleaned up.

        Returns the ids that were revoked; ids that could not be revoked stay
        in the ledger for the next attempt.
        """
        revoked: list[str] = []
        for pending in self._ledger.pending():
            logger.warning(
                "Found scoped token %s from an interrupted run (issued %s); revoking",
                pending.id,
                pending.issued_at.isoformat(),
            )
            if self._broker.revoke_id(pending.id):
                self._ledger.discard(pending.id)
                revoked.append(pending.id)
        return revoked

    def _preflight(self) -> None:
        """Local checks that need no credential."""
        self._wrangler.version()
        validate_output_dir(self._pages_project())
        if not self._writer.exists():
            logger.info("No manifest at %s; generating one", self._writer.path)
            write_manifest(self._config)

    def _resolve_account(self) -> str:
        if self._config.provider.account_id:
            return self._config.provider.account_id
        return ResourceDiscovery(self._client).resolve_account_id()

    def _teardown(self, credential: ScopedCredential | None, result: PipelineResult) -> None:
        if credential is None:
            return
        if self._broker.revoke(credential):
            try:
                self._ledger.discard(credential.id)
            except OSError as exc:
                # The token itself is gone; only the ledger entry is stale.
                logger.warning("Could not update token ledger for %s: %s", credential.id, exc)
            return
        message = (
            f"Scoped token {credential.id} could not be revoked; "
            "run `cf-provisioner cleanup` to retry"
        )
        logger.warning(message)
        result.warnings.append(message)

    def run(self, *, progress: ProgressCallback | None = None) -> PipelineResult:
        """Provision every enabled resource and deploy the build output.

        Raises:
            PipelineError: A fatal step failed.  ``.result`` holds what was
                provisioned before the failure; the cause is chained.
        """
        cfg = self._config
        result = PipelineResult(project=cfg.project.name)
        for token_id in self.revoke_stale_tokens():
            result.warnings.append(f"Revoked leftover scoped token {token_id}")

        credential: ScopedCredential | None = None
        current = "preflight"
        try:
            self._preflight()

            current = "credential"
            account_id = self._resolve_account()
            credential = self._broker.mint(cfg.enabled_features, account_id)
            # Assigned before recording so teardown revokes it even if the ledger write fails.
            self._ledger.record(credential.id, project=cfg.project.name)
            self._warn_dropped(credential, result)

            ctx = StepContext(
                client=self._client.with_token(credential.value),
                account_id=account_id,
                wrangler=self._wrangler.with_env(
                    credential_env(credential.value.get_secret_value(), account_id)
                ),
            )

            for current, action in (
                ("database", self._database),
                ("bucket", self._bucket),
                ("project", self._project),
                ("domain", self._domains),
                ("dns", self._dns),
                ("access", self._access),
            ):
                if progress:
                    progress(current, "start")
                action(ctx, result, credential)
                if progress:
                    progress(current, "done")
        except StepFailure as exc:
            cause = exc.__cause__ or exc
            result.failed_step = exc.result.step
            raise PipelineError(result=result, step=exc.result.step, message=str(cause)) from cause
        except (ProvisionerError, OSError) as exc:
            result.failed_step = current
            raise PipelineError(result=result, step=current, message=str(exc)) from exc
        finally:
            self._teardown(credential, result)

        result.url = cfg.site_url
        logger.info(
            "Pipeline finished for %s: %s",
            cfg.project.name,
            ", ".join(f"{n} {k}" for k, n in result.summary().items() if n),
        )
        return result

    # -- helpers -------------------------------------------------------------

    def _warn_dropped(self, credential: ScopedCredential, result: PipelineResult) -> None:
        for key in credential.dropped:
            result.warnings.append(f"Permission for {key} unavailable; dependent steps may fail")

    @staticmethod
    def _access_unavailable(credential: ScopedCredential) -> bool:
        return any(
            cap.key in credential.dropped and cap.feature == "access" for cap in CAPABILITIES
        )

    def _ensure(
        self,
        handler: StepHandler,
        ctx: StepContext,
        desired: Resource,
        result: PipelineResult,
        *,
        fatal: bool = True,
    ) -> StepResult | None:
        """Run one handler; record its result.

        A fatal failure propagates as ``StepFailure``.  A non-fatal one is
        logged, attached as a warning, and returns None.
        """
        try:
            step_result = handler.ensure(ctx, desired, fatal=fatal)
        except StepFailure as exc:
            result.results.append(exc.result)
            if fatal:
                raise
            logger.warning("%s failed (continuing): %s", desired.address, exc.result.error)
            result.warnings.append(f"{desired.address}: {exc.result.error}")
            return None
        result.results.append(step_result)
        return step_result

    def _pages_project(self) -> PagesProjectResource:
        project = self._config.project
        return PagesProjectResource(
            name=project.name,
            production_branch=project.production_branch,
            output_dir=self._config.output_path,
            commit_message=project.commit_message,
        )

    # -- steps ---------------------------------------------------------------

    def _database(
        self, ctx: StepContext, result: PipelineResult, credential: ScopedCredential
    ) -> None:
        cfg = self._config
        desired = DatabaseResource(
            name=cfg.database_name,
            binding=cfg.database.binding,
            schema_file=cfg.database.schema_file,
            seed_file=cfg.database.seed_file,
        )
        if not cfg.features.database:
            result.results.append(skipped("database", desired, "feature disabled"))
            return

        handler = DatabaseHandler()
        step_result = self._ensure(handler, ctx, desired, result)
        assert step_result is not None
        database_id = step_result.attributes.get("id")
        if database_id:
            self._writer.upsert_key("database_id", str(database_id))
            self._writer.upsert_key("database_name", desired.name)

        imported, errors = handler.import_files(ctx, desired)
        step_result.attributes["imported"] = imported
        result.warnings.extend(errors)

    def _bucket(
        self, ctx: StepContext, result: PipelineResult, credential: ScopedCredential
    ) -> None:
        cfg = self._config
        desired = BucketResource(name=cfg.bucket_name, binding=cfg.storage.binding)
        if not cfg.features.storage:
            result.results.append(skipped("bucket", desired, "feature disabled"))
            return

        self._ensure(BucketHandler(), ctx, desired, result)
        self._writer.upsert_key("bucket_name", desired.name)
        self._writer.upsert_key("preview_bucket_name", desired.name)

    def _project(
        self, ctx: StepContext, result: PipelineResult, credential: ScopedCredential
    ) -> None:
        desired = self._pages_project()
        handler = PagesProjectHandler()
        step_result = self._ensure(handler, ctx, desired, result)
        assert step_result is not None

        try:
            url = handler.deploy(ctx, desired)
        except ProvisionerError as exc:
            step = Step("deploy", desired, status=StepStatus.FAILED)
            failed = step.result(Outcome.FAILED, error=str(exc), fatal=True)
            result.results.append(failed)
            raise StepFailure(failed) from exc
        step_result.attributes["deployment_url"] = url
        logger.info("Deployed %s: %s", desired.name, url)

    def _domains(
        self, ctx: StepContext, result: PipelineResult, credential: ScopedCredential
    ) -> None:
        project = self._config.project
        if not project.domain:
            return
        handler = CustomDomainHandler()
        for name in (project.domain, f"www.{project.domain}"):
            desired = CustomDomainResource(name=name, project=project.name)
            self._ensure(handler, ctx, desired, result, fatal=False)

    def _dns(
        self, ctx: StepContext, result: PipelineResult, credential: ScopedCredential
    ) -> None:
        cfg = self._config
        domain = cfg.project.domain
        if not domain:
            return
        if not cfg.features.dns:
            logger.info("DNS automation disabled; configure records for %s manually", domain)
            return

        zone = ResourceDiscovery(ctx.client).find_zone(domain)
        if zone is None:
            raise DiscoveryError(f"Zone {domain} not found in account {ctx.account_id}")

        desired = DNSRecordResource(
            zone_id=zone.id,
            name=f"www.{domain}",
            content=f"{cfg.project.name}.pages.dev",
        )
        self._ensure(DNSRecordHandler(), ctx, desired, result, fatal=False)
        result.warnings.append(
            f"Root record for {domain} is not automated; point it at "
            f"{cfg.project.name}.pages.dev in the Cloudflare dashboard"
        )

    def _access(
        self, ctx: StepContext, result: PipelineResult, credential: ScopedCredential
    ) -> None:
        cfg = self._config
        admin_domain = cfg.admin_domain
        if not cfg.features.access or admin_domain is None or not cfg.access.admin_emails:
            return
        app = AccessApplicationResource(
            name=cfg.access.app_name,
            domain=admin_domain,
            session_duration=cfg.access.session_duration,
        )
        if self._access_unavailable(credential):
            result.results.append(skipped("access_app", app, "Access permission unavailable"))
            return

        app_result = self._ensure(AccessApplicationHandler(), ctx, app, result, fatal=False)
        if app_result is None or not app_result.attributes.get("id"):
            return
        policy = AccessPolicyResource(
            name=ACCESS_POLICY_NAME,
            app_id=str(app_result.attributes["id"]),
            emails=cfg.access.admin_emails,
        )
        self._ensure(AccessPolicyHandler(), ctx, policy, result, fatal=False)
