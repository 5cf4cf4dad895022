import asyncio
import logging
import uuid
from typing import Optional

from interfaces.types.deployment import BranchEvent, ConfigRecord, RunContext
from sdk.protocols import LookupClient
from core.identifier.extractor import IdentifierExtractor
from core.config_store.publisher import ConfigPublisher
from core.jobs.invoker import DownstreamJobInvoker
from core.readiness.poller import ReadinessPoller
from core.deploy.deployer import ArtifactDeployer, DeploymentVerifier, DeployResult, VerifyResult
from .exceptions import (
    OrchestrationError,
    ResolutionError,
    ProposalLookupError,
    PublishTransportError,
    DeployTransportError,
    RunTimeoutError,
)
from .naming import NamingTemplates, default_artifact_ref
from .results import (
    StageResult,
    POLL_TIMEOUT,
    PUBLISH_CONFLICT,
    DEPLOY_TARGET_MISSING,
    VERIFY_MISSING,
    ARTIFACT_MISSING,
)
from .state import PipelineRun, RunReport, RunState
from .trace_utils import stage_span, mark_span

logger = logging.getLogger(__name__) # Use specific logger for this module


class Orchestrator:
    """
    Drives one branch event through the deployment state machine:

        resolve -> publish -> trigger infra -> wait for infra -> deploy -> verify

    Only resolution, publish and deploy/verify transport failures abort a run. Everything
    else (job trigger failures, infra not ready in time, missing targets) is recorded as a
    warning and the run moves on, so the deploy and infra pipelines can converge in any order.
    """

    def __init__(self,
                 extractor: IdentifierExtractor,
                 publisher: ConfigPublisher,
                 invoker: DownstreamJobInvoker,
                 poller: ReadinessPoller,
                 deployer: ArtifactDeployer,
                 verifier: DeploymentVerifier,
                 naming: Optional[NamingTemplates] = None,
                 lookup: Optional[LookupClient] = None,
                 wait_for_job: bool = False,
                 artifact_bucket: Optional[str] = None,
                 run_timeout_seconds: Optional[float] = None):
        self.extractor = extractor
        self.publisher = publisher
        self.invoker = invoker
        self.poller = poller
        self.deployer = deployer
        self.verifier = verifier
        self.naming = naming or NamingTemplates()
        self.lookup = lookup
        self.wait_for_job = wait_for_job
        self.artifact_bucket = artifact_bucket
        self.run_timeout_seconds = run_timeout_seconds

    async def run(self, event: BranchEvent, artifact_ref: Optional[str] = None, run_id: Optional[str] = None) -> RunReport:
        run = PipelineRun(run_id=run_id or str(uuid.uuid4()))
        ctx = RunContext(run_id=run.run_id, event=event, artifact_ref=artifact_ref)
        logger.info(f"Run {run.run_id}: starting for ref '{event.ref}' (source={event.source}, commit={event.commit_sha or 'n/a'})")

        with stage_span("run", run_id=run.run_id, ref=event.ref) as span:
            try:
                if self.run_timeout_seconds:
                    await asyncio.wait_for(self._drive(run, ctx), timeout=self.run_timeout_seconds)
                else:
                    await self._drive(run, ctx)
            except asyncio.TimeoutError:
                error = RunTimeoutError(f"Run exceeded {self.run_timeout_seconds}s while in {run.state.value}",
                                        run_id=run.run_id, stage=run.state.value)
                logger.error(str(error))
                run.fail(RunState.TIMED_OUT, error.kind, error.message)
            span.set_attribute("deploy.final_state", run.state.value)
            mark_span(span, run.succeeded, run.error_kind or "")

        report = run.report()
        logger.info(f"Run {run.run_id}: finished in {report.final_state.value} (identifier={report.identifier}, warnings={len(report.warnings)})")
        return report

    async def _drive(self, run: PipelineRun, ctx: RunContext) -> None:
        resolved = await self.resolve_identifier(ctx)
        if not self._advance(run, "resolve", resolved, RunState.IDENTIFIER_RESOLVED, RunState.RESOLUTION_FAILED):
            return
        ctx = resolved.value
        run.identifier = ctx.identifier

        published = await self.publish_config(ctx)
        if not self._advance(run, "publish", published, RunState.CONFIG_PUBLISHED, RunState.PUBLISH_FAILED):
            return
        ctx = published.value
        run.record = ctx.record

        triggered = await self.trigger_infrastructure(ctx)
        self._advance(run, "trigger", triggered, RunState.INFRA_TRIGGERED)

        polled = await self.await_infrastructure(ctx)
        self._advance(run, "poll", polled, RunState.INFRA_READY if polled.is_ok else RunState.INFRA_TIMEOUT)

        deployed = await self.deploy_artifact(ctx)
        if not self._advance(run, "deploy", deployed, RunState.ARTIFACT_DEPLOYED, RunState.DEPLOY_FAILED):
            return

        verified = await self.verify_deployment(ctx)
        self._advance(run, "verify", verified,
                      RunState.VERIFIED if verified.is_ok else RunState.VERIFY_SKIPPED, RunState.DEPLOY_FAILED)

    @staticmethod
    def _advance(run: PipelineRun, stage: str, result: StageResult, target: RunState,
                 failure_state: Optional[RunState] = None) -> bool:
        """Applies a stage result to the run. Returns False when the run was aborted."""
        if result.is_fatal:
            error = result.error
            error.run_id, error.stage = run.run_id, stage
            logger.error(str(error))
            run.fail(failure_state, error.kind, error.message)
            return False
        if result.is_warning:
            run.add_warning(stage, result.reason, result.detail)
        run.transition_to(target, note=result.reason)
        return True

    # --- Stages ---

    async def resolve_identifier(self, ctx: RunContext) -> StageResult[RunContext]:
        event = ctx.event
        with stage_span("resolve", run_id=ctx.run_id, branch=event.branch, change_id=event.change_id) as span:
            try:
                identifier = await self.extractor.resolve(event.ref, event.commit_sha,
                                                          platform_change_id=event.change_id, lookup=self.lookup)
            except (ResolutionError, ProposalLookupError) as e:
                mark_span(span, False, e.kind)
                return StageResult.fatal(e)
            span.set_attribute("deploy.identifier", identifier.value)
            span.set_attribute("deploy.derivation_method", identifier.method.value)
            names = self.naming.render(identifier.value)
            return StageResult.ok(ctx.model_copy(update={"identifier": identifier, "names": names}),
                                  reason=identifier.method.value)

    async def publish_config(self, ctx: RunContext) -> StageResult[RunContext]:
        identifier = ctx.require_identifier()
        record = ConfigRecord.for_identifier(identifier, ctx.require_names())
        with stage_span("publish", run_id=ctx.run_id, identifier=identifier.value) as span:
            try:
                ack = await self.publisher.publish(record)
            except PublishTransportError as e:
                mark_span(span, False, e.kind)
                return StageResult.fatal(e)
            span.set_attribute("deploy.config_created", ack.created)
            # The stored record is authoritative from here on
            next_ctx = ctx.model_copy(update={"record": ack.record})
            if ack.created:
                return StageResult.ok(next_ctx)
            return StageResult.ok(next_ctx, reason=PUBLISH_CONFLICT, detail=f"Config for '{identifier.value}' already existed")

    async def trigger_infrastructure(self, ctx: RunContext) -> StageResult:
        with stage_span("trigger", run_id=ctx.run_id, job=self.invoker.job_name) as span:
            result = await self.invoker.invoke(ctx, wait=self.wait_for_job)
            if result.value is not None:
                span.set_attribute("deploy.job_reference", result.value.reference)
                span.set_attribute("deploy.job_status", result.value.status.value)
            mark_span(span, result.is_ok, result.detail)
            return result

    async def await_infrastructure(self, ctx: RunContext) -> StageResult:
        provisioning_name = ctx.record.provisioning_name
        with stage_span("poll", run_id=ctx.run_id, provisioning_name=provisioning_name) as span:
            poll = await self.poller.wait_until_ready(provisioning_name)
            span.set_attribute("deploy.poll_attempts", poll.attempts)
            span.set_attribute("deploy.infra_status", poll.status.value)
            if poll.ready:
                return StageResult.ok(poll)
            return StageResult.warning(
                POLL_TIMEOUT,
                f"'{provisioning_name}' was {poll.status.value} after {poll.attempts} attempt(s) in {poll.elapsed_seconds}s",
                value=poll,
            )

    async def deploy_artifact(self, ctx: RunContext) -> StageResult[DeployResult]:
        record = ctx.record
        artifact_ref = ctx.artifact_ref or default_artifact_ref(self.artifact_bucket, record.artifact_package_name)
        with stage_span("deploy", run_id=ctx.run_id, target=record.target_name, artifact=artifact_ref) as span:
            if not artifact_ref:
                return StageResult.warning(ARTIFACT_MISSING, "No artifact reference given and no ARTIFACT_BUCKET configured")
            try:
                outcome = await self.deployer.deploy(ctx.require_identifier(), artifact_ref, record.target_name)
            except DeployTransportError as e:
                mark_span(span, False, e.kind)
                return StageResult.fatal(e)
            span.set_attribute("deploy.result", outcome.value)
            if outcome == DeployResult.SKIPPED_NOT_FOUND:
                return StageResult.warning(DEPLOY_TARGET_MISSING, f"Target '{record.target_name}' not provisioned yet", value=outcome)
            return StageResult.ok(outcome)

    async def verify_deployment(self, ctx: RunContext) -> StageResult[VerifyResult]:
        target_name = ctx.record.target_name
        with stage_span("verify", run_id=ctx.run_id, target=target_name) as span:
            try:
                outcome = await self.verifier.verify(target_name)
            except DeployTransportError as e:
                mark_span(span, False, e.kind)
                return StageResult.fatal(e)
            span.set_attribute("deploy.verify_result", outcome.value)
            if outcome == VerifyResult.NOT_FOUND:
                return StageResult.warning(VERIFY_MISSING, f"Target '{target_name}' not found during verification", value=outcome)
            return StageResult.ok(outcome)


__all__ = ["Orchestrator", "OrchestrationError"]
