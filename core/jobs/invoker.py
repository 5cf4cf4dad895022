# ============================================
# 📁 core/jobs/invoker.py
# ============================================
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict

from interfaces.types.deployment import RunContext
from sdk.exceptions import BranchDeploySDKError
from sdk.models import JobStatus
from sdk.protocols import JobClient
from core.orchestrator.results import StageResult, JOB_INVOCATION_FAILED

logger = logging.getLogger(__name__)


class JobInvocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_name: str
    reference: str
    status: JobStatus


class DownstreamJobInvoker:
    """Triggers the infrastructure job for an identifier. Failures here never abort a run."""

    def __init__(self,
                 job_client: Optional[JobClient],
                 job_name: str,
                 parameter_name: str = "DEPLOYMENT_ID",
                 wait_timeout_seconds: float = 1800.0):
        self.job_client = job_client
        self.job_name = job_name
        self.parameter_name = parameter_name
        self.wait_timeout_seconds = wait_timeout_seconds

    async def invoke(self, ctx: RunContext, wait: bool = False) -> StageResult[JobInvocation]:
        identifier = ctx.require_identifier()
        if self.job_client is None:
            return StageResult.warning(JOB_INVOCATION_FAILED, f"No job client configured; '{self.job_name}' was not triggered")

        parameters = {self.parameter_name: identifier.value}
        try:
            reference = await self.job_client.trigger(self.job_name, parameters)
        except BranchDeploySDKError as e:
            return StageResult.warning(JOB_INVOCATION_FAILED, f"Trigger of '{self.job_name}' failed: {e}")
        except Exception as e:
            logger.error(f"Run {ctx.run_id}: unexpected error triggering '{self.job_name}': {e}", exc_info=True)
            return StageResult.warning(JOB_INVOCATION_FAILED, f"Trigger of '{self.job_name}' failed: {type(e).__name__}: {e}")
        logger.info(f"Run {ctx.run_id}: triggered '{self.job_name}' with {parameters} -> {reference}")

        if not wait:
            return StageResult.ok(JobInvocation(job_name=self.job_name, reference=reference, status=JobStatus.QUEUED))

        try:
            status = await self.job_client.wait_for_result(reference, self.wait_timeout_seconds)
        except BranchDeploySDKError as e:
            invocation = JobInvocation(job_name=self.job_name, reference=reference, status=JobStatus.UNKNOWN)
            return StageResult.warning(JOB_INVOCATION_FAILED, f"Could not follow '{self.job_name}': {e}", value=invocation)
        except Exception as e:
            logger.error(f"Run {ctx.run_id}: unexpected error following '{self.job_name}': {e}", exc_info=True)
            invocation = JobInvocation(job_name=self.job_name, reference=reference, status=JobStatus.UNKNOWN)
            return StageResult.warning(JOB_INVOCATION_FAILED, f"Could not follow '{self.job_name}': {type(e).__name__}: {e}", value=invocation)

        invocation = JobInvocation(job_name=self.job_name, reference=reference, status=status)
        if status == JobStatus.SUCCESS:
            return StageResult.ok(invocation)
        return StageResult.warning(JOB_INVOCATION_FAILED, f"'{self.job_name}' finished with {status.value}", value=invocation)
