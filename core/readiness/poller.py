# ============================================
# 📁 core/readiness/poller.py
# ============================================
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
    wait_fixed,
)

from interfaces.types.deployment import InfraStackStatus, InfrastructureStatus
from sdk.exceptions import BranchDeploySDKError
from sdk.protocols import InfraStatusClient

logger = logging.getLogger(__name__)

STACK_TO_INFRA_STATUS = {
    InfraStackStatus.COMPLETE: InfrastructureStatus.READY,
    InfraStackStatus.IN_PROGRESS: InfrastructureStatus.PROVISIONING,
    InfraStackStatus.FAILED: InfrastructureStatus.FAILED,
    InfraStackStatus.NOT_FOUND: InfrastructureStatus.UNKNOWN,
}

# Polling stops early on these
SETTLED_STATUSES = {InfrastructureStatus.READY, InfrastructureStatus.FAILED}


class PollResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: InfrastructureStatus
    attempts: int
    elapsed_seconds: float

    @property
    def ready(self) -> bool:
        return self.status == InfrastructureStatus.READY


class ReadinessPoller:
    """
    Polls the provisioning backend until the infrastructure for one identifier is READY.

    Bounded by `max_attempts` status queries and, optionally, `deadline_seconds` of wall
    time. Between queries it sleeps `interval_seconds`; with `backoff_multiplier > 1` the
    sleep grows geometrically up to `max_interval_seconds`. A never-ready target costs
    exactly `max_attempts` queries and `max_attempts - 1` sleeps.
    """

    def __init__(self,
                 status_client: InfraStatusClient,
                 interval_seconds: float = 30.0,
                 max_attempts: int = 20,
                 deadline_seconds: Optional[float] = None,
                 backoff_multiplier: float = 1.0,
                 max_interval_seconds: float = 300.0,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.status_client = status_client
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self.deadline_seconds = deadline_seconds
        self.backoff_multiplier = backoff_multiplier
        self.max_interval_seconds = max_interval_seconds
        self._sleep = sleep

    def _stop(self):
        stop = stop_after_attempt(self.max_attempts)
        if self.deadline_seconds is not None:
            stop = stop | stop_after_delay(self.deadline_seconds)
        return stop

    def _wait(self):
        if self.backoff_multiplier > 1:
            return wait_exponential(multiplier=self.interval_seconds, exp_base=self.backoff_multiplier, max=self.max_interval_seconds)
        return wait_fixed(self.interval_seconds)

    async def query_status(self, provisioning_name: str) -> InfrastructureStatus:
        """One status query. Client errors read as UNKNOWN so polling can carry on."""
        try:
            raw = await self.status_client.get_status(provisioning_name)
        except BranchDeploySDKError as e:
            logger.warning(f"Status query for '{provisioning_name}' failed; treating as {InfrastructureStatus.UNKNOWN.value}: {e}")
            return InfrastructureStatus.UNKNOWN
        except Exception as e:
            logger.error(f"Unexpected error querying status of '{provisioning_name}'; treating as {InfrastructureStatus.UNKNOWN.value}: {e}", exc_info=True)
            return InfrastructureStatus.UNKNOWN
        return STACK_TO_INFRA_STATUS.get(raw, InfrastructureStatus.UNKNOWN)

    async def wait_until_ready(self, provisioning_name: str) -> PollResult:
        attempts = 0
        started = time.monotonic()

        async def _attempt() -> InfrastructureStatus:
            nonlocal attempts
            attempts += 1
            status = await self.query_status(provisioning_name)
            logger.info(f"Readiness of '{provisioning_name}' (attempt {attempts}/{self.max_attempts}): {status.value}")
            return status

        def _last_status(retry_state: RetryCallState) -> InfrastructureStatus:
            return retry_state.outcome.result()

        retrying = AsyncRetrying(
            stop=self._stop(),
            wait=self._wait(),
            retry=retry_if_result(lambda status: status not in SETTLED_STATUSES),
            retry_error_callback=_last_status,
            sleep=self._sleep,
        )
        status = await retrying(_attempt)

        result = PollResult(status=status, attempts=attempts, elapsed_seconds=round(time.monotonic() - started, 3))
        if status == InfrastructureStatus.FAILED:
            logger.warning(f"Provisioning of '{provisioning_name}' reported {status.value} after {attempts} attempt(s).")
        elif not result.ready:
            logger.warning(f"'{provisioning_name}' not ready after {attempts} attempt(s) / {result.elapsed_seconds}s; last status {status.value}.")
        return result
