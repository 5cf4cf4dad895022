# =====================
# 📁 sdk/jenkins_client.py
# =====================
import asyncio
import logging
import time
from typing import Optional, Dict, Callable, Awaitable

import httpx

from .exceptions import APIError, BranchDeploySDKError
from .github_client import request_json, DEFAULT_TIMEOUT_SECONDS
from .models import JobStatus, SDKQueueItem

logger = logging.getLogger(__name__)

DEFAULT_JOB_POLL_INTERVAL_SECONDS = 10.0


class JenkinsJobClient:
    """Triggers parameterized Jenkins jobs and optionally follows them to completion."""

    def __init__(self,
                 base_url: str,
                 user: Optional[str] = None,
                 api_token: Optional[str] = None,
                 poll_interval_seconds: float = DEFAULT_JOB_POLL_INTERVAL_SECONDS,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        if not base_url:
            raise ValueError("Jenkins base_url must be provided or set via JENKINS_URL.")
        auth = (user, api_token) if user and api_token else None
        if auth is None:
            logger.warning("JENKINS_USER/JENKINS_API_TOKEN not set. Jenkins requests will be anonymous.")
        self.base_url = base_url.rstrip("/")
        self.poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep
        self.http_client = httpx.AsyncClient(base_url=self.base_url, auth=auth, timeout=timeout, transport=transport)

    async def close(self):
        await self.http_client.aclose()

    async def trigger(self, job_name: str, parameters: Dict[str, str]) -> str:
        endpoint = f"/job/{job_name}/buildWithParameters"
        logger.info(f"Jenkins: Triggering job '{job_name}' with parameters {parameters}")
        try:
            response = await self.http_client.post(endpoint, params=parameters)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise APIError(message=f"Jenkins trigger for '{job_name}' failed: {e.response.status_code}",
                           status_code=e.response.status_code, error_body=e.response.text[:500]) from e
        except httpx.RequestError as e:
            raise APIError(message=f"Jenkins trigger for '{job_name}' failed: {e}") from e

        queue_url = response.headers.get("Location")
        if not queue_url:
            raise APIError(message=f"Jenkins accepted '{job_name}' but returned no queue Location header.",
                           status_code=response.status_code)
        logger.info(f"Jenkins: Job '{job_name}' queued at {queue_url}")
        return queue_url

    async def wait_for_result(self, reference: str, timeout_seconds: float) -> JobStatus:
        deadline = time.monotonic() + timeout_seconds
        queue_item = await self._wait_for_build(reference, deadline)
        if queue_item["cancelled"]:
            return JobStatus.ABORTED
        if not queue_item["build_url"]:
            logger.warning(f"Jenkins: Queue item {reference} never started a build before the deadline.")
            return JobStatus.QUEUED

        build_api = f"{queue_item['build_url'].rstrip('/')}/api/json"
        while True:
            build = await request_json(self.http_client, "GET", build_api)
            if not build.get("building", False):
                status = JobStatus.from_jenkins(build.get("result"))
                logger.info(f"Jenkins: Build {queue_item['build_url']} finished with {status.value}")
                return status
            if time.monotonic() >= deadline:
                logger.warning(f"Jenkins: Build {queue_item['build_url']} still running after {timeout_seconds}s.")
                return JobStatus.RUNNING
            await self._sleep(self.poll_interval_seconds)

    async def _wait_for_build(self, queue_url: str, deadline: float) -> SDKQueueItem:
        queue_api = f"{queue_url.rstrip('/')}/api/json"
        while True:
            item = await request_json(self.http_client, "GET", queue_api)
            if not isinstance(item, dict):
                raise BranchDeploySDKError(f"Unexpected queue item payload from {queue_api}")
            executable = item.get("executable") or {}
            if item.get("cancelled") or executable.get("url"):
                return SDKQueueItem(queue_url=queue_url, build_url=executable.get("url"), cancelled=bool(item.get("cancelled")))
            if time.monotonic() >= deadline:
                return SDKQueueItem(queue_url=queue_url, build_url=None, cancelled=False)
            await self._sleep(self.poll_interval_seconds)
