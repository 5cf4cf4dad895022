# =====================
# 📁 sdk/github_client.py
# =====================
import json
import logging
from typing import Optional, Dict, Any, List
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_sleep_log,
)

from .exceptions import APIError, AuthenticationError, NotFoundError, RequestTimeoutError, BranchDeploySDKError, is_transient
from .models import SDKPullRequest

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30


async def request_json(http_client: httpx.AsyncClient, method: str, endpoint: str,
                       params: Optional[Dict] = None, json_data: Optional[Dict] = None) -> Any:
    """Performs one request and maps httpx failures onto the sdk exception hierarchy."""
    try:
        logger.debug(f"SDK Request: {method} {endpoint} - Params: {params}")
        response = await http_client.request(method, endpoint, params=params, json=json_data)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as e:
        error_body_text = e.response.text
        logger.error(f"API Error: {e.response.status_code} calling {e.request.url}. Response: {error_body_text[:500]}")
        if e.response.status_code == 401:
            raise AuthenticationError(status_code=401, error_body=error_body_text) from e
        if e.response.status_code == 403:
            raise AuthenticationError(message="Forbidden.", status_code=403, error_body=error_body_text) from e
        if e.response.status_code == 404:
            raise NotFoundError(status_code=404, error_body=error_body_text) from e
        raise APIError(message=f"API request failed: {e.response.status_code}", status_code=e.response.status_code, error_body=error_body_text) from e
    except httpx.TimeoutException as e:
        logger.error(f"Request Timeout: {method} {endpoint}")
        raise RequestTimeoutError(message=f"Request to {endpoint} timed out.") from e
    except httpx.RequestError as e:
        logger.error(f"Request Error: {method} {endpoint} - {e}")
        raise APIError(message=f"Request failed: {e}") from e
    except json.JSONDecodeError as e:
        logger.error(f"JSON Decode Error for {endpoint}: {e}")
        raise BranchDeploySDKError(message=f"Failed to parse JSON response: {e}") from e


class GitHubLookupClient:
    """Looks up open pull requests for a head branch through the GitHub REST API."""

    def __init__(self,
                 repository: str,
                 base_url: str = "https://api.github.com",
                 token: Optional[str] = None,
                 retry_attempts: int = 3,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        if not repository or "/" not in repository:
            raise ValueError(f"GitHub repository must look like 'owner/repo', got '{repository}'.")
        self.owner, self.repo = repository.split("/", 1)
        self.retry_attempts = max(1, retry_attempts)

        headers = {"Accept": "application/vnd.github+json", "User-Agent": "branch-deploy"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        else:
            logger.warning("GITHUB_TOKEN not set. Proposal lookups will be unauthenticated and heavily rate limited.")

        self.http_client = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    async def close(self):
        await self.http_client.aclose()

    async def find_open_proposals(self, branch: str) -> List[int]:
        endpoint = f"/repos/{quote(self.owner)}/{quote(self.repo)}/pulls"
        params = {"state": "open", "head": f"{self.owner}:{branch}"}

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=16),
            retry=retry_if_exception(is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                payload = await request_json(self.http_client, "GET", endpoint, params=params)

        if not isinstance(payload, list):
            raise APIError(message=f"Unexpected pulls response type: {type(payload).__name__}")

        pulls = [self._to_pull_request(item) for item in payload if isinstance(item, dict) and "number" in item]
        numbers = [pr["number"] for pr in pulls]
        logger.info(f"GitHub lookup for head '{self.owner}:{branch}' returned {len(numbers)} open proposal(s): {numbers}")
        return numbers

    @staticmethod
    def _to_pull_request(item: Dict[str, Any]) -> SDKPullRequest:
        return SDKPullRequest(
            number=int(item["number"]),
            state=item.get("state", "open"),
            head_ref=(item.get("head") or {}).get("ref", ""),
        )
