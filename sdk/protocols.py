# ==========================
# 📁 sdk/protocols.py
# ==========================
"""
Typed seams between the orchestration core and the outside world.

Each protocol is small enough to be replaced by an AsyncMock in unit tests, so the
state machine can be exercised without network, subprocess or cloud access.
"""
from typing import Protocol, List, Optional, Dict

from interfaces.types.deployment import InfraStackStatus
from .models import JobStatus


class VcsClient(Protocol):
    async def current_branch(self) -> Optional[str]:
        ...

    async def discover_branch(self, commit_sha: Optional[str]) -> Optional[str]:
        """Secondary branch discovery for detached checkouts."""
        ...


class LookupClient(Protocol):
    async def find_open_proposals(self, branch: str) -> List[int]:
        """Numeric ids of open proposals whose head is `branch`, in API order."""
        ...


class JobClient(Protocol):
    async def trigger(self, job_name: str, parameters: Dict[str, str]) -> str:
        """Starts the job and returns a reference (queue item URL)."""
        ...

    async def wait_for_result(self, reference: str, timeout_seconds: float) -> JobStatus:
        ...


class InfraStatusClient(Protocol):
    async def get_status(self, provisioning_name: str) -> InfraStackStatus:
        ...


class DeployClient(Protocol):
    async def target_exists(self, target_name: str) -> bool:
        ...

    async def update_artifact(self, target_name: str, artifact_ref: str) -> None:
        ...
