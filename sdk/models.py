from enum import Enum
from typing import TypedDict, List, Optional


class JobStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    UNSTABLE = "UNSTABLE"
    ABORTED = "ABORTED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_jenkins(cls, result: Optional[str]) -> "JobStatus":
        if result is None:
            return cls.RUNNING
        try:
            return cls(result.upper())
        except ValueError:
            return cls.UNKNOWN


class SDKPullRequest(TypedDict):
    """Subset of the GitHub pulls API response that the lookup relies on."""
    number: int
    state: str
    head_ref: str


class SDKQueueItem(TypedDict):
    queue_url: str
    build_url: Optional[str]
    cancelled: bool


class SDKLambdaTarget(TypedDict):
    function_name: str
    state: Optional[str]
    last_update_status: Optional[str]
    code_sha256: Optional[str]


class SDKStackSummary(TypedDict):
    stack_name: str
    stack_status: str
    outputs: List[dict]
