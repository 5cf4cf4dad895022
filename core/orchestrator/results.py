"""
results.py

Explicit stage outcomes. Degraded-but-continuing paths are WARNING results rather than
swallowed errors, so the orchestrator can tell them apart from success and from fatal errors.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Optional, TypeVar

from .exceptions import OrchestrationError

T = TypeVar("T")


class ResultKind(str, Enum):
    OK = "ok"
    WARNING = "warning"
    FATAL = "fatal"


# Reasons attached to WARNING results
POLL_TIMEOUT = "PollTimeout"
PUBLISH_CONFLICT = "PublishConflict"
DEPLOY_TARGET_MISSING = "DeployTargetMissing"
VERIFY_MISSING = "VerifyMissing"
JOB_INVOCATION_FAILED = "JobInvocationFailed"
ARTIFACT_MISSING = "ArtifactMissing"


@dataclass(frozen=True)
class StageResult(Generic[T]):
    kind: ResultKind
    value: Optional[T] = None
    reason: Optional[str] = None
    detail: str = ""
    error: Optional[OrchestrationError] = field(default=None, compare=False)

    @classmethod
    def ok(cls, value: Optional[T] = None, reason: Optional[str] = None, detail: str = "") -> "StageResult[T]":
        return cls(ResultKind.OK, value=value, reason=reason, detail=detail)

    @classmethod
    def warning(cls, reason: str, detail: str = "", value: Optional[T] = None) -> "StageResult[T]":
        return cls(ResultKind.WARNING, value=value, reason=reason, detail=detail)

    @classmethod
    def fatal(cls, error: OrchestrationError) -> "StageResult[T]":
        return cls(ResultKind.FATAL, reason=error.kind, detail=error.message, error=error)

    @property
    def is_ok(self) -> bool:
        return self.kind == ResultKind.OK

    @property
    def is_warning(self) -> bool:
        return self.kind == ResultKind.WARNING

    @property
    def is_fatal(self) -> bool:
        return self.kind == ResultKind.FATAL
