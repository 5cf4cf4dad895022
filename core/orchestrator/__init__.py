from .exceptions import (
    OrchestrationError,
    ResolutionError,
    ProposalLookupError,
    PublishTransportError,
    DeployTransportError,
    RunTimeoutError,
    InvalidTransitionError,
)
from .results import ResultKind, StageResult
from .state import RunState, PipelineRun, RunReport

__all__ = [
    "OrchestrationError", "ResolutionError", "ProposalLookupError", "PublishTransportError",
    "DeployTransportError", "RunTimeoutError", "InvalidTransitionError",
    "ResultKind", "StageResult",
    "RunState", "PipelineRun", "RunReport",
]
