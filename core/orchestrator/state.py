"""
state.py
Deployment run state machine: states, legal transitions and the per-run record.
"""
import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from interfaces.types.deployment import ConfigRecord, DeploymentIdentifier, utc_now_iso
from .exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    INIT = "Init"
    IDENTIFIER_RESOLVED = "IdentifierResolved"
    CONFIG_PUBLISHED = "ConfigPublished"
    INFRA_TRIGGERED = "InfraTriggered"
    INFRA_READY = "InfraReady"
    INFRA_TIMEOUT = "InfraTimeout"
    ARTIFACT_DEPLOYED = "ArtifactDeployed"
    VERIFIED = "Verified"
    VERIFY_SKIPPED = "VerifySkipped"
    RESOLUTION_FAILED = "ResolutionFailed"
    PUBLISH_FAILED = "PublishFailed"
    DEPLOY_FAILED = "DeployFailed"
    TIMED_OUT = "TimedOut"


SUCCESS_STATES: FrozenSet[RunState] = frozenset({RunState.VERIFIED, RunState.VERIFY_SKIPPED})
FAILURE_STATES: FrozenSet[RunState] = frozenset({
    RunState.RESOLUTION_FAILED, RunState.PUBLISH_FAILED, RunState.DEPLOY_FAILED, RunState.TIMED_OUT,
})
TERMINAL_STATES: FrozenSet[RunState] = SUCCESS_STATES | FAILURE_STATES

_NON_TERMINAL = [s for s in RunState if s not in TERMINAL_STATES]

TRANSITIONS: Dict[RunState, FrozenSet[RunState]] = {
    RunState.INIT: frozenset({RunState.IDENTIFIER_RESOLVED, RunState.RESOLUTION_FAILED}),
    RunState.IDENTIFIER_RESOLVED: frozenset({RunState.CONFIG_PUBLISHED, RunState.PUBLISH_FAILED}),
    RunState.CONFIG_PUBLISHED: frozenset({RunState.INFRA_TRIGGERED}),
    RunState.INFRA_TRIGGERED: frozenset({RunState.INFRA_READY, RunState.INFRA_TIMEOUT}),
    RunState.INFRA_READY: frozenset({RunState.ARTIFACT_DEPLOYED, RunState.DEPLOY_FAILED}),
    RunState.INFRA_TIMEOUT: frozenset({RunState.ARTIFACT_DEPLOYED, RunState.DEPLOY_FAILED}),
    RunState.ARTIFACT_DEPLOYED: frozenset({RunState.VERIFIED, RunState.VERIFY_SKIPPED, RunState.DEPLOY_FAILED}),
}
# The overall deadline can interrupt any non-terminal state
for _state in _NON_TERMINAL:
    TRANSITIONS[_state] = TRANSITIONS[_state] | {RunState.TIMED_OUT}
for _state in TERMINAL_STATES:
    TRANSITIONS[_state] = frozenset()


class StateTransition(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: RunState
    at: str = Field(default_factory=utc_now_iso)
    note: Optional[str] = None


class RunWarning(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: str
    reason: str
    detail: str = ""


class PipelineRun(BaseModel):
    """Mutable run record, owned by one Orchestrator.run call."""
    run_id: str
    state: RunState = RunState.INIT
    identifier: Optional[DeploymentIdentifier] = None
    record: Optional[ConfigRecord] = None
    history: List[StateTransition] = Field(default_factory=lambda: [StateTransition(state=RunState.INIT)])
    warnings: List[RunWarning] = Field(default_factory=list)
    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def succeeded(self) -> bool:
        return self.state in SUCCESS_STATES

    def can_transition_to(self, target: RunState) -> bool:
        return target in TRANSITIONS[self.state]

    def transition_to(self, target: RunState, note: Optional[str] = None) -> None:
        if not self.can_transition_to(target):
            raise InvalidTransitionError(self.state.value, target.value, self.run_id)
        logger.info(f"Run {self.run_id}: {self.state.value} -> {target.value}" + (f" ({note})" if note else ""))
        self.state = target
        self.history.append(StateTransition(state=target, note=note))

    def add_warning(self, stage: str, reason: str, detail: str = "") -> None:
        logger.warning(f"Run {self.run_id}: [{stage}] {reason}: {detail}")
        self.warnings.append(RunWarning(stage=stage, reason=reason, detail=detail))

    def fail(self, target: RunState, kind: str, message: str) -> None:
        self.error_kind = kind
        self.error_message = message
        self.transition_to(target, note=kind)

    def report(self) -> "RunReport":
        return RunReport(
            run_id=self.run_id,
            final_state=self.state,
            succeeded=self.succeeded,
            identifier=self.identifier.value if self.identifier else None,
            derivation_method=self.identifier.method.value if self.identifier else None,
            record=self.record,
            history=list(self.history),
            warnings=list(self.warnings),
            error_kind=self.error_kind,
            error_message=self.error_message,
        )


class RunReport(BaseModel):
    """What a caller sees once the run is over."""
    model_config = ConfigDict(frozen=True)

    run_id: str
    final_state: RunState
    succeeded: bool
    identifier: Optional[str] = None
    derivation_method: Optional[str] = None
    record: Optional[ConfigRecord] = None
    history: List[StateTransition] = Field(default_factory=list)
    warnings: List[RunWarning] = Field(default_factory=list)
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
