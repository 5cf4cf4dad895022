from typing import Optional


class OrchestrationError(Exception):
    """Base for every fatal error that aborts a deployment run."""
    kind = "OrchestrationError"

    def __init__(self, message: str, run_id: str = "", stage: str = ""):
        super().__init__(message)
        self.run_id = run_id
        self.stage = stage

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""

    def __str__(self):
        context = f" [Run: {self.run_id}, Stage: {self.stage}]" if self.run_id or self.stage else ""
        return f"{self.kind}: {self.message}{context}"


class ResolutionError(OrchestrationError):
    """No deployment identifier could be derived from the branch."""
    kind = "ResolutionError"


class ProposalLookupError(OrchestrationError):
    """The authoritative proposal lookup API was unreachable or failed."""
    kind = "LookupError"


class PublishTransportError(OrchestrationError):
    """The shared config store could not be reached or refused the write."""
    kind = "PublishTransportError"


class DeployTransportError(OrchestrationError):
    """Deploy or verify call failed at the transport/auth level."""
    kind = "DeployTransportError"


class RunTimeoutError(OrchestrationError):
    """The overall run deadline elapsed."""
    kind = "RunTimeout"


class InvalidTransitionError(RuntimeError):
    """A stage tried to move the run along an edge the state machine does not have."""

    def __init__(self, current: str, target: str, run_id: Optional[str] = None):
        super().__init__(f"Illegal transition {current} -> {target}" + (f" for run {run_id}" if run_id else ""))
        self.current = current
        self.target = target
