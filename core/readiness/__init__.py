from .poller import ReadinessPoller, PollResult

__all__ = ["ReadinessPoller", "PollResult"]
