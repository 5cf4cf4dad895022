from .invoker import DownstreamJobInvoker, JobInvocation

__all__ = ["DownstreamJobInvoker", "JobInvocation"]
