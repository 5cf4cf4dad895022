"""
trace_utils.py

Centralized helper utilities for tracing orchestration spans.
Without an installed SDK provider the OpenTelemetry API hands out non-recording spans.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from opentelemetry import trace as _trace_api
from opentelemetry.trace import Span, Status, StatusCode

_tracer = _trace_api.get_tracer("branch-deploy.orchestrator", "0.1.0")

logger = logging.getLogger(__name__)


@contextmanager
def stage_span(span_name: str, **attrs) -> Iterator[Span]:
    """Wraps one orchestration stage in a span; exceptions are recorded and re-raised."""
    with _tracer.start_as_current_span(f"deploy.{span_name}", record_exception=False, set_status_on_exception=False) as span:
        for k, v in attrs.items():
            if v is not None:
                span.set_attribute(k, v if isinstance(v, (str, bool, int, float)) else str(v))
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            raise


def mark_span(span: Span, ok: bool, description: str = "") -> None:
    if ok:
        span.set_status(Status(StatusCode.OK))
    else:
        span.set_status(Status(StatusCode.ERROR, description))
