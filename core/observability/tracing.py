# core/observability/tracing.py

import logging
import os
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

logger = logging.getLogger(__name__)


def setup_tracing(service_name: str = "branch-deploy", endpoint: Optional[str] = None) -> Optional[TracerProvider]:
  """
  Sets up OpenTelemetry tracing for the application.

  Args:
    service_name: The name of the service to be used in traces.
    endpoint: The endpoint for the OTLP collector (e.g., "localhost:4317").
              Nothing is installed when no endpoint is configured.
  """
  if not endpoint:
    logger.debug("No OTLP endpoint configured; spans stay non-recording.")
    return None

  logger.info(f"Setting up tracing for service: {service_name} -> {endpoint}")

  resource = Resource.create({
      "service.name": service_name,
      "environment": os.getenv("APP_ENV", "development"),
  })

  tracer_provider = TracerProvider(resource=resource)
  # BatchSpanProcessor is recommended for production to reduce overhead
  tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
  trace.set_tracer_provider(tracer_provider)

  logger.info("OpenTelemetry tracing setup complete.")
  return tracer_provider
