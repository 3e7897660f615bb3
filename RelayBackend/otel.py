from __future__ import annotations

import logging

from shared.config import RelayConfig


logger = logging.getLogger("botrelay.otel")


def setup_otel(cfg: RelayConfig) -> None:
    """
    Optional OpenTelemetry tracing hook.

    - Enable with `OTEL_ENABLED=1`; install the `observability` extra.
    - Export via OTLP to `OTEL_EXPORTER_OTLP_ENDPOINT` (defaults to http://otel-collector:4318).
    """
    if not cfg.otel_enabled:
        return

    try:
        from opentelemetry import trace  # type: ignore
        from opentelemetry.sdk.resources import Resource  # type: ignore
        from opentelemetry.sdk.trace import TracerProvider  # type: ignore
        from opentelemetry.sdk.trace.export import BatchSpanProcessor  # type: ignore
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter  # type: ignore
    except ImportError:
        logger.info("otel_disabled_missing_packages")
        return

    service_name = (cfg.otel_service_name or "botrelay").strip() or "botrelay"
    endpoint = (cfg.otel_exporter_otlp_endpoint or "http://otel-collector:4318").strip()

    try:
        resource = Resource.create({"service.name": service_name})
        provider = TracerProvider(resource=resource)
        exporter = OTLPSpanExporter(endpoint=endpoint)
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)
        logger.info("otel_enabled", extra={"service_name": service_name, "endpoint": endpoint})
    except Exception:
        logger.exception("otel_setup_failed")
