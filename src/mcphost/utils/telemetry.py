"""OpenTelemetry tracing for MCP requests and bridged tool calls.

Modules take a tracer from :func:`get_tracer`; until
:func:`configure_telemetry` installs an SDK provider every span is a no-op,
so ``opentelemetry-api`` alone is enough to run.
"""

from __future__ import annotations

import sys

from opentelemetry import trace

ATTR_MCP_SERVER = "mcphost.mcp.server"
ATTR_RPC_METHOD = "mcphost.rpc.method"
ATTR_RPC_ID = "mcphost.rpc.id"
ATTR_TOOL_NAME = "mcphost.tool.name"
ATTR_TOOL_ORIGINAL_NAME = "mcphost.tool.original_name"

_INSTRUMENTATION_NAME = "mcphost"


def get_tracer(name: str | None = None) -> trace.Tracer:
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(*, service_name: str = "mcphost", otlp_endpoint: str | None = None) -> None:
    """Install a tracer provider for ``MCPHost.start`` (needs ``mcp-host[otel]``).

    Spans go to the OTLP collector at *otlp_endpoint* when one is given,
    otherwise they are printed to stderr so stdout stays free for command
    output.

    Raises:
        ImportError: If ``opentelemetry-sdk`` (or, for OTLP, the exporter)
            is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import (
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as exc:
        msg = "opentelemetry-sdk is required for tracing; install mcp-host[otel]"
        raise ImportError(msg) from exc

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(_otlp_exporter(otlp_endpoint)))
    else:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))
    trace.set_tracer_provider(provider)


def _otlp_exporter(endpoint: str):  # type: ignore[no-untyped-def]
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    except ImportError as exc:
        msg = "opentelemetry-exporter-otlp is required for OTLP export; install mcp-host[otel]"
        raise ImportError(msg) from exc
    return OTLPSpanExporter(endpoint=endpoint)
