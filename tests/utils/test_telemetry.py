"""Tests for OpenTelemetry tracing helpers."""

from __future__ import annotations

import sys
from unittest.mock import patch

import pytest
from opentelemetry import trace

from mcphost.utils.telemetry import (
    _INSTRUMENTATION_NAME,
    ATTR_MCP_SERVER,
    ATTR_RPC_ID,
    ATTR_RPC_METHOD,
    ATTR_TOOL_NAME,
    ATTR_TOOL_ORIGINAL_NAME,
    configure_telemetry,
    get_tracer,
)


class TestGetTracer:
    def test_returns_tracer(self) -> None:
        tracer = get_tracer("test.module")
        assert isinstance(tracer, trace.Tracer)

    def test_default_name(self) -> None:
        tracer = get_tracer()
        assert isinstance(tracer, trace.Tracer)

    def test_noop_span(self) -> None:
        """Without SDK configured, spans should be no-ops."""
        tracer = get_tracer("test.noop")
        with tracer.start_as_current_span("mcp.request") as span:
            span.set_attribute(ATTR_RPC_METHOD, "tools/list")


class TestConfigureTelemetry:
    def test_raises_without_sdk(self) -> None:
        """configure_telemetry requires opentelemetry-sdk."""
        with patch.dict("sys.modules", {"opentelemetry.sdk.resources": None}):
            with pytest.raises(ImportError, match="opentelemetry-sdk"):
                configure_telemetry()

    def test_without_endpoint_prints_spans_to_stderr(self) -> None:
        try:
            from opentelemetry.sdk.trace import TracerProvider
        except ImportError:
            pytest.skip("opentelemetry-sdk not installed")

        with patch("opentelemetry.trace.set_tracer_provider") as mock_set:
            configure_telemetry(service_name="test-svc")

        provider = mock_set.call_args.args[0]
        assert isinstance(provider, TracerProvider)
        assert provider.resource.attributes["service.name"] == "test-svc"
        processors = provider._active_span_processor._span_processors
        assert len(processors) == 1
        assert processors[0].span_exporter.out is sys.stderr

    def test_otlp_raises_without_exporter(self) -> None:
        """OTLP export requires opentelemetry-exporter-otlp."""
        try:
            import opentelemetry.sdk.trace  # noqa: F401
        except ImportError:
            pytest.skip("opentelemetry-sdk not installed")

        with patch.dict(
            "sys.modules",
            {"opentelemetry.exporter.otlp.proto.grpc.trace_exporter": None},
        ):
            with pytest.raises(ImportError, match="opentelemetry-exporter-otlp"):
                configure_telemetry(otlp_endpoint="http://localhost:4317")


class TestAttributeConstants:
    @pytest.mark.parametrize(
        "attr",
        [ATTR_MCP_SERVER, ATTR_RPC_METHOD, ATTR_RPC_ID, ATTR_TOOL_NAME, ATTR_TOOL_ORIGINAL_NAME],
    )
    def test_constants_are_namespaced(self, attr: str) -> None:
        assert attr.startswith("mcphost.")

    def test_instrumentation_name(self) -> None:
        assert _INSTRUMENTATION_NAME == "mcphost"
