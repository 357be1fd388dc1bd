"""OpenTelemetry tracing and metrics middleware.

Creates HTTP server spans and metrics with semantic conventions for each request.
Can be installed on a whole application with ``router.use(otel())`` or named in a
route's middleware list.

Install with: uv add "resmux[otel]"
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from resmux.types import ASGIApp, Message, Receive, Scope, Send

try:
    from opentelemetry import metrics, trace
    from opentelemetry.propagate import extract
    from opentelemetry.trace import (
        SpanKind,
        StatusCode,
        TracerProvider,
    )
except ImportError as e:
    msg = (
        "OpenTelemetry middleware requires the 'otel' extra. "
        "Install with: uv add 'resmux[otel]'"
    )
    raise ImportError(msg) from e

from resmux.router import http_route, path_params

_DURATION_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.075,
    0.1,
    0.25,
    0.5,
    0.75,
    1.0,
    2.5,
    5.0,
    7.5,
    10.0,
)


def _headers(scope: Scope) -> dict[str, str]:
    return {
        k.decode("latin-1").lower(): v.decode("latin-1")
        for k, v in scope.get("headers", ())
    }


def _address(value: tuple[str, int] | None) -> str | None:
    return value[0] if value else None


def otel(
    *,
    tracer_provider: TracerProvider | None = None,
    meter_provider: metrics.MeterProvider | None = None,
) -> Callable[[ASGIApp], ASGIApp]:
    """Create OpenTelemetry tracing and metrics middleware.

    Creates server spans and metrics with HTTP semantic conventions for each
    HTTP request. Websocket and lifespan scopes pass through untouched.

    Extracts trace context from incoming request headers (e.g. ``traceparent``)
    for distributed tracing. Only depends on ``opentelemetry-api``; users bring
    their own SDK and exporters.

    Metrics emitted:
        - ``http.server.request.duration`` (histogram, seconds)
        - ``http.server.active_requests`` (up-down counter)

    Args:
        tracer_provider: Optional TracerProvider. If None, uses the global provider.
        meter_provider: Optional MeterProvider. If None, uses the global provider.

    Returns:
        Middleware function that wraps handlers with tracing and metrics.

    Example:
        router.use(otel())

        # only on one resource route
        {"routes": {"get /:id Users@show": [otel()]}}
    """
    tracer = trace.get_tracer(
        "resmux",
        tracer_provider=tracer_provider,
    )
    meter = metrics.get_meter(
        "resmux",
        meter_provider=meter_provider,
    )
    duration_histogram = meter.create_histogram(
        "http.server.request.duration",
        unit="s",
        description="Duration of HTTP server requests.",
        explicit_bucket_boundaries_advisory=_DURATION_BUCKETS,
    )
    active_requests_counter = meter.create_up_down_counter(
        "http.server.active_requests",
        unit="{request}",
        description="Number of active HTTP server requests.",
    )

    def middleware(handler: ASGIApp) -> ASGIApp:
        async def traced_handler(scope: Scope, receive: Receive, send: Send) -> None:
            if scope["type"] != "http":  # passthrough websocket/lifespan
                await handler(scope, receive, send)
                return

            headers = _headers(scope)
            ctx = extract(headers)

            # Set by the router before route middleware runs; empty when this
            # middleware wraps a whole application
            route = http_route.get("")

            method = scope["method"]
            span_name = f"{method} {route}" if route else method

            # Span attributes (stable HTTP semantic conventions)
            attributes: dict[str, str | int] = {
                "http.request.method": method,
                "url.path": scope["path"],
                "url.scheme": scope.get("scheme", "http"),
                "network.protocol.version": scope.get("http_version", "1.1"),
            }
            if (server := _address(scope.get("server"))) is not None:
                attributes["server.address"] = server
            if (client := _address(scope.get("client"))) is not None:
                attributes["client.address"] = client
            if route:
                attributes["http.route"] = route
            if query := scope.get("query_string", b""):
                attributes["url.query"] = query.decode("latin-1")
            user_agent = headers.get("user-agent")
            if user_agent is not None:
                attributes["user_agent.original"] = user_agent
            # not part of the semantic conventions, but path params are useful
            for key, value in path_params.get({}).items():
                attributes[f"http.route.param.{key}"] = value

            # Metric attributes (required + conditionally required per spec)
            active_attrs: dict[str, str | int] = {
                "http.request.method": method,
                "url.scheme": scope.get("scheme", "http"),
            }
            if route:
                active_attrs["http.route"] = route

            status: int | None = None

            async def traced_send(message: Message) -> None:
                nonlocal status
                if message["type"] == "http.response.start":
                    status = message["status"]
                await send(message)

            active_requests_counter.add(1, active_attrs)
            start = time.perf_counter()

            with tracer.start_as_current_span(
                span_name,
                context=ctx,
                kind=SpanKind.SERVER,
                attributes=attributes,
                record_exception=True,
                set_status_on_exception=True,
            ) as span:
                try:
                    await handler(scope, receive, traced_send)
                finally:
                    duration = time.perf_counter() - start
                    active_requests_counter.add(-1, active_attrs)
                    duration_attrs = dict(active_attrs)
                    if status is not None:
                        span.set_attribute("http.response.status_code", status)
                        duration_attrs["http.response.status_code"] = status
                        if not route:
                            span.update_name(f"{method} {status}")
                        if status >= 500:
                            span.set_status(StatusCode.ERROR)
                    duration_histogram.record(duration, duration_attrs)

        return traced_handler

    return middleware
