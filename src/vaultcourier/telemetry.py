"""Tracing support for vaultcourier.

Thin wrapper over OpenTelemetry's tracer. Spans are only created when the
application has installed a real tracer provider; otherwise a no-op span is
handed out so call sites never need to check.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from .version import PACKAGE_NAME, PACKAGE_VERSION

logger = logging.getLogger(__name__)

__all__ = [
    "AttributeKeys",
    "NoOpSpan",
    "SpanWrapper",
    "is_tracing_enabled",
    "traced_operation",
]


class AttributeKeys:
    """Span attribute keys used by the Vault client."""

    RESPONSE_STATUS_CODE = "http.status_code"
    VAULT_NAMESPACE = "vault.namespace"
    VAULT_REQUEST_ID = "vault.request.id"
    VAULT_AUTH_METHOD = "vault.auth.method"
    VAULT_MOUNT = "vault.mount"
    VAULT_DATABASE_ROLE = "vault.database.role"


class NoOpSpan:
    """No-op span for when tracing is disabled."""

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def add_event(self, name: str, attributes: dict[str, Any] | None = None) -> None:
        pass

    def record_error(self, exception: BaseException, status_code: int | None = None) -> None:
        pass

    def is_recording(self) -> bool:
        return False


class SpanWrapper:
    """Wraps an OpenTelemetry span, filtering attribute values to valid types."""

    def __init__(self, otel_span: Any) -> None:
        self._span = otel_span

    def set_attribute(self, key: str, value: Any) -> None:
        if value is None or not self._span.is_recording():
            return
        if isinstance(value, str | int | float | bool):
            self._span.set_attribute(key, value)
        else:
            self._span.set_attribute(key, str(value))

    def add_event(self, name: str, attributes: dict[str, Any] | None = None) -> None:
        if self._span.is_recording():
            self._span.add_event(name, attributes=attributes or {})

    def record_error(self, exception: BaseException, status_code: int | None = None) -> None:
        """Mark the span as failed, recording the exception and status code."""
        if not self._span.is_recording():
            return
        if status_code is not None:
            self._span.set_attribute(AttributeKeys.RESPONSE_STATUS_CODE, status_code)
        self._span.set_status(Status(StatusCode.ERROR, str(exception)))
        self._span.record_exception(exception)

    def is_recording(self) -> bool:
        return bool(self._span.is_recording())


def is_tracing_enabled() -> bool:
    """Tracing is enabled once the application sets an SDK tracer provider."""
    provider = trace.get_tracer_provider()
    return not isinstance(provider, trace.ProxyTracerProvider | trace.NoOpTracerProvider)


@contextmanager
def traced_operation(
    name: str,
    attributes: dict[str, Any] | None = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
) -> Iterator[SpanWrapper | NoOpSpan]:
    """Context manager for tracing an operation.

    Exceptions escaping the block are recorded on the span and re-raised.

    Example:
        ```python
        with traced_operation("vault.kv.read", {"vault.mount": "secret"}) as span:
            span.set_attribute("vault.request.id", request_id)
        ```
    """
    if not is_tracing_enabled():
        yield NoOpSpan()
        return

    tracer = trace.get_tracer(PACKAGE_NAME, PACKAGE_VERSION)
    with tracer.start_as_current_span(
        name, kind=kind, record_exception=False, set_status_on_exception=False
    ) as otel_span:
        span = SpanWrapper(otel_span)
        for key, value in (attributes or {}).items():
            span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            span.record_error(e, getattr(e, "status_code", None))
            raise
