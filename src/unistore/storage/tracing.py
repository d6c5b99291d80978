"""Tracing and timing for storage operations.

Span attributes are limited to safe identifiers: the bucket, a SHA256 of the
object key (never the raw key), the storage kind and the resulting status.

Every call also emits a DEBUG ``storage_time`` record on this module's logger
with ``method``, ``storage``, ``status_code`` and ``duration_ms`` extras.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar, cast

from unistore.observability.tracing import get_tracer, is_tracing_enabled

if TYPE_CHECKING:
    from unistore.storage.models import FileObjectRef

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _log_timing(operation: str, obj: FileObjectRef, start: float, status_code: Any) -> None:
    logger.debug(
        "storage_time",
        extra={
            "method": operation,
            "storage": obj.storage.kind.value,
            "status_code": status_code,
            "duration_ms": int((time.monotonic() - start) * 1000),
        },
    )


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to time and trace storage operations.

    Args:
        operation: Operation name (e.g., "get", "head", "set", "delete", "list").

    Returns:
        Decorated function that logs its duration and, when tracing is
        enabled, runs inside a span.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, obj: FileObjectRef, *args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            if not is_tracing_enabled():
                result = func(self, obj, *args, **kwargs)
                _log_timing(operation, obj, start, getattr(result, "status_code", None))
                return result

            with get_tracer().start_as_current_span(f"unistore.storage.{operation}") as span:
                span.set_attribute("unistore.bucket", obj.bucket)
                key_sha256 = hashlib.sha256(obj.key.encode("utf-8")).hexdigest()
                span.set_attribute("unistore.object_key_sha256", key_sha256)
                span.set_attribute("storage.kind", obj.storage.kind.value)

                try:
                    result = func(self, obj, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                status_code = getattr(result, "status_code", None)
                if status_code is not None:
                    span.set_attribute("http.status_code", status_code)
                    if status_code >= 500:
                        span.set_attribute("error", True)
                _log_timing(operation, obj, start, status_code)
                return result

        return cast(F, wrapper)

    return decorator
