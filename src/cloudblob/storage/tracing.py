"""OpenTelemetry tracing integration for object storage operations.

Spans carry only safe attributes: the blob key (a random identifier, not
a secret), the backend name and the object size. Filesystem paths, bucket
credentials and object contents are never exported.
"""

from __future__ import annotations

import functools
import logging
import os
from collections.abc import Callable
from typing import Any, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    return default


def _is_otel_enabled() -> bool:
    """Check if OpenTelemetry tracing is enabled."""
    return _get_env_bool("CLOUDBLOB_OTEL_ENABLED", False)


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace object store operations with OpenTelemetry.

    Args:
        operation: Operation name (e.g., "put", "get", "head", "delete").

    Returns:
        Decorated function that emits spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, key: str, *args: Any, **kwargs: Any) -> Any:
            if not _is_otel_enabled():
                return func(self, key, *args, **kwargs)

            try:
                from opentelemetry import trace
            except ImportError:
                return func(self, key, *args, **kwargs)

            tracer = trace.get_tracer("cloudblob.object_store")
            with tracer.start_as_current_span(f"cloudblob.object_store.{operation}") as span:
                span.set_attribute("cloudblob.blob_key", str(key))
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))

                try:
                    result = func(self, key, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                if result is not None:
                    _add_result_attributes(span, result)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any) -> None:
    """Add result-based attributes (size only) to a span."""
    from cloudblob.storage.models import StoredObject, StoredObjectMetadata

    metadata: StoredObjectMetadata | None = None
    if isinstance(result, StoredObjectMetadata):
        metadata = result
    elif isinstance(result, StoredObject):
        metadata = result.metadata

    if metadata is not None:
        span.set_attribute("cloudblob.object_size_bytes", metadata.size_bytes)
