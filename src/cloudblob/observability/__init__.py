"""Observability module.

Provides optional OpenTelemetry tracing for storage, ledger and sweep operations.
"""

from cloudblob.observability.tracing import configure_tracing, is_tracing_enabled

__all__ = ["configure_tracing", "is_tracing_enabled"]
