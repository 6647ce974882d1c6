"""
Langfuse tracing integration for Motiv.

Provides observability for model calls, tool executions, and request
executions.
"""

from .client import TracingClient
from .context import (
    TracingContext,
    SpanContext,
    GenerationContext,
)

__all__ = [
    "TracingClient",
    "TracingContext",
    "SpanContext",
    "GenerationContext",
]
