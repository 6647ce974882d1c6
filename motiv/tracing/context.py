"""
Execution-scoped tracing context using Langfuse SDK v3.

One TracingContext covers one request execution: a root span for the
execution, a generation per model call and a span per tool call. Children
receive an explicit trace context so nesting is correct regardless of
OpenTelemetry context state.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

from langfuse.types import TraceContext

from .client import TracingClient

logger = logging.getLogger(__name__)


@dataclass
class _Observation:
    """A span or generation that is entered on start and exited on end."""

    name: str
    client: Optional[TracingClient] = None
    metadata: Optional[dict] = None
    input: Optional[Any] = None
    trace_context: Optional[TraceContext] = None
    _context_manager: Any = field(default=None, repr=False)
    _observation: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    as_type = "span"

    @property
    def enabled(self) -> bool:
        return self.client is not None and self.client.enabled

    def _start_kwargs(self) -> dict:
        return {}

    def _end_kwargs(self) -> dict:
        return {}

    def start(self) -> None:
        if not self.enabled or not self.client.client:
            return
        try:
            self._start_time = time.time()
            self._context_manager = self.client.client.start_as_current_observation(
                trace_context=self.trace_context,
                as_type=self.as_type,
                name=self.name,
                metadata=self.metadata,
                input=self.input,
                **self._start_kwargs(),
            )
            self._observation = self._context_manager.__enter__()
        except Exception as e:
            logger.warning(f"Failed to start {self.as_type} '{self.name}': {e}")
            self._observation = None

    def end(self) -> None:
        if not self._observation:
            return
        try:
            update_kwargs: dict[str, Any] = {
                "metadata": {
                    "status": self._status,
                    "duration_ms": round((time.time() - self._start_time) * 1000, 2),
                },
                **self._end_kwargs(),
            }
            if self._output is not None:
                update_kwargs["output"] = self._output
            self._observation.update(**update_kwargs)
            self._context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning(f"Failed to end {self.as_type} '{self.name}': {e}")

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status


@dataclass
class SpanContext(_Observation):
    """A tracing span, e.g. one tool call."""


@dataclass
class GenerationContext(_Observation):
    """LLM call tracking."""

    model: str = ""
    _usage: Optional[dict] = field(default=None, repr=False)

    as_type = "generation"

    def _start_kwargs(self) -> dict:
        return {"model": self.model}

    def _end_kwargs(self) -> dict:
        return {"usage_details": self._usage} if self._usage else {}

    def set_usage(
        self,
        input_tokens: Optional[int] = None,
        output_tokens: Optional[int] = None,
    ) -> None:
        """Record token usage reported by the backend."""
        usage = {}
        if input_tokens is not None:
            usage["input"] = input_tokens
        if output_tokens is not None:
            usage["output"] = output_tokens
        self._usage = usage or None


@dataclass
class TracingContext:
    """
    Tracing for one request execution.

    All methods are no-ops when the client is missing or disabled.
    """

    execution_id: str
    client: Optional[TracingClient] = None
    session_id: Optional[str] = None
    _context_manager: Any = field(default=None, repr=False)
    _root_span: Any = field(default=None, repr=False)
    _start_time: float = field(default_factory=time.time, repr=False)
    _trace_id: Optional[str] = field(default=None, repr=False)
    _root_span_id: Optional[str] = field(default=None, repr=False)

    @property
    def enabled(self) -> bool:
        return self.client is not None and self.client.enabled

    def start_trace(
        self,
        name: str = "request_execution",
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        """Open the root span for this execution."""
        if not self.enabled or not self.client.client:
            return

        try:
            trace_metadata = {"execution_id": self.execution_id, **(metadata or {})}
            self._context_manager = self.client.client.start_as_current_observation(
                as_type="span",
                name=name,
                input=input,
                metadata=trace_metadata,
            )
            self._root_span = self._context_manager.__enter__()
            self._trace_id = getattr(self._root_span, "trace_id", None)
            self._root_span_id = getattr(self._root_span, "id", None)
            self._root_span.update_trace(session_id=self.session_id)
            self._start_time = time.time()
            logger.debug(f"[{self.execution_id}] Trace started: trace_id={self._trace_id}")
        except Exception as e:
            logger.warning(f"[{self.execution_id}] Failed to start trace: {e}")
            self._root_span = None

    def get_trace_context(self) -> Optional[TraceContext]:
        """Parent link for child observations, or None before start_trace."""
        if not self._trace_id or not self._root_span_id:
            return None
        return TraceContext(trace_id=self._trace_id, parent_span_id=self._root_span_id)

    def end_trace(
        self,
        output: Optional[Any] = None,
        status: str = "success",
        metadata: Optional[dict] = None,
    ) -> None:
        """Close the root span and flush."""
        if not self._root_span:
            return

        try:
            duration_ms = (time.time() - self._start_time) * 1000
            self._root_span.update(
                output=output,
                metadata={"status": status, "duration_ms": round(duration_ms, 2), **(metadata or {})},
            )
            self._context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning(f"[{self.execution_id}] Failed to end trace: {e}")
        finally:
            self._root_span = None
            self.client.flush()

    @contextmanager
    def span(
        self,
        name: str,
        metadata: Optional[dict] = None,
        input: Optional[Any] = None,
    ) -> Generator[SpanContext, None, None]:
        span_ctx = SpanContext(
            name=name,
            client=self.client,
            metadata=metadata,
            input=input,
            trace_context=self.get_trace_context(),
        )
        try:
            span_ctx.start()
            yield span_ctx
        finally:
            span_ctx.end()

    @contextmanager
    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> Generator[GenerationContext, None, None]:
        gen_ctx = GenerationContext(
            name=name,
            client=self.client,
            model=model,
            metadata=metadata,
            input=input,
            trace_context=self.get_trace_context(),
        )
        try:
            gen_ctx.start()
            yield gen_ctx
        finally:
            gen_ctx.end()
