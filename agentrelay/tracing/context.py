"""
Request-scoped tracing.

A ``TracingContext`` owns the root observation of one trace. Spans and
generations opened through it carry their parent's trace and observation
ids explicitly, so nesting does not depend on OpenTelemetry context state.
Every operation is a no-op when tracing is disabled.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generator, Optional

from .client import get_tracing_client

logger = logging.getLogger(__name__)


@dataclass
class _Observation:
    """Shared lifecycle of a Langfuse span or generation."""

    as_type: ClassVar[str] = "span"

    name: str
    enabled: bool = False
    metadata: Optional[dict] = None
    input: Optional[Any] = None
    _trace_context: Optional[dict] = field(default=None, repr=False)
    _context_manager: Any = field(default=None, repr=False)
    _observation: Any = field(default=None, repr=False)
    _started_at: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    def _start_options(self) -> dict[str, Any]:
        return {"name": self.name, "metadata": self.metadata, "input": self.input}

    def _end_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "metadata": {
                "status": self._status,
                "duration_ms": round((time.monotonic() - self._started_at) * 1000, 2),
            }
        }
        if self._output is not None:
            options["output"] = self._output
        return options

    def start(self) -> None:
        if not self.enabled:
            return
        client = get_tracing_client()
        if client is None or client.client is None:
            return
        try:
            self._started_at = time.monotonic()
            self._context_manager = client.client.start_as_current_observation(
                trace_context=self._trace_context,
                as_type=self.as_type,
                **self._start_options(),
            )
            self._observation = self._context_manager.__enter__()
        except Exception as e:
            logger.warning("Failed to start %s '%s': %s", self.as_type, self.name, e)
            self._context_manager = None
            self._observation = None

    def end(self) -> None:
        if self._observation is None:
            return
        try:
            self._observation.update(**self._end_options())
            self._context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning("Failed to end %s '%s': %s", self.as_type, self.name, e)

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        """Mark the observation, e.g. ``"error"`` when the traced call raised."""
        self._status = status


@dataclass
class GenerationContext(_Observation):
    """One chat-completion call."""

    as_type: ClassVar[str] = "generation"

    model: str = ""
    model_parameters: Optional[dict] = None
    _usage: Optional[dict] = field(default=None, repr=False)

    def _start_options(self) -> dict[str, Any]:
        options = super()._start_options()
        options["model"] = self.model
        options["model_parameters"] = self.model_parameters
        return options

    def _end_options(self) -> dict[str, Any]:
        options = super()._end_options()
        if self._usage:
            options["usage"] = self._usage
        return options

    def set_usage(
        self,
        prompt_tokens: Optional[int] = None,
        completion_tokens: Optional[int] = None,
        total_tokens: Optional[int] = None,
    ) -> None:
        counts = {
            "promptTokens": prompt_tokens,
            "completionTokens": completion_tokens,
            "totalTokens": total_tokens,
        }
        self._usage = {k: v for k, v in counts.items() if v is not None}


@dataclass
class SpanContext(_Observation):
    """A span that can parent nested spans and generations."""

    def _children_context(self) -> Optional[dict]:
        if not self._trace_context:
            return None
        parent_id = getattr(self._observation, "id", None)
        trace_id = self._trace_context.get("trace_id")
        if not trace_id or not parent_id:
            return self._trace_context
        return {"trace_id": trace_id, "parent_span_id": parent_id}

    @contextmanager
    def _opened(self, child: _Observation) -> Generator[Any, None, None]:
        child.start()
        try:
            yield child
        finally:
            child.end()

    def span(
        self,
        name: str,
        metadata: Optional[dict] = None,
        input: Optional[Any] = None,
    ):
        """Context manager for a child span."""
        return self._opened(
            SpanContext(
                name=name,
                enabled=self.enabled,
                metadata=metadata,
                input=input,
                _trace_context=self._children_context(),
            )
        )

    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
        model_parameters: Optional[dict] = None,
    ):
        """Context manager for a generation under this span."""
        return self._opened(
            GenerationContext(
                name=name,
                model=model,
                enabled=self.enabled,
                input=input,
                metadata=metadata,
                model_parameters=model_parameters,
                _trace_context=self._children_context(),
            )
        )


@dataclass
class TracingContext(SpanContext):
    """
    Root of one trace.

    ``start_trace`` opens the root observation and ``end_trace`` closes it;
    spans and generations opened in between become its children. Pass it
    to ``Swarm(tracing_context=...)`` to trace runs.
    """

    name: str = "swarm"
    run_id: str = ""
    session_id: Optional[str] = None
    user_id: Optional[str] = None

    def __post_init__(self):
        client = get_tracing_client()
        self.enabled = client is not None and client.enabled

    def start_trace(self, input: Optional[Any] = None, metadata: Optional[dict] = None) -> None:
        if not self.enabled:
            logger.debug("[%s] Tracing disabled, trace not started", self.run_id)
            return
        self.input = input
        self.metadata = {"run_id": self.run_id, **(metadata or {})}
        self.start()
        if self._observation is None:
            return
        try:
            trace_id = getattr(self._observation, "trace_id", None)
            if trace_id:
                self._trace_context = {"trace_id": trace_id}
            self._observation.update_trace(user_id=self.user_id, session_id=self.session_id)
        except Exception as e:
            logger.warning("[%s] Failed to start trace: %s", self.run_id, e)

    def end_trace(self, output: Optional[Any] = None, status: str = "success") -> None:
        if output is not None:
            self.set_output(output)
        self.set_status(status)
        self.end()
