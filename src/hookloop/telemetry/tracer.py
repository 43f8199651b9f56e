"""OpenTelemetry spans for invocations, reasoning cycles, model calls and tool calls.

Spans go to the globally configured tracer provider. Without one they are non-recording and cost next to nothing, so
the agent always traces and the application decides whether anything is exported. Attribute names follow the
OpenTelemetry GenAI semantic conventions where one exists.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping, Optional

import opentelemetry.trace as trace_api
from opentelemetry.instrumentation.threading import ThreadingInstrumentor
from opentelemetry.trace import Span, StatusCode
from opentelemetry.util.types import AttributeValue

from ..types.content import Message, Messages
from ..types.event_loop import StopReason, Usage
from ..types.tools import ToolResult, ToolUse

if TYPE_CHECKING:
    from ..agent.agent_result import AgentResult

logger = logging.getLogger(__name__)

_SYSTEM = "hookloop"


class JSONEncoder(json.JSONEncoder):
    """Encoder for span payloads: dates become ISO strings and anything else JSON cannot hold becomes "<replaced>"."""

    def encode(self, obj: Any) -> str:
        """Encode the object after making every nested value serializable."""
        return super().encode(self._sanitize(obj))

    def _sanitize(self, value: Any) -> Any:
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, dict):
            return {key: self._sanitize(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._sanitize(item) for item in value]

        try:
            json.dumps(value)
        except (TypeError, OverflowError, ValueError):
            return "<replaced>"
        return value


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Tracer:
    """Opens and closes the spans of the agent loop."""

    def __init__(self) -> None:
        """Bind to the global tracer provider and propagate span context into worker threads."""
        self.service_name = __name__
        self.tracer_provider = trace_api.get_tracer_provider()
        self.tracer = self.tracer_provider.get_tracer(self.service_name)
        ThreadingInstrumentor().instrument()

    def _start_span(
        self,
        span_name: str,
        parent_span: Optional[Span] = None,
        attributes: Optional[dict[str, AttributeValue]] = None,
        span_kind: trace_api.SpanKind = trace_api.SpanKind.INTERNAL,
    ) -> Span:
        """Open a span under the given parent, or under the current span when there is none.

        Args:
            span_name: Name of the new span.
            parent_span: Explicit parent.
            attributes: Attributes set right away.
            span_kind: OpenTelemetry kind of the span.

        Returns:
            The open span.
        """
        parent = parent_span or trace_api.get_current_span()

        context = None
        if parent and parent != trace_api.INVALID_SPAN and parent.is_recording():
            context = trace_api.set_span_in_context(parent)

        span = self.tracer.start_span(name=span_name, context=context, kind=span_kind)
        span.set_attribute("gen_ai.event.start_time", _now())
        if attributes:
            span.set_attributes(attributes)

        return span

    def _end_span(
        self,
        span: Optional[Span],
        attributes: Optional[dict[str, AttributeValue]] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """Set the final attributes and status, then close the span.

        The span is closed even if recording the status fails.

        Args:
            span: Span to close, None is ignored.
            attributes: Attributes set before closing.
            error: Failure to record; the status is OK without one.
        """
        if not span:
            return

        try:
            span.set_attribute("gen_ai.event.end_time", _now())
            if attributes:
                span.set_attributes(attributes)

            if error is None:
                span.set_status(StatusCode.OK)
            else:
                span.set_status(StatusCode.ERROR, str(error))
                span.record_exception(error)
        except Exception as e:
            logger.warning("error=<%s> | failed to finalize span", e, exc_info=True)
        finally:
            span.end()

    def _add_messages(self, span: Span, messages: Messages) -> None:
        for message in messages:
            span.add_event(f"gen_ai.{message['role']}.message", {"content": serialize(message["content"])})

    def end_span_with_error(self, span: Optional[Span], error: BaseException) -> None:
        """Close a span as failed."""
        self._end_span(span, error=error)

    def end_interrupted_span(self, span: Optional[Span]) -> None:
        """Close a span whose work was abandoned because the agent was interrupted."""
        self._end_span(span, {"agent.interrupted": True})

    def start_model_invoke_span(
        self,
        messages: Messages,
        parent_span: Optional[Span] = None,
        model_id: Optional[str] = None,
        operation: str = "chat",
    ) -> Span:
        """Open the span of one model call.

        Args:
            messages: Model input, recorded as span events.
            parent_span: The cycle span the call belongs to.
            model_id: Name of the model.
            operation: "chat" for reasoning, "summarize" for the summary call.

        Returns:
            The open span.
        """
        attributes: dict[str, AttributeValue] = {"gen_ai.system": _SYSTEM, "gen_ai.operation.name": operation}
        if model_id:
            attributes["gen_ai.request.model"] = model_id

        span = self._start_span(operation, parent_span, attributes=attributes, span_kind=trace_api.SpanKind.CLIENT)
        self._add_messages(span, messages)
        return span

    def end_model_invoke_span(self, span: Span, message: Message, usage: Usage, stop_reason: StopReason) -> None:
        """Close the span of a model call with its response and token usage."""
        span.add_event(
            "gen_ai.choice",
            attributes={"finish_reason": str(stop_reason), "message": serialize(message["content"])},
        )
        self._end_span(
            span,
            {
                "gen_ai.usage.input_tokens": usage["inputTokens"],
                "gen_ai.usage.output_tokens": usage["outputTokens"],
                "gen_ai.usage.total_tokens": usage["totalTokens"],
            },
        )

    def start_tool_call_span(self, tool: ToolUse, parent_span: Optional[Span] = None) -> Span:
        """Open the span of one tool call.

        Args:
            tool: The tool call, its input is recorded as a span event.
            parent_span: The cycle span the call belongs to.

        Returns:
            The open span.
        """
        span = self._start_span(
            f"execute_tool {tool['name']}",
            parent_span,
            attributes={
                "gen_ai.operation.name": "execute_tool",
                "gen_ai.system": _SYSTEM,
                "gen_ai.tool.name": tool["name"],
                "gen_ai.tool.call.id": tool["toolUseId"],
            },
        )
        span.add_event(
            "gen_ai.tool.message",
            attributes={"role": "tool", "content": serialize(tool["input"]), "id": tool["toolUseId"]},
        )
        return span

    def end_tool_call_span(self, span: Span, tool_result: Optional[ToolResult]) -> None:
        """Close the span of a tool call, recording its result when there is one."""
        attributes: dict[str, AttributeValue] = {}
        if tool_result is not None:
            attributes["tool.status"] = str(tool_result.get("status", ""))
            span.add_event(
                "gen_ai.choice",
                attributes={"message": serialize(tool_result.get("content")), "id": tool_result.get("toolUseId", "")},
            )

        self._end_span(span, attributes)

    def start_event_loop_cycle_span(
        self, iteration: int, messages: Messages, parent_span: Optional[Span] = None
    ) -> Span:
        """Open the span of one reasoning entry and the acting that follows it.

        Args:
            iteration: How many times reasoning was entered in the invocation, counting this one.
            messages: Memory at the start of the cycle.
            parent_span: The invocation span.

        Returns:
            The open span.
        """
        span = self._start_span(
            "execute_event_loop_cycle", parent_span, attributes={"event_loop.iteration": iteration}
        )
        self._add_messages(span, messages)
        return span

    def end_event_loop_cycle_span(self, span: Optional[Span], message: Optional[Message] = None) -> None:
        """Close the span of a cycle, recording the reasoning message when there is one."""
        if span and message:
            span.add_event("gen_ai.choice", attributes={"message": serialize(message["content"])})

        self._end_span(span)

    def start_agent_span(
        self,
        messages: Messages,
        agent_name: str,
        model_id: Optional[str] = None,
        tools: Optional[list] = None,
        custom_trace_attributes: Optional[Mapping[str, AttributeValue]] = None,
    ) -> Span:
        """Open the span of one invocation.

        Args:
            messages: New input of the invocation.
            agent_name: Name of the agent.
            model_id: Name of the model.
            tools: Names of the registered tools.
            custom_trace_attributes: Extra attributes configured on the agent.

        Returns:
            The open span.
        """
        attributes: dict[str, AttributeValue] = {
            "gen_ai.system": _SYSTEM,
            "gen_ai.agent.name": agent_name,
            "gen_ai.operation.name": "invoke_agent",
        }
        if model_id:
            attributes["gen_ai.request.model"] = model_id
        if tools:
            attributes["gen_ai.agent.tools"] = serialize(tools)
        attributes.update(custom_trace_attributes or {})

        span = self._start_span(
            f"invoke_agent {agent_name}", attributes=attributes, span_kind=trace_api.SpanKind.CLIENT
        )
        self._add_messages(span, messages)
        return span

    def end_agent_span(
        self, span: Optional[Span], response: Optional["AgentResult"] = None, error: Optional[BaseException] = None
    ) -> None:
        """Close the span of an invocation with its result or its failure.

        An early stop adds who stopped the agent and how many tool calls were left pending.
        """
        attributes: dict[str, AttributeValue] = {}

        if span and response:
            span.add_event(
                "gen_ai.choice",
                attributes={"message": str(response), "finish_reason": str(response.stop_reason)},
            )
            if response.interrupt:
                attributes["agent.interrupt.source"] = response.interrupt.source.value
                attributes["agent.interrupt.pending_tool_calls"] = len(response.interrupt.pending_tool_uses)

        self._end_span(span, attributes, error)


_tracer_instance: Optional[Tracer] = None


def get_tracer() -> Tracer:
    """Return the process-wide tracer, creating it on first use."""
    global _tracer_instance

    if _tracer_instance is None:
        _tracer_instance = Tracer()

    return _tracer_instance


def serialize(obj: Any) -> str:
    """Encode a span payload as JSON, keeping non-ASCII text readable."""
    return json.dumps(obj, ensure_ascii=False, cls=JSONEncoder)
