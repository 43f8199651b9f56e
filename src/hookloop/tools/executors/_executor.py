"""Shared machinery of tool executors.

An executor decides in which order the tool calls of one reasoning message run. Running a single call is the same for
every executor: PreActing hooks may swap the call or the tool, every intermediate item of the tool is announced as an
acting chunk, and PostActing hooks get the last word on the result.
"""

import abc
import logging
from typing import TYPE_CHECKING, Any, Optional, cast

from opentelemetry import trace as trace_api
from opentelemetry.trace import Span

from ...hooks.events import ActingChunkEvent, PostActingEvent, PreActingEvent, notify_chunk
from ...telemetry.tracer import get_tracer
from ...types._events import ToolResultEvent, ToolStreamEvent
from ...types.tools import AgentTool, ToolGenerator, ToolResult, ToolUse

if TYPE_CHECKING:  # pragma: no cover
    from ...agent import Agent

logger = logging.getLogger(__name__)


def _error_result(tool_use_id: str, text: str) -> ToolResult:
    return {"toolUseId": tool_use_id, "status": "error", "content": [{"text": text}]}


class ToolExecutor(abc.ABC):
    """Runs the tool calls of a reasoning message."""

    @staticmethod
    async def _stream(
        agent: "Agent",
        tool_use: ToolUse,
        invocation_state: dict[str, Any],
        **kwargs: Any,
    ) -> ToolGenerator:
        """Run one tool call between its PreActing and PostActing hooks.

        A missing tool and an exception raised by the tool both become error results that the PostActing hooks see.
        Exceptions raised by the hooks themselves are not caught.

        Args:
            agent: The agent running the call.
            tool_use: The call written by the model.
            invocation_state: State shared across the current invocation.
            **kwargs: Passed on to the tool.

        Yields:
            A ToolStreamEvent per intermediate item, then a ToolResultEvent.
        """
        tool_use_id = tool_use["toolUseId"]
        registered = agent.tool_registry.get(tool_use["name"])
        logger.debug("tool_name=<%s>, tool_use_id=<%s> | acting", tool_use["name"], tool_use_id)

        pre_event = await agent.hooks.invoke_callbacks_async(
            PreActingEvent(agent=agent, tool_use=tool_use, selected_tool=registered, invocation_state=invocation_state)
        )
        tool_use = pre_event.tool_use
        selected_tool: Optional[AgentTool] = pre_event.selected_tool

        result: Optional[ToolResult] = None
        exception: Optional[Exception] = None

        if selected_tool is None:
            logger.warning(
                "tool_name=<%s>, available_tools=<%s> | no tool to run",
                tool_use["name"],
                list(agent.tool_registry.registry),
            )
            result = _error_result(tool_use_id, f"Unknown tool: {tool_use['name']}")

        else:
            items: list[Any] = []
            try:
                async for item in selected_tool.stream(tool_use, invocation_state, **kwargs):
                    if items:
                        chunk = items.pop()
                        await notify_chunk(ActingChunkEvent(agent=agent, tool_use=tool_use, chunk=chunk))
                        yield ToolStreamEvent(tool_use, chunk)
                    items.append(item)

                if not items:
                    raise RuntimeError(f"tool {selected_tool.tool_name} produced no result")

                result = cast(ToolResult, items[0])

            except Exception as e:
                logger.exception("tool_name=<%s> | tool failed", selected_tool.tool_name)
                exception = e
                result = _error_result(tool_use_id, f"Error: {e}")

        post_event = await agent.hooks.invoke_callbacks_async(
            PostActingEvent(
                agent=agent,
                tool_use=tool_use,
                selected_tool=selected_tool,
                invocation_state=invocation_state,
                tool_result=result,
                exception=exception,
            )
        )

        tool_result = post_event.tool_result
        if tool_result.get("toolUseId") != tool_use_id:
            # a result always answers the call the model wrote
            tool_result = cast(ToolResult, {**tool_result, "toolUseId": tool_use_id})

        yield ToolResultEvent(tool_result, stop_requested=post_event.stop_requested)

    @staticmethod
    async def _stream_with_trace(
        agent: "Agent",
        tool_use: ToolUse,
        invocation_state: dict[str, Any],
        cycle_span: Optional[Span] = None,
        **kwargs: Any,
    ) -> ToolGenerator:
        """Run one tool call inside its own span, a child of the cycle span."""
        tracer = get_tracer()
        span = tracer.start_tool_call_span(tool_use, cycle_span)
        span_open = True

        with trace_api.use_span(span, end_on_exit=False):
            try:
                async for event in ToolExecutor._stream(agent, tool_use, invocation_state, **kwargs):
                    if isinstance(event, ToolResultEvent):
                        tracer.end_tool_call_span(span, event.tool_result)
                        span_open = False
                    yield event
            except BaseException as e:
                if span_open:
                    tracer.end_span_with_error(span, e)
                raise

    @abc.abstractmethod
    # pragma: no cover
    def _execute(
        self,
        agent: "Agent",
        tool_uses: list[ToolUse],
        invocation_state: dict[str, Any],
        cycle_span: Optional[Span] = None,
    ) -> ToolGenerator:
        """Run the calls in this executor's order.

        Implementations stop starting new calls once the agent is interrupted. Calls that never ran are treated as
        pending by the event loop.

        Args:
            agent: The agent running the calls.
            tool_uses: Calls of the reasoning message, in the order the model wrote them.
            invocation_state: State shared across the current invocation.
            cycle_span: Span of the current cycle.

        Yields:
            The events of `_stream`, one ToolResultEvent per call that ran.
        """
        pass
