"""Executor running tool calls one at a time."""

import logging
from typing import TYPE_CHECKING, Any, AsyncGenerator, Optional

from opentelemetry.trace import Span
from typing_extensions import override

from ...types._events import TypedEvent
from ...types.tools import ToolUse
from ._executor import ToolExecutor

if TYPE_CHECKING:  # pragma: no cover
    from ...agent import Agent

logger = logging.getLogger(__name__)


class SequentialToolExecutor(ToolExecutor):
    """Runs the tool calls in the order the model wrote them, each after the previous one finished."""

    @override
    async def _execute(
        self,
        agent: "Agent",
        tool_uses: list[ToolUse],
        invocation_state: dict[str, Any],
        cycle_span: Optional[Span] = None,
    ) -> AsyncGenerator[TypedEvent, None]:
        """Run the calls in order, checking for an interrupt before each one."""
        for tool_use in tool_uses:
            if agent.interrupt_requested:
                logger.debug("tool_use_id=<%s> | interrupted before tool execution", tool_use["toolUseId"])
                return

            events = ToolExecutor._stream_with_trace(agent, tool_use, invocation_state, cycle_span)
            async for event in events:
                yield event
