"""Events streamed to the caller of an invocation.

`Agent.stream_async` yields these (as plain dicts) and passes them to the callback handler. Unlike hook events they are
read-only notifications: nothing the caller does with them changes the loop. Some of them only travel between the loop
components and are never shown to the caller, which is what `is_callback_event` tells.
"""

from typing import TYPE_CHECKING, Any, Optional, cast

from typing_extensions import override

from .content import Message
from .event_loop import Metrics, StopReason, Usage
from .interrupt import InterruptContext
from .streaming import ContentBlockDelta, StreamEvent
from .tools import ToolResult, ToolUse

if TYPE_CHECKING:
    from ..agent import AgentResult


class TypedEvent(dict):
    """A dict with a name, so loop components can tell events apart with isinstance."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        """Create the event from its payload.

        Args:
            data: Keys the caller will see.
        """
        super().__init__(data or {})

    @property
    def is_callback_event(self) -> bool:
        """Whether the caller gets to see this event."""
        return True

    def as_dict(self) -> dict:
        """Copy of the payload as a plain dict."""
        return {**self}

    def prepare(self, invocation_state: dict) -> None:
        """Hook for events that carry the invocation state to the caller; most do not."""
        ...


class InternalEvent(TypedEvent):
    """An event passed between loop components only."""

    @property
    @override
    def is_callback_event(self) -> bool:
        return False


class InitEventLoopEvent(TypedEvent):
    """First event of every invocation, after the PreCall hooks ran."""

    def __init__(self) -> None:
        """Create the event."""
        super().__init__({"init_event_loop": True})

    @override
    def prepare(self, invocation_state: dict) -> None:
        self.update(invocation_state)


class StartEventLoopEvent(TypedEvent):
    """The loop enters reasoning."""

    def __init__(self, iteration: int) -> None:
        """Create the event.

        Args:
            iteration: How many times reasoning was entered in this invocation, counting this one.
        """
        super().__init__({"start_event_loop": True, "iteration": iteration})


class SummaryStartEvent(TypedEvent):
    """The iteration budget is spent and the loop asks the model for a summary."""

    def __init__(self, max_iterations: int) -> None:
        """Create the event.

        Args:
            max_iterations: The spent budget.
        """
        super().__init__({"start_summary": True, "max_iterations": max_iterations})


class ModelStreamChunkEvent(TypedEvent):
    """One raw chunk as the model produced it."""

    def __init__(self, chunk: StreamEvent) -> None:
        """Create the event.

        Args:
            chunk: The raw chunk.
        """
        super().__init__({"event": chunk})

    @property
    def chunk(self) -> StreamEvent:
        return cast(StreamEvent, self.get("event"))


class ModelStreamEvent(TypedEvent):
    """A decoded content delta; deltas also carry the invocation state to the caller."""

    def __init__(self, delta_data: dict[str, Any]) -> None:
        """Create the event.

        Args:
            delta_data: Decoded payload, empty when the chunk carried nothing worth showing.
        """
        super().__init__(delta_data)

    @property
    def is_callback_event(self) -> bool:
        return bool(self)

    @override
    def prepare(self, invocation_state: dict) -> None:
        if "delta" in self:
            self.update(invocation_state)


class ToolUseStreamEvent(ModelStreamEvent):
    """The model wrote more of a tool call."""

    def __init__(self, delta: ContentBlockDelta, current_tool_use: dict[str, Any]) -> None:
        """Create the event with the tool call as far as it is known."""
        super().__init__({"delta": delta, "current_tool_use": current_tool_use})


class TextStreamEvent(ModelStreamEvent):
    """The model wrote more text."""

    def __init__(self, delta: ContentBlockDelta, text: str) -> None:
        """Create the event with the new piece of text."""
        super().__init__({"data": text, "delta": delta})


class ReasoningTextStreamEvent(ModelStreamEvent):
    """The model wrote more of its private reasoning."""

    def __init__(self, delta: ContentBlockDelta, reasoning_text: str | None) -> None:
        """Create the event with the new piece of reasoning."""
        super().__init__({"reasoningText": reasoning_text, "delta": delta, "reasoning": True})


class ReasoningSignatureStreamEvent(ModelStreamEvent):
    """The model sent part of the signature of its reasoning."""

    def __init__(self, delta: ContentBlockDelta, reasoning_signature: str | None) -> None:
        """Create the event with the new piece of signature."""
        super().__init__({"reasoning_signature": reasoning_signature, "delta": delta, "reasoning": True})


class ModelPartialMessageEvent(InternalEvent):
    """Output of the model so far, turned into chunk hook notifications by the event loop."""

    def __init__(self, incremental: Message, accumulated: Message) -> None:
        """Create the event.

        Args:
            incremental: Only what the latest delta added.
            accumulated: Everything streamed so far.
        """
        super().__init__({"incremental": incremental, "accumulated": accumulated})

    @property
    def incremental(self) -> Message:
        return cast(Message, self["incremental"])

    @property
    def accumulated(self) -> Message:
        return cast(Message, self["accumulated"])


class ModelStopReason(InternalEvent):
    """The model response is complete."""

    def __init__(self, stop_reason: StopReason, message: Message, usage: Usage, metrics: Metrics) -> None:
        """Create the event.

        Args:
            stop_reason: Why the model ended the response.
            message: The assembled response.
            usage: Token counts reported by the model.
            metrics: Latency reported by the model.
        """
        super().__init__({"stop": (stop_reason, message, usage, metrics)})


class EventLoopStopEvent(InternalEvent):
    """The invocation reached a terminal state; the agent turns this into the AgentResult."""

    def __init__(
        self,
        stop_reason: StopReason,
        message: Message,
        interrupt: Optional[InterruptContext],
        request_state: Any,
    ) -> None:
        """Create the event.

        Args:
            stop_reason: How the invocation ended.
            message: The final message.
            interrupt: What was left pending, for an early stop.
            request_state: State shared with tools during the invocation.
        """
        super().__init__({"stop": (stop_reason, message, interrupt, request_state)})


class ToolResultEvent(InternalEvent):
    """A tool call finished and its PostActing hooks ran."""

    def __init__(self, tool_result: ToolResult, stop_requested: bool = False) -> None:
        """Create the event.

        Args:
            tool_result: The result as the PostActing hooks left it.
            stop_requested: Whether a PostActing hook asked the agent to stop.
        """
        super().__init__({"tool_result": tool_result, "stop_requested": stop_requested})

    @property
    def tool_result(self) -> ToolResult:
        return cast(ToolResult, self["tool_result"])

    @property
    def tool_use_id(self) -> str:
        return self.tool_result["toolUseId"]

    @property
    def stop_requested(self) -> bool:
        return bool(self.get("stop_requested"))


class ToolStreamEvent(TypedEvent):
    """An intermediate item yielded by a streaming tool."""

    def __init__(self, tool_use: ToolUse, tool_sub_event: Any) -> None:
        """Create the event.

        Args:
            tool_use: The tool call being executed.
            tool_sub_event: What the tool yielded.
        """
        super().__init__({"tool_stream_tool_use": tool_use, "tool_stream_event": tool_sub_event})

    @property
    def tool_use_id(self) -> str:
        return cast(ToolUse, self["tool_stream_tool_use"])["toolUseId"]


class ModelMessageEvent(TypedEvent):
    """A reasoning or summary message was stored in memory."""

    def __init__(self, message: Message) -> None:
        """Create the event for the stored message."""
        super().__init__({"message": message})


class ToolResultMessageEvent(TypedEvent):
    """A tool result message was stored in memory."""

    def __init__(self, message: Message) -> None:
        """Create the event for the stored message."""
        super().__init__({"message": message})


class InterruptEvent(TypedEvent):
    """The invocation stopped before a final answer."""

    def __init__(self, interrupt: InterruptContext) -> None:
        """Create the event.

        Args:
            interrupt: Who stopped the agent and what was left pending.
        """
        super().__init__({"interrupt": interrupt})


class ForceStopEvent(TypedEvent):
    """The invocation is aborted by an error."""

    def __init__(self, reason: str | Exception) -> None:
        """Create the event.

        Args:
            reason: The error, or a description of it.
        """
        super().__init__({"force_stop": True, "force_stop_reason": str(reason)})


class AgentResultEvent(TypedEvent):
    """Last event of an invocation."""

    def __init__(self, result: "AgentResult") -> None:
        """Create the event for the invocation result."""
        super().__init__({"result": result})
