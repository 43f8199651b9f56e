"""Hook events emitted as part of invoking agents.

One event class exists per phase boundary of the reasoning/acting loop:

    PreCall -> PreReasoning -> [ReasoningChunk]* -> PostReasoning
            -> ([PreActing -> [ActingChunk]* -> PostActing]*)?
            -> (loop to PreReasoning | PreSummary -> [SummaryChunk]* -> PostSummary)
            -> PostCall

`ErrorEvent` can follow any of them. Chunk events and `ErrorEvent` are notifications; their fields are read-only and
failures of their callbacks never abort the invocation. The remaining events expose specific writable fields and, for
PostReasoning and PostActing, control signals that the agent reads after the whole chain has run.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..tools._validator import extract_tool_uses, validate_tool_results
from ..types.content import Message, Messages
from ..types.exceptions import ToolResultMismatchException
from ..types.tools import AgentTool, ToolResult, ToolUse
from .registry import HookEvent, HookEventType

logger = logging.getLogger(__name__)


@dataclass
class PreCallEvent(HookEvent):
    """Event triggered at the beginning of an agent invocation.

    Fired before the new input is added to memory. Hooks may rewrite the input, for instance to turn a human approval
    into tool results for pending tool calls.

    Attributes:
        input_messages: The new messages of this invocation. Empty when resuming.
    """

    kind = HookEventType.PRE_CALL
    _non_nullable = frozenset({"input_messages"})

    input_messages: Messages

    def _can_write(self, name: str) -> bool:
        return name == "input_messages"


@dataclass
class PostCallEvent(HookEvent):
    """Event triggered once the invocation produced its final message.

    Fired for normal completion, early stops, and summaries alike.

    Attributes:
        final_message: The message returned to the caller.
    """

    kind = HookEventType.POST_CALL
    _non_nullable = frozenset({"final_message"})

    final_message: Message

    def _can_write(self, name: str) -> bool:
        return name == "final_message"


@dataclass
class PreReasoningEvent(HookEvent):
    """Event triggered before the model is called in the reasoning phase.

    Attributes:
        model_name: Identifier of the model about to be called.
        generate_options: Generation options passed to the model.
        input_messages: Messages sent to the model, including a leading system message when the agent has a system
            prompt. Hooks may replace this list.
    """

    kind = HookEventType.PRE_REASONING
    _non_nullable = frozenset({"input_messages"})

    model_name: Optional[str]
    generate_options: dict[str, Any]
    input_messages: Messages

    def _can_write(self, name: str) -> bool:
        return name == "input_messages"


@dataclass
class ReasoningChunkEvent(HookEvent):
    """Notification for every piece of streamed reasoning output.

    Attributes:
        model_name: Identifier of the streaming model.
        generate_options: Generation options of the call.
        incremental_chunk: Message with only the content of the latest delta.
        accumulated: Message with everything streamed so far.
    """

    kind = HookEventType.REASONING_CHUNK
    _non_nullable = frozenset({"incremental_chunk", "accumulated"})

    model_name: Optional[str]
    generate_options: dict[str, Any]
    incremental_chunk: Message
    accumulated: Message


@dataclass
class PostReasoningEvent(HookEvent):
    """Event triggered after the model produced a complete reasoning message.

    Hooks may replace the reasoning message, stop the agent, or send it straight back to reasoning with extra
    messages instead of executing the requested tools.

    Attributes:
        model_name: Identifier of the model that produced the message.
        generate_options: Generation options of the call.
        reasoning_message: The assembled reasoning message.
    """

    kind = HookEventType.POST_REASONING
    _non_nullable = frozenset({"reasoning_message"})

    model_name: Optional[str]
    generate_options: dict[str, Any]
    reasoning_message: Message
    _stop_requested: bool = field(default=False, init=False, repr=False)
    _goto_reasoning_messages: Optional[Messages] = field(default=None, init=False, repr=False)

    def _can_write(self, name: str) -> bool:
        return name == "reasoning_message"

    @property
    def tool_uses(self) -> list[ToolUse]:
        """Tool calls requested by the current reasoning message."""
        return extract_tool_uses(self.reasoning_message)

    def stop_agent(self) -> None:
        """Stop the invocation once this dispatch finishes.

        The reasoning message becomes the result of the invocation and its tool calls stay pending. Calling this
        more than once has no additional effect.
        """
        object.__setattr__(self, "_stop_requested", True)

    @property
    def stop_requested(self) -> bool:
        """Whether a hook asked the agent to stop."""
        return self._stop_requested

    def goto_reasoning(self, messages: Messages) -> bool:
        """Re-enter reasoning directly, appending the given messages to memory first.

        When the reasoning message requests tool calls, the messages must contain exactly one tool result for each of
        them. Requests that fail this check are ignored and the loop proceeds to execute the tools. A later accepted
        request replaces an earlier one.

        Args:
            messages: Messages to append before reasoning again.

        Returns:
            True if the request was recorded, False if it was rejected.

        Raises:
            ValueError: If messages is None.
        """
        if messages is None:
            raise ValueError("goto_reasoning requires a list of messages")

        try:
            validate_tool_results(self.reasoning_message, messages)
        except ToolResultMismatchException as e:
            logger.warning("error=<%s> | rejected goto reasoning request", e)
            return False

        object.__setattr__(self, "_goto_reasoning_messages", list(messages))
        return True

    @property
    def goto_reasoning_messages(self) -> Optional[Messages]:
        """Messages of the last accepted goto reasoning request, if any."""
        return self._goto_reasoning_messages

    @property
    def goto_reasoning_requested(self) -> bool:
        """Whether a goto reasoning request was accepted."""
        return self._goto_reasoning_messages is not None


@dataclass
class PreActingEvent(HookEvent):
    """Event triggered before a single tool call is executed.

    Attributes:
        tool_use: The tool call about to run. Hooks may rewrite it.
        selected_tool: The tool that will run. Hooks may replace it; None produces an "unknown tool" error result.
        invocation_state: Per-invocation state passed to the tool.
    """

    kind = HookEventType.PRE_ACTING
    _non_nullable = frozenset({"tool_use"})

    tool_use: ToolUse
    selected_tool: Optional[AgentTool]
    invocation_state: dict[str, Any]

    def _can_write(self, name: str) -> bool:
        return name in ["tool_use", "selected_tool"]


@dataclass
class ActingChunkEvent(HookEvent):
    """Notification for every intermediate item a tool streams.

    Attributes:
        tool_use: The running tool call.
        chunk: The item yielded by the tool.
    """

    kind = HookEventType.ACTING_CHUNK

    tool_use: ToolUse
    chunk: Any


@dataclass
class PostActingEvent(HookEvent):
    """Event triggered after a single tool call completed.

    Attributes:
        tool_use: The tool call that ran.
        selected_tool: The tool that ran. May be None if the lookup failed.
        invocation_state: Per-invocation state passed to the tool.
        tool_result: The result of the call. Hooks may rewrite it.
        exception: The exception raised by the tool, if it failed.
    """

    kind = HookEventType.POST_ACTING
    _non_nullable = frozenset({"tool_result"})

    tool_use: ToolUse
    selected_tool: Optional[AgentTool]
    invocation_state: dict[str, Any]
    tool_result: ToolResult
    exception: Optional[Exception] = None
    _stop_requested: bool = field(default=False, init=False, repr=False)

    def _can_write(self, name: str) -> bool:
        return name == "tool_result"

    def stop_agent(self) -> None:
        """Stop the invocation after this tool result has been stored.

        Tool calls of the same reasoning message that have not run yet stay pending. Calling this more than once has
        no additional effect.
        """
        object.__setattr__(self, "_stop_requested", True)

    @property
    def stop_requested(self) -> bool:
        """Whether a hook asked the agent to stop."""
        return self._stop_requested


@dataclass
class PreSummaryEvent(HookEvent):
    """Event triggered before the model is asked for a summary because the iteration budget ran out.

    Attributes:
        model_name: Identifier of the model about to be called.
        generate_options: Generation options configured on the agent.
        input_messages: Messages sent to the model. Hooks may replace this list.
        max_iterations: The configured reasoning budget.
        current_iteration: Number of reasoning entries performed in this invocation.
        generate_options_override: Options to use for the summary call only, instead of generate_options.
    """

    kind = HookEventType.PRE_SUMMARY
    _non_nullable = frozenset({"input_messages"})

    model_name: Optional[str]
    generate_options: dict[str, Any]
    input_messages: Messages
    max_iterations: int
    current_iteration: int
    generate_options_override: Optional[dict[str, Any]] = None

    def _can_write(self, name: str) -> bool:
        return name in ["input_messages", "generate_options_override"]

    @property
    def effective_generate_options(self) -> dict[str, Any]:
        """The options the summary call will use."""
        if self.generate_options_override is not None:
            return self.generate_options_override
        return self.generate_options


@dataclass
class SummaryChunkEvent(HookEvent):
    """Notification for every piece of streamed summary output.

    Attributes:
        model_name: Identifier of the streaming model.
        generate_options: Generation options of the summary call.
        incremental_chunk: Message with only the content of the latest delta.
        accumulated: Message with everything streamed so far.
    """

    kind = HookEventType.SUMMARY_CHUNK
    _non_nullable = frozenset({"incremental_chunk", "accumulated"})

    model_name: Optional[str]
    generate_options: dict[str, Any]
    incremental_chunk: Message
    accumulated: Message


@dataclass
class PostSummaryEvent(HookEvent):
    """Event triggered after the summary message was produced.

    Attributes:
        model_name: Identifier of the model that produced the summary.
        generate_options: Generation options of the summary call.
        summary_message: The summary message. Hooks may rewrite it.
    """

    kind = HookEventType.POST_SUMMARY
    _non_nullable = frozenset({"summary_message"})

    model_name: Optional[str]
    generate_options: dict[str, Any]
    summary_message: Message
    _stop_requested: bool = field(default=False, init=False, repr=False)

    def _can_write(self, name: str) -> bool:
        return name == "summary_message"

    def stop_agent(self) -> None:
        """Ask the agent to stop after the summary.

        The summary already ends the invocation, so the request is only recorded.
        """
        object.__setattr__(self, "_stop_requested", True)

    @property
    def stop_requested(self) -> bool:
        """Whether a hook asked the agent to stop."""
        return self._stop_requested


@dataclass
class ErrorEvent(HookEvent):
    """Notification that the invocation failed.

    Also sent, best effort, when a chunk callback fails; in that case the invocation continues.

    Attributes:
        error: The failure.
    """

    kind = HookEventType.ERROR

    error: BaseException


async def notify_chunk(event: HookEvent) -> None:
    """Broadcast a chunk notification and report failing callbacks as ErrorEvents.

    Neither the chunk callbacks nor the error callbacks can abort the caller.

    Args:
        event: A ReasoningChunkEvent, ActingChunkEvent, or SummaryChunkEvent.
    """
    registry = event.agent.hooks

    for failure in await registry.notify_callbacks_async(event):
        await registry.notify_callbacks_async(ErrorEvent(agent=event.agent, error=failure))
