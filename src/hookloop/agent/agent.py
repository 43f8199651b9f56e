"""Agent Interface.

This module implements the core Agent class, the entry point for running the hook-driven reasoning/acting loop.

An invocation passes through PreCall, one or more reasoning/acting cycles (or a summary once the iteration budget is
exhausted), and PostCall. Hooks registered on `agent.hooks` observe and steer every phase; PostReasoning and PostActing
hooks can stop the agent, after which invoking it again without input resumes where it stopped.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import aclosing
from typing import (
    Any,
    AsyncGenerator,
    AsyncIterator,
    Callable,
    Mapping,
    Optional,
    Union,
    cast,
)

from opentelemetry import trace as trace_api
from opentelemetry.util.types import AttributeValue

from ..event_loop.event_loop import event_loop
from ..handlers.callback_handler import PrintingCallbackHandler, null_callback_handler
from ..hooks import ErrorEvent, HookProvider, HookRegistry, PostCallEvent, PreCallEvent
from ..memory import InMemoryMemory, Memory
from ..models.model import Model
from ..telemetry.tracer import get_tracer
from ..tools._validator import check_tool_results, extract_tool_results, is_tool_result_message, pending_tool_uses
from ..tools.executors import SequentialToolExecutor
from ..tools.executors._executor import ToolExecutor
from ..tools.registry import ToolRegistry
from ..types._events import AgentResultEvent, EventLoopStopEvent, InitEventLoopEvent, TypedEvent
from ..types.content import ContentBlock, Message, Messages
from ..types.exceptions import (
    AgentRunningException,
    EventLoopException,
    PendingToolUseException,
    ToolResultMismatchException,
)
from ..types.interrupt import InterruptContext
from .agent_result import AgentResult

logger = logging.getLogger(__name__)

AgentInput = Union[str, list[ContentBlock], Messages, None]


class _DefaultCallbackHandlerSentinel:
    """Marks an omitted callback_handler, which is not the same as passing None."""

    pass


_DEFAULT_CALLBACK_HANDLER = _DefaultCallbackHandlerSentinel()
_DEFAULT_AGENT_NAME = "hookloop"
_DEFAULT_AGENT_ID = "default"
_DEFAULT_MAX_ITERATIONS = 10

_ATTRIBUTE_SCALARS = (str, int, float, bool)

# Raised to the caller as they are, they describe misuse rather than a failed run
_UNWRAPPED_EXCEPTIONS = (AgentRunningException, PendingToolUseException, ToolResultMismatchException)


class Agent:
    """An agent that answers prompts by alternating between a model and its tools.

    Each invocation adds the new input to memory, then repeats:

    1. Reasoning: the model sees the system prompt and the whole conversation and replies
    2. Acting: every tool call of that reply is executed and its result stored

    until the model replies without tool calls, a hook stops the agent, the user interrupts it, or `max_iterations`
    reasoning steps were spent, in which case the model is asked for a summary instead.
    """

    def __init__(
        self,
        model: Model,
        messages: Optional[Messages] = None,
        tools: Optional[list[Any]] = None,
        system_prompt: Optional[str] = None,
        callback_handler: Optional[
            Union[Callable[..., Any], _DefaultCallbackHandlerSentinel]
        ] = _DEFAULT_CALLBACK_HANDLER,
        trace_attributes: Optional[Mapping[str, AttributeValue]] = None,
        *,
        agent_id: Optional[str] = None,
        name: Optional[str] = None,
        memory: Optional[Memory] = None,
        hooks: Optional[list[HookProvider]] = None,
        max_iterations: int = _DEFAULT_MAX_ITERATIONS,
        generate_options: Optional[dict[str, Any]] = None,
        check_running: bool = True,
        tool_executor: Optional[ToolExecutor] = None,
    ):
        """Create an agent.

        Args:
            model: Provider used for reasoning and summary calls.
            messages: Conversation to start from. Appended to `memory` when both are given.
            tools: Tools the model may call: `@hookloop.tool` functions, AgentTool instances, or modules whose
                attributes include such tools.
            system_prompt: Instructions for the model. Hooks see it as a leading system message of the model input.
            callback_handler: Receives every streamed event as keyword arguments.
                Omit it to print progress with a PrintingCallbackHandler; pass None to discard events.
            trace_attributes: Extra attributes for the invocation span. Values that OpenTelemetry cannot store are
                dropped.
            agent_id: Identifier of the agent. Defaults to "default".
            name: Display name used in traces. Defaults to "hookloop".
            memory: Conversation memory. Defaults to a new InMemoryMemory.
            hooks: Hook providers to register on the agent's HookRegistry.
            max_iterations: Reasoning steps allowed per invocation before the agent summarizes. Defaults to 10.
            generate_options: Generation options passed to the model on every call.
            check_running: Whether to reject overlapping invocations of this agent. Defaults to True.
            tool_executor: Strategy used to run tool calls. Defaults to SequentialToolExecutor.

        Raises:
            ValueError: If max_iterations is smaller than 1.
        """
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")

        self.model = model
        self.system_prompt = system_prompt
        self.agent_id = agent_id or _DEFAULT_AGENT_ID
        self.name = name or _DEFAULT_AGENT_NAME
        self.max_iterations = max_iterations
        self.generate_options: dict[str, Any] = dict(generate_options or {})
        self.check_running = check_running

        self.memory: Memory = memory if memory is not None else InMemoryMemory()
        for message in messages or []:
            self.memory.add_message(message)

        self.callback_handler: Callable[..., Any]
        if isinstance(callback_handler, _DefaultCallbackHandlerSentinel):
            self.callback_handler = PrintingCallbackHandler()
        else:
            self.callback_handler = callback_handler or null_callback_handler

        self.trace_attributes: dict[str, AttributeValue] = {
            key: value for key, value in (trace_attributes or {}).items() if _is_attribute_value(value)
        }

        self.tool_registry = ToolRegistry()
        if tools is not None:
            self.tool_registry.process_tools(tools)

        self.tool_executor = tool_executor or SequentialToolExecutor()

        self.tracer = get_tracer()

        self.hooks = HookRegistry()
        for hook in hooks or []:
            self.hooks.add_hook(hook)

        self._invocation_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._running_invocations = 0
        self._interrupt_event = threading.Event()
        self._interrupt_message: Optional[Message] = None
        self._interrupt_context: Optional[InterruptContext] = None

    @property
    def messages(self) -> Messages:
        """The conversation stored in memory, oldest first."""
        return self.memory.get_messages()

    @property
    def tool_names(self) -> list[str]:
        """Names of the tools the model can call."""
        return list(self.tool_registry.registry.keys())

    @property
    def interrupt_context(self) -> Optional[InterruptContext]:
        """Snapshot of the last early stop, cleared once the PreCall hooks of the next invocation ran."""
        return self._interrupt_context

    @property
    def interrupt_requested(self) -> bool:
        """Whether `interrupt` was called since the running invocations started."""
        return self._interrupt_event.is_set()

    def interrupt(self, message: Union[str, Message, None] = None) -> None:
        """Ask the running invocations to stop at the next phase boundary.

        Safe to call from any thread. Every running invocation returns a short acknowledgement, records an interrupt
        context with source "user", and leaves all pending tool calls in memory so that the next invocation can resume
        them.

        Args:
            message: Optional message describing why the user interrupted, kept on the interrupt context.
        """
        if isinstance(message, str):
            message = {"role": "user", "content": [{"text": message}]}

        logger.debug("agent=<%s> | interrupt requested", self.name)
        self._interrupt_message = message
        self._interrupt_event.set()

    def observe(self, message: Union[Message, Messages]) -> None:
        """Add messages to memory without invoking the model.

        Args:
            message: A message or a list of messages to store.
        """
        messages = message if isinstance(message, list) else [message]
        for item in messages:
            self._append_message(item)

    def __call__(self, prompt: AgentInput = None, **kwargs: Any) -> AgentResult:
        """Run one invocation and wait for its result.

        The invocation runs on a worker thread with its own event loop, so this works inside and outside of async
        code. Typical calls:

        - `agent("What is the weather?")`
        - `agent([{"text": "What is"}, {"text": " the weather?"}])`
        - `agent([{"role": "user", "content": [{"toolResult": ...}]}])` to answer pending tool calls
        - `agent()` to continue from memory, for instance after a hook stopped the agent

        Args:
            prompt: New input: a string, the content blocks of one user message, complete messages, or None.
            **kwargs: Invocation state shared with tools and merged into streamed events.

        Returns:
            The stop reason, the final message, the interrupt context of an early stop, and the request state.
        """

        def execute() -> AgentResult:
            return asyncio.run(self.invoke_async(prompt, **kwargs))

        with ThreadPoolExecutor() as executor:
            future = executor.submit(execute)
            return future.result()

    async def invoke_async(self, prompt: AgentInput = None, **kwargs: Any) -> AgentResult:
        """Run one invocation on the current event loop.

        Args:
            prompt: New input, see `__call__`.
            **kwargs: Invocation state shared with tools and merged into streamed events.

        Returns:
            The result of the invocation.
        """
        events = self.stream_async(prompt, **kwargs)
        async for event in events:
            _ = event

        return cast(AgentResult, event["result"])

    async def stream_async(
        self,
        prompt: AgentInput = None,
        **kwargs: Any,
    ) -> AsyncIterator[Any]:
        """Run one invocation and yield its events as they happen.

        Every yielded event is also passed to the callback handler. The last event carries the AgentResult under the
        "result" key.

        Args:
            prompt: New input, see `__call__`.
            **kwargs: Invocation state shared with tools and merged into streamed events. A "callback_handler" entry
                replaces the agent's handler for this invocation.

        Yields:
            Event dictionaries, for instance with "data" for streamed text, "current_tool_use" while the model
            writes a tool call, "message" for every message stored in memory, "interrupt" on an early stop, and
            finally "result".

        Raises:
            AgentRunningException: If the agent is already running and check_running is set.
            PendingToolUseException: If new input arrives while tool calls are pending.
            ToolResultMismatchException: If supplied tool results do not match the pending tool calls.
            EventLoopException: If a hook, the model, or the loop itself failed.

        Example:
            ```python
            async for event in agent.stream_async("Plan my trip"):
                if "data" in event:
                    print(event["data"], end="")
            ```
        """
        callback_handler = kwargs.get("callback_handler", self.callback_handler)
        messages = self._convert_prompt_to_messages(prompt)

        if self.check_running and not self._invocation_lock.acquire(blocking=False):
            raise AgentRunningException("Agent is still running, please wait for it to finish")

        self._enter_invocation()
        try:
            agent_span = self._start_agent_trace_span(messages)
            kwargs["agent_span"] = agent_span

            with trace_api.use_span(agent_span, end_on_exit=False):
                try:
                    async for event in self._run_loop(messages, invocation_state=kwargs):
                        event.prepare(invocation_state=kwargs)
                        if not event.is_callback_event:
                            continue

                        event_data = event.as_dict()
                        callback_handler(**event_data)
                        yield event_data

                    result = AgentResult(*event["stop"])
                    callback_handler(result=result)
                    yield AgentResultEvent(result=result).as_dict()

                    self._end_agent_trace_span(agent_span, response=result)

                except BaseException as e:
                    self._end_agent_trace_span(agent_span, error=e)
                    raise

        finally:
            self._exit_invocation()

    async def _run_loop(self, messages: Messages, invocation_state: dict[str, Any]) -> AsyncGenerator[TypedEvent, None]:
        """Wrap the event loop with the PreCall and PostCall hooks and store the new input in memory.

        Args:
            messages: New input of the invocation, before the PreCall hooks saw it.
            invocation_state: State shared with tools for this invocation.

        Yields:
            Events from the event loop. The last event is the EventLoopStopEvent carrying the message returned by the
            PostCall hooks.
        """
        invocation_state["agent"] = self
        invocation_state.setdefault("request_state", {})

        try:
            pre_event = await self.hooks.invoke_callbacks_async(PreCallEvent(agent=self, input_messages=messages))
            messages = pre_event.input_messages
            self._interrupt_context = None

            yield InitEventLoopEvent()

            self._check_pending_tool_uses(messages)
            for message in messages:
                self._append_message(message)

            stop_event: Optional[EventLoopStopEvent] = None
            async with aclosing(event_loop(self, invocation_state)) as events:
                async for event in events:
                    if isinstance(event, EventLoopStopEvent):
                        stop_event = event
                    else:
                        yield event

            stop_reason, final_message, interrupt, request_state = cast(EventLoopStopEvent, stop_event)["stop"]
            self._interrupt_context = interrupt

            post_event = await self.hooks.invoke_callbacks_async(PostCallEvent(agent=self, final_message=final_message))

            yield EventLoopStopEvent(stop_reason, post_event.final_message, interrupt, request_state)

        except _UNWRAPPED_EXCEPTIONS as e:
            await self._notify_error(e)
            raise

        except Exception as e:
            await self._notify_error(e)
            raise EventLoopException(e, invocation_state["request_state"]) from e

    async def _notify_error(self, error: BaseException) -> None:
        """Report a failed invocation to the ErrorEvent hooks, ignoring their failures."""
        logger.debug("error=<%s> | invocation failed, notifying error hooks", error)
        await self.hooks.notify_callbacks_async(ErrorEvent(agent=self, error=error))

    def _check_pending_tool_uses(self, messages: Messages) -> None:
        """Reject new input that would leave pending tool calls unanswered.

        Input consisting only of tool results is accepted if each result answers a different pending tool call. The
        calls left without a result are executed by the event loop.

        Args:
            messages: The new input of the invocation.

        Raises:
            PendingToolUseException: If the input contains anything but tool results while tool calls are pending.
            ToolResultMismatchException: If a tool result does not belong to a pending tool call or answers one twice.
        """
        if not messages:
            return

        pending = pending_tool_uses(self.messages)
        if not pending:
            return

        if all(is_tool_result_message(message) for message in messages):
            check_tool_results(pending, extract_tool_results(messages), require_all=False)
            return

        raise PendingToolUseException(pending)

    def _convert_prompt_to_messages(self, prompt: AgentInput) -> Messages:
        """Normalize the accepted prompt formats into a list of messages."""
        if prompt is None:
            return []

        if isinstance(prompt, str):
            return [{"role": "user", "content": [{"text": prompt}]}]

        if isinstance(prompt, list) and all(isinstance(item, dict) for item in prompt):
            if not prompt:
                return []

            if all("role" in item and "content" in item for item in prompt):
                return cast(Messages, prompt)

            content_keys = ContentBlock.__annotations__.keys()
            if all(any(key in content_keys for key in item) for item in prompt):
                return [{"role": "user", "content": cast(list[ContentBlock], prompt)}]

        raise ValueError("Input prompt must be of type: `str | list[ContentBlock] | Messages | None`.")

    def _start_agent_trace_span(self, messages: Messages) -> trace_api.Span:
        """Open the invocation span with the agent, model and tool names as attributes."""
        return self.tracer.start_agent_span(
            messages=messages,
            agent_name=self.name,
            model_id=self.model.model_name,
            tools=self.tool_names,
            custom_trace_attributes=self.trace_attributes,
        )

    def _end_agent_trace_span(
        self,
        span: trace_api.Span,
        response: Optional[AgentResult] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """Close the invocation span, recording either the result or the failure."""
        self.tracer.end_agent_span(span=span, response=response, error=error)

    def _enter_invocation(self) -> None:
        """Count a starting invocation; the interrupt request is reset only when no other one is running."""
        with self._state_lock:
            if not self._running_invocations:
                self._interrupt_event.clear()
                self._interrupt_message = None
            self._running_invocations += 1

    def _exit_invocation(self) -> None:
        with self._state_lock:
            self._running_invocations -= 1

        if self.check_running:
            self._invocation_lock.release()

    def _append_message(self, message: Message) -> None:
        self.memory.add_message(message)


def _is_attribute_value(value: Any) -> bool:
    """Whether OpenTelemetry can store the value as a span attribute."""
    if isinstance(value, list):
        return all(isinstance(item, _ATTRIBUTE_SCALARS) for item in value)
    return isinstance(value, _ATTRIBUTE_SCALARS)
