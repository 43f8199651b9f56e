"""This module implements the central event loop.

The event loop drives one agent invocation through its phases:

1. Reasoning: stream the model with the conversation and the tool specs
2. Acting: execute the tool calls of the reasoning message, one after another
3. Summary: ask the model for a summary once the iteration budget is exhausted

Every phase boundary is dispatched to the agent's hooks. PostReasoning and PostActing hooks may stop the invocation,
and PostReasoning hooks may send the loop straight back to reasoning. All produced messages are appended to memory as
soon as they exist, so a stopped invocation can be resumed from memory alone.
"""

import asyncio
import logging
from contextlib import aclosing
from typing import TYPE_CHECKING, Any, AsyncGenerator, Optional, Union, cast

from opentelemetry import trace as trace_api
from opentelemetry.trace import Span

from ..hooks.events import (
    PostReasoningEvent,
    PostSummaryEvent,
    PreReasoningEvent,
    PreSummaryEvent,
    ReasoningChunkEvent,
    SummaryChunkEvent,
    notify_chunk,
)
from ..telemetry.tracer import get_tracer
from ..tools._validator import extract_tool_uses, is_tool_result_message, pending_tool_uses, validate_tool_results
from ..types._events import (
    EventLoopStopEvent,
    ForceStopEvent,
    InterruptEvent,
    ModelMessageEvent,
    ModelPartialMessageEvent,
    ModelStopReason,
    StartEventLoopEvent,
    SummaryStartEvent,
    ToolResultEvent,
    ToolResultMessageEvent,
    TypedEvent,
)
from ..types.content import Message, Messages
from ..types.event_loop import StopReason
from ..types.exceptions import ToolResultMismatchException
from ..types.interrupt import InterruptContext, InterruptSource
from ..types.tools import ToolSpec, ToolUse
from .streaming import stream_messages

if TYPE_CHECKING:
    from ..agent import Agent

logger = logging.getLogger(__name__)

SUMMARY_HINT = (
    "You have failed to generate response within the maximum iterations. "
    "Now respond directly by summarizing the current situation."
)
SUMMARY_FALLBACK = "Maximum iterations ({max_iterations}) reached. Unable to generate summary."
INTERRUPT_RESPONSE = "I noticed that you have interrupted me. What can I do for you?"


async def event_loop(agent: "Agent", invocation_state: dict[str, Any]) -> AsyncGenerator[TypedEvent, None]:
    """Run the reasoning/acting loop until it produces a final message.

    If the last assistant message in memory still has tool calls without results, they are executed first, which
    resumes an invocation that was stopped in the middle of acting.

    Args:
        agent: The agent for which the loop is executed.
        invocation_state: Per-invocation state, including:

            - request_state: State handed back to the caller with the final event
            - agent_span: Span of the invocation, parent of the cycle and summary spans

    Yields:
        Model and tool stream events. The last event is an EventLoopStopEvent containing:

            - StopReason: "end_turn" or another model stop reason, "interrupted", or "max_iterations"
            - Message: The final message of the invocation
            - InterruptContext: The interrupt snapshot when the invocation was stopped early, None otherwise
            - Any: Updated request state

    Raises:
        asyncio.CancelledError: If the invocation is cancelled. The interrupt context is recorded on the agent first.
    """
    tracer = get_tracer()
    invocation_state.setdefault("request_state", {})
    agent_span: Optional[Span] = invocation_state.get("agent_span")

    iteration = 0
    cycle_span: Optional[Span] = None
    message: Optional[Message] = None
    interrupt: Optional[InterruptContext] = None
    stop_reason: StopReason = "end_turn"

    tool_uses = pending_tool_uses(agent.messages)
    if tool_uses:
        logger.debug(
            "tool_use_ids=<%s> | resuming pending tool calls",
            [tool_use["toolUseId"] for tool_use in tool_uses],
        )

    try:
        while True:
            if tool_uses:
                stop_requested = False

                async with aclosing(
                    agent.tool_executor._execute(agent, tool_uses, invocation_state, cycle_span)
                ) as tool_events:
                    async for event in tool_events:
                        if not isinstance(event, ToolResultEvent):
                            yield event
                            continue

                        message = {"role": "user", "content": [{"toolResult": event.tool_result}]}
                        agent._append_message(message)
                        yield ToolResultMessageEvent(message)

                        if event.stop_requested:
                            stop_requested = True
                            break

                tool_uses = []
                tracer.end_event_loop_cycle_span(cycle_span, message)
                cycle_span = None

                if stop_requested:
                    logger.debug("tool_use_id=<%s> | hook stopped the agent after acting", event.tool_use_id)
                    interrupt = InterruptContext(
                        source=InterruptSource.HOOK,
                        pending_tool_uses=pending_tool_uses(agent.messages),
                    )
                    stop_reason = "interrupted"
                    break

            if agent.interrupt_requested:
                message, interrupt = _handle_user_interrupt(agent)
                stop_reason = "interrupted"
                break

            if iteration >= agent.max_iterations:
                logger.debug("max_iterations=<%d> | iteration budget exhausted, summarizing", agent.max_iterations)
                summary: Optional[ModelStopReason] = None

                async for event in _summarize(agent, iteration, invocation_state):
                    if isinstance(event, ModelStopReason):
                        summary = event
                    else:
                        yield event

                if summary is None:
                    message, interrupt = _handle_user_interrupt(agent)
                    stop_reason = "interrupted"
                    break

                stop_reason, message, _, _ = summary["stop"]
                agent._append_message(message)
                yield ModelMessageEvent(message)
                break

            iteration += 1
            yield StartEventLoopEvent(iteration)
            cycle_span = tracer.start_event_loop_cycle_span(iteration, agent.messages, parent_span=agent_span)

            pre_event = await agent.hooks.invoke_callbacks_async(
                PreReasoningEvent(
                    agent=agent,
                    model_name=agent.model.model_name,
                    generate_options=dict(agent.generate_options),
                    input_messages=_model_input(agent),
                )
            )

            model_span = tracer.start_model_invoke_span(
                pre_event.input_messages, parent_span=cycle_span, model_id=agent.model.model_name
            )
            reasoning: Optional[ModelStopReason] = None

            async for event in _stream_model(
                agent,
                pre_event.input_messages,
                agent.tool_registry.get_all_tool_specs(),
                pre_event.generate_options,
                ReasoningChunkEvent,
                model_span,
            ):
                if isinstance(event, ModelStopReason):
                    reasoning = event
                else:
                    yield event

            if reasoning is None:
                tracer.end_interrupted_span(cycle_span)
                cycle_span = None
                message, interrupt = _handle_user_interrupt(agent)
                stop_reason = "interrupted"
                break

            model_stop_reason, reasoning_message, _, _ = reasoning["stop"]

            post_event = await agent.hooks.invoke_callbacks_async(
                PostReasoningEvent(
                    agent=agent,
                    model_name=agent.model.model_name,
                    generate_options=pre_event.generate_options,
                    reasoning_message=reasoning_message,
                )
            )

            message = post_event.reasoning_message
            agent._append_message(message)
            yield ModelMessageEvent(message)

            tool_uses = extract_tool_uses(message)

            if post_event.stop_requested:
                logger.debug("iteration=<%d> | hook stopped the agent after reasoning", iteration)
                tracer.end_event_loop_cycle_span(cycle_span, message)
                cycle_span = None
                interrupt = InterruptContext(source=InterruptSource.HOOK, pending_tool_uses=tool_uses)
                stop_reason = "interrupted"
                break

            goto_messages = _accepted_goto_messages(post_event)
            if goto_messages is not None:
                logger.debug(
                    "iteration=<%d>, message_count=<%d> | going back to reasoning", iteration, len(goto_messages)
                )
                for goto_message in goto_messages:
                    agent._append_message(goto_message)
                    if is_tool_result_message(goto_message):
                        yield ToolResultMessageEvent(goto_message)

                tool_uses = []
                tracer.end_event_loop_cycle_span(cycle_span, message)
                cycle_span = None
                continue

            if tool_uses:
                continue

            tracer.end_event_loop_cycle_span(cycle_span, message)
            cycle_span = None
            stop_reason = "end_turn" if model_stop_reason == "tool_use" else model_stop_reason
            break

    except asyncio.CancelledError as e:
        agent._interrupt_context = InterruptContext(
            source=InterruptSource.SYSTEM,
            pending_tool_uses=pending_tool_uses(agent.messages),
        )
        logger.debug(
            "pending_tool_use_ids=<%s> | invocation cancelled",
            agent._interrupt_context.pending_tool_use_ids,
        )
        tracer.end_span_with_error(cycle_span, e)
        raise

    except Exception as e:
        tracer.end_span_with_error(cycle_span, e)

        yield ForceStopEvent(e)
        logger.exception("iteration=<%d> | event loop failed", iteration)
        raise

    if interrupt is not None:
        yield InterruptEvent(interrupt)

    yield EventLoopStopEvent(stop_reason, cast(Message, message), interrupt, invocation_state["request_state"])


async def _stream_model(
    agent: "Agent",
    input_messages: Messages,
    tool_specs: Optional[list[ToolSpec]],
    generate_options: dict[str, Any],
    chunk_event_type: Union[type[ReasoningChunkEvent], type[SummaryChunkEvent]],
    span: Span,
) -> AsyncGenerator[TypedEvent, None]:
    """Stream one model call, notifying chunk hooks and watching for user interrupts.

    Args:
        agent: The agent calling the model.
        input_messages: Model input, with the system prompt as leading system message.
        tool_specs: Tool specs to offer, or None for a call without tools.
        generate_options: Generation options for the call.
        chunk_event_type: Hook event used to notify each readable delta.
        span: Model invocation span, ended by this function.

    Yields:
        Model stream events, then a ModelStopReason. Nothing more is yielded if the user interrupted the agent, in
        which case the partial message is discarded.
    """
    tracer = get_tracer()
    model_name = agent.model.model_name
    span_ended = False

    with trace_api.use_span(span, end_on_exit=False):
        try:
            async with aclosing(stream_messages(agent.model, input_messages, tool_specs, generate_options)) as events:
                async for event in events:
                    if isinstance(event, ModelPartialMessageEvent):
                        await notify_chunk(
                            chunk_event_type(
                                agent=agent,
                                model_name=model_name,
                                generate_options=generate_options,
                                incremental_chunk=event.incremental,
                                accumulated=event.accumulated,
                            )
                        )
                    elif isinstance(event, ModelStopReason):
                        stop_reason, message, usage, _ = event["stop"]
                        tracer.end_model_invoke_span(span, message, usage, stop_reason)
                        span_ended = True
                        yield event
                        return
                    else:
                        yield event

                    if agent.interrupt_requested:
                        logger.debug("model=<%s> | interrupted while streaming, discarding partial message", model_name)
                        tracer.end_interrupted_span(span)
                        span_ended = True
                        return

        except BaseException as e:
            if not span_ended:
                tracer.end_span_with_error(span, e)
            raise


async def _summarize(
    agent: "Agent", iteration: int, invocation_state: dict[str, Any]
) -> AsyncGenerator[TypedEvent, None]:
    """Ask the model to summarize the situation after the iteration budget ran out.

    Args:
        agent: The agent whose budget is exhausted.
        iteration: Number of reasoning entries performed in this invocation.
        invocation_state: Per-invocation state, holding the agent span under "agent_span".

    Yields:
        Summary stream events, then a ModelStopReason carrying the summary message with stop reason
        "max_iterations". Nothing more is yielded if the user interrupted the agent.
    """
    yield SummaryStartEvent(agent.max_iterations)

    tracer = get_tracer()
    model_name = agent.model.model_name

    hint: Message = {"role": "user", "content": [{"text": SUMMARY_HINT}]}
    pre_event = await agent.hooks.invoke_callbacks_async(
        PreSummaryEvent(
            agent=agent,
            model_name=model_name,
            generate_options=dict(agent.generate_options),
            input_messages=[*_model_input(agent), hint],
            max_iterations=agent.max_iterations,
            current_iteration=iteration,
        )
    )
    generate_options = pre_event.effective_generate_options

    span = tracer.start_model_invoke_span(
        pre_event.input_messages,
        parent_span=invocation_state.get("agent_span"),
        model_id=model_name,
        operation="summarize",
    )
    summary: Optional[ModelStopReason] = None

    async for event in _stream_model(agent, pre_event.input_messages, None, generate_options, SummaryChunkEvent, span):
        if isinstance(event, ModelStopReason):
            summary = event
        else:
            yield event

    if summary is None:
        return

    _, message, usage, metrics = summary["stop"]
    if not _has_text(message):
        logger.warning("max_iterations=<%d> | model returned an empty summary", agent.max_iterations)
        message = {
            "role": "assistant",
            "content": [{"text": SUMMARY_FALLBACK.format(max_iterations=agent.max_iterations)}],
        }

    post_event = await agent.hooks.invoke_callbacks_async(
        PostSummaryEvent(
            agent=agent,
            model_name=model_name,
            generate_options=generate_options,
            summary_message=message,
        )
    )

    if post_event.stop_requested:
        logger.debug("max_iterations=<%d> | hook stopped the agent after the summary", agent.max_iterations)

    yield ModelStopReason("max_iterations", post_event.summary_message, usage, metrics)


def _model_input(agent: "Agent") -> Messages:
    """Build the model input: the system prompt as a system message, followed by the conversation."""
    messages: Messages = []
    if agent.system_prompt:
        messages.append({"role": "system", "content": [{"text": agent.system_prompt}]})

    messages.extend(agent.messages)
    return messages


def _accepted_goto_messages(event: PostReasoningEvent) -> Optional[Messages]:
    """Return the goto reasoning messages if they still answer the final reasoning message.

    A later hook may have rewritten the reasoning message after the request was recorded, so the request is checked
    again against the message that is actually stored.
    """
    messages = event.goto_reasoning_messages
    if messages is None:
        return None

    try:
        validate_tool_results(event.reasoning_message, messages)
    except ToolResultMismatchException as e:
        logger.warning("error=<%s> | goto reasoning request no longer matches the reasoning message, ignoring", e)
        return None

    return messages


def _handle_user_interrupt(agent: "Agent") -> tuple[Message, InterruptContext]:
    """Build the result of an invocation the user interrupted.

    The response is not stored in memory so that pending tool calls stay resumable.
    """
    pending: list[ToolUse] = pending_tool_uses(agent.messages)
    logger.debug("pending_tool_use_ids=<%s> | agent interrupted by user", [t["toolUseId"] for t in pending])

    interrupt = InterruptContext(
        source=InterruptSource.USER,
        user_message=agent._interrupt_message,
        pending_tool_uses=pending,
    )
    message: Message = {"role": "assistant", "content": [{"text": INTERRUPT_RESPONSE}]}
    return message, interrupt


def _has_text(message: Message) -> bool:
    return any(content.get("text", "").strip() for content in message.get("content", []))
