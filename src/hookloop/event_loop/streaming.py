"""Assembly of a model response from its chunks.

A response arrives as messageStart, then for every content block a start, any number of deltas and a stop, then
messageStop and a metadata chunk with token usage. The handlers below fold these chunks into a state dict:

- "message": the response being built, its "content" list is also reachable as state["content"]
- "text", "reasoningText", "signature": the text or reasoning block in progress
- "current_tool_use": the tool call in progress, with its JSON input still a string
"""

import copy
import json
import logging
from typing import Any, AsyncGenerator, AsyncIterable, Optional

from ..models.model import Model
from ..types._events import (
    ModelPartialMessageEvent,
    ModelStopReason,
    ModelStreamChunkEvent,
    ModelStreamEvent,
    ReasoningSignatureStreamEvent,
    ReasoningTextStreamEvent,
    TextStreamEvent,
    ToolUseStreamEvent,
    TypedEvent,
)
from ..types.content import ContentBlock, Message, Messages
from ..types.streaming import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    MessageStartEvent,
    MessageStopEvent,
    MetadataEvent,
    Metrics,
    StopReason,
    StreamEvent,
    Usage,
)
from ..types.tools import ToolSpec, ToolUse

logger = logging.getLogger(__name__)


def handle_message_start(event: MessageStartEvent, message: Message) -> Message:
    """Record the role the model answers with."""
    message["role"] = event["role"]
    return message


def handle_content_block_start(event: ContentBlockStartEvent) -> dict[str, Any]:
    """Open a content block.

    Args:
        event: The block start chunk.

    Returns:
        The tool call being opened with an empty input string, or an empty dict for text and reasoning blocks.
    """
    tool_use = event["start"].get("toolUse")
    if not tool_use:
        return {}

    return {"toolUseId": tool_use["toolUseId"], "name": tool_use["name"], "input": ""}


def handle_content_block_delta(
    event: ContentBlockDeltaEvent, state: dict[str, Any]
) -> tuple[dict[str, Any], ModelStreamEvent, Optional[ContentBlock]]:
    """Add a delta to the block in progress.

    Args:
        event: The delta chunk.
        state: Assembly state, updated in place.

    Returns:
        The state, the event to show the caller, and the readable content of the delta. Only text and reasoning text
        are readable; tool input fragments and signatures give None.
    """
    delta = event["delta"]

    if "toolUse" in delta:
        tool_use = state["current_tool_use"]
        tool_use["input"] = tool_use.get("input", "") + delta["toolUse"]["input"]
        return state, ToolUseStreamEvent(delta, tool_use), None

    if "text" in delta:
        state["text"] += delta["text"]
        return state, TextStreamEvent(text=delta["text"], delta=delta), {"text": delta["text"]}

    reasoning = delta.get("reasoningContent", {})
    if reasoning.get("text"):
        state["reasoningText"] += reasoning["text"]
        readable: ContentBlock = {"reasoningContent": {"reasoningText": {"text": reasoning["text"]}}}
        return state, ReasoningTextStreamEvent(reasoning_text=reasoning["text"], delta=delta), readable

    if reasoning.get("signature"):
        state["signature"] += reasoning["signature"]
        return state, ReasoningSignatureStreamEvent(reasoning_signature=reasoning["signature"], delta=delta), None

    return state, ModelStreamEvent({}), None


def handle_content_block_stop(state: dict[str, Any]) -> dict[str, Any]:
    """Close the block in progress and append it to the message content.

    Tool input that is not valid JSON becomes an empty dict.

    Args:
        state: Assembly state, updated in place.

    Returns:
        The state.
    """
    content: list[ContentBlock] = state["content"]
    pending_tool_use = state["current_tool_use"]

    if pending_tool_use:
        try:
            tool_input = json.loads(pending_tool_use.get("input") or "")
        except ValueError:
            tool_input = {}

        tool_use = ToolUse(toolUseId=pending_tool_use["toolUseId"], name=pending_tool_use["name"], input=tool_input)
        content.append({"toolUse": tool_use})
        state["current_tool_use"] = {}

    elif state["text"]:
        content.append({"text": state["text"]})
        state["text"] = ""

    elif state["reasoningText"]:
        block: ContentBlock = {"reasoningContent": {"reasoningText": {"text": state["reasoningText"]}}}
        if state["signature"]:
            block["reasoningContent"]["reasoningText"]["signature"] = state["signature"]

        content.append(block)
        state["reasoningText"] = ""
        state["signature"] = ""

    return state


def handle_message_stop(event: MessageStopEvent) -> StopReason:
    """Read why the model ended the response."""
    return event["stopReason"]


def extract_usage_metrics(event: MetadataEvent) -> tuple[Usage, Metrics]:
    """Read token usage and latency from the metadata chunk."""
    return Usage(**event["usage"]), Metrics(**event["metrics"])


def accumulated_message(state: dict[str, Any]) -> Message:
    """Copy of the response so far, with the text or reasoning block in progress appended."""
    content: list[ContentBlock] = copy.deepcopy(state["content"])

    if state["text"]:
        content.append({"text": state["text"]})
    elif state["reasoningText"]:
        content.append({"reasoningContent": {"reasoningText": {"text": state["reasoningText"]}}})

    return {"role": state["message"]["role"], "content": content}


async def process_stream(chunks: AsyncIterable[StreamEvent]) -> AsyncGenerator[TypedEvent, None]:
    """Assemble a response from the model's chunks.

    Args:
        chunks: The raw chunks.

    Yields:
        Every raw chunk, the decoded event of every delta followed by a ModelPartialMessageEvent when the delta was
        readable, and finally a ModelStopReason with the assembled message.
    """
    message: Message = {"role": "assistant", "content": []}
    state: dict[str, Any] = {
        "message": message,
        "content": message["content"],
        "text": "",
        "current_tool_use": {},
        "reasoningText": "",
        "signature": "",
    }
    stop_reason: StopReason = "end_turn"
    usage = Usage(inputTokens=0, outputTokens=0, totalTokens=0)
    metrics = Metrics(latencyMs=0)

    async for chunk in chunks:
        yield ModelStreamChunkEvent(chunk=chunk)

        if "messageStart" in chunk:
            handle_message_start(chunk["messageStart"], state["message"])
        elif "contentBlockStart" in chunk:
            state["current_tool_use"] = handle_content_block_start(chunk["contentBlockStart"])
        elif "contentBlockDelta" in chunk:
            state, delta_event, readable = handle_content_block_delta(chunk["contentBlockDelta"], state)
            yield delta_event

            if readable is not None:
                incremental: Message = {"role": state["message"]["role"], "content": [readable]}
                yield ModelPartialMessageEvent(incremental=incremental, accumulated=accumulated_message(state))
        elif "contentBlockStop" in chunk:
            state = handle_content_block_stop(state)
        elif "messageStop" in chunk:
            stop_reason = handle_message_stop(chunk["messageStop"])
        elif "metadata" in chunk:
            usage, metrics = extract_usage_metrics(chunk["metadata"])

    yield ModelStopReason(stop_reason=stop_reason, message=state["message"], usage=usage, metrics=metrics)


def split_system_messages(messages: Messages) -> tuple[Optional[str], Messages]:
    """Fold system messages into a system prompt.

    Hooks see the system prompt as a system message in the input list; providers receive it separately.

    Args:
        messages: Model input, possibly containing system messages.

    Returns:
        The joined text of all system messages (None if there are none) and the remaining messages.
    """
    system_texts = [
        content["text"]
        for message in messages
        if message["role"] == "system"
        for content in message["content"]
        if "text" in content
    ]
    conversation = [message for message in messages if message["role"] != "system"]

    return ("\n\n".join(system_texts) if system_texts else None), conversation


async def stream_messages(
    model: Model,
    messages: Messages,
    tool_specs: Optional[list[ToolSpec]],
    generate_options: dict[str, Any],
) -> AsyncGenerator[TypedEvent, None]:
    """Call the model and assemble its response.

    Args:
        model: The model to call.
        messages: Model input, system messages included.
        tool_specs: Tools the model may call, or None for a call without tools.
        generate_options: Provider options such as temperature.

    Yields:
        The events of `process_stream`.
    """
    logger.debug("model=<%s>, messages=<%d> | calling model", model, len(messages))

    system_prompt, conversation = split_system_messages(messages)
    chunks = model.stream(conversation, tool_specs if tool_specs else None, system_prompt, **generate_options)

    try:
        async for event in process_stream(chunks):
            yield event
    finally:
        # Release the provider request when the consumer stops early
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
