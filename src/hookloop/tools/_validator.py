"""Consistency checks between tool calls and tool results.

A reasoning message may request several tool calls. Before the loop may re-enter reasoning without acting, and before
tool results supplied by the caller are accepted, every pending call must be answered by exactly one result.
"""

import logging
from collections import Counter
from typing import Iterable, Optional

from ..types.content import Message, Messages
from ..types.exceptions import ToolResultMismatchException
from ..types.tools import ToolResult, ToolUse

logger = logging.getLogger(__name__)


def extract_tool_uses(message: Optional[Message]) -> list[ToolUse]:
    """Return the tool calls of a message in content order.

    Args:
        message: The message to inspect.

    Returns:
        The toolUse blocks of the message.
    """
    if not message:
        return []

    return [content["toolUse"] for content in message.get("content", []) if "toolUse" in content]


def extract_tool_results(messages: Iterable[Message]) -> list[ToolResult]:
    """Return all tool results contained in the given messages, in order."""
    return [
        content["toolResult"]
        for message in messages
        for content in message.get("content", [])
        if "toolResult" in content
    ]


def is_tool_result_message(message: Message) -> bool:
    """Check whether a message consists only of tool results."""
    content = message.get("content", [])
    return bool(content) and all("toolResult" in block for block in content)


def pending_tool_uses(messages: Messages) -> list[ToolUse]:
    """Find the tool calls of the latest assistant message that have no result yet.

    Args:
        messages: Conversation history, oldest first.

    Returns:
        The unanswered tool calls, in the order the model requested them.
    """
    for index in range(len(messages) - 1, -1, -1):
        if messages[index]["role"] != "assistant":
            continue

        answered = {result["toolUseId"] for result in extract_tool_results(messages[index + 1 :])}
        return [tool_use for tool_use in extract_tool_uses(messages[index]) if tool_use["toolUseId"] not in answered]

    return []


def check_tool_results(tool_uses: list[ToolUse], tool_results: list[ToolResult], require_all: bool = True) -> None:
    """Match tool results against tool calls.

    Args:
        tool_uses: The pending tool calls.
        tool_results: The tool results to check.
        require_all: Whether every tool call must be answered.

    Raises:
        ToolResultMismatchException: If a result references an unknown id, answers a call twice, or (when
            require_all is set) a call is left without a result.
    """
    pending_ids = [tool_use["toolUseId"] for tool_use in tool_uses]
    counts = Counter(result["toolUseId"] for result in tool_results)

    unexpected_ids = [tool_use_id for tool_use_id in counts if tool_use_id not in pending_ids]
    duplicate_ids = [tool_use_id for tool_use_id, count in counts.items() if count > 1 and tool_use_id in pending_ids]
    missing_ids = [tool_use_id for tool_use_id in pending_ids if tool_use_id not in counts] if require_all else []

    if unexpected_ids or duplicate_ids or missing_ids:
        raise ToolResultMismatchException(
            f"tool results do not match pending tool calls {pending_ids}: "
            f"missing={missing_ids}, unexpected={unexpected_ids}, duplicate={duplicate_ids}",
            missing_ids=missing_ids,
            unexpected_ids=unexpected_ids,
            duplicate_ids=duplicate_ids,
        )


def validate_tool_results(reasoning_message: Message, messages: Messages) -> None:
    """Validate messages injected before re-entering reasoning.

    When the reasoning message has no tool calls, any list of messages is accepted. Otherwise the messages must
    contain exactly one tool result for every tool call of the reasoning message and no result for any other id.
    Messages without tool results, such as hints, may accompany them.

    Args:
        reasoning_message: The reasoning result whose tool calls are pending.
        messages: The messages to inject.

    Raises:
        ToolResultMismatchException: If the messages do not answer the pending tool calls exactly once.
    """
    tool_uses = extract_tool_uses(reasoning_message)
    if not tool_uses:
        return

    check_tool_results(tool_uses, extract_tool_results(messages))
