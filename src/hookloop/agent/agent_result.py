"""Agent result handling.

This module defines the AgentResult class which encapsulates the complete response from an agent's processing cycle.
"""

from dataclasses import dataclass
from typing import Any, Optional

from ..types.content import Message
from ..types.event_loop import StopReason
from ..types.interrupt import InterruptContext


@dataclass
class AgentResult:
    """Represents the last result of invoking an agent with a prompt.

    Attributes:
        stop_reason: The reason why the agent's processing stopped.
        message: The last message generated by the agent.
        interrupt: The interrupt snapshot when the invocation was stopped early, None otherwise.
        state: Request state handed back by the event loop.
    """

    stop_reason: StopReason
    message: Message
    interrupt: Optional[InterruptContext] = None
    state: Any = None

    @property
    def interrupted(self) -> bool:
        """Whether the invocation was stopped before producing a final answer."""
        return self.interrupt is not None

    def __str__(self) -> str:
        """Get the agent's last message as a string.

        This method extracts and concatenates all text content from the final message, ignoring any non-text content
        like tool uses or reasoning blocks.

        Returns:
            The agent's last message as a string.
        """
        content_array = self.message.get("content", [])

        result = ""
        for item in content_array:
            if isinstance(item, dict) and "text" in item:
                result += item.get("text", "") + "\n"

        return result
