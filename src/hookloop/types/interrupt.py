"""Interrupt context for stopped invocations.

When a hook stops the agent, the user interrupts it, or the invocation is cancelled, the agent records an
InterruptContext describing who stopped it, when, and which tool calls were still waiting to run. Resuming the agent
consumes the context.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .content import Message
from .tools import ToolUse


class InterruptSource(str, Enum):
    """Origin of an interruption."""

    USER = "user"
    """The caller invoked Agent.interrupt()."""

    HOOK = "hook"
    """A PostReasoning or PostActing hook requested a stop."""

    SYSTEM = "system"
    """The invocation was cancelled."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class InterruptContext:
    """Immutable snapshot of an interruption.

    Attributes:
        source: Who triggered the interruption.
        timestamp: When the interruption was recorded.
        user_message: Optional message supplied together with a user interruption.
        pending_tool_uses: Tool calls that had not been executed when the interruption happened.
    """

    source: InterruptSource = InterruptSource.USER
    timestamp: datetime = field(default_factory=_utc_now)
    user_message: Optional[Message] = None
    pending_tool_uses: tuple[ToolUse, ...] = ()

    def __post_init__(self) -> None:
        """Store the pending tool calls as an immutable copy."""
        object.__setattr__(self, "pending_tool_uses", tuple(self.pending_tool_uses or ()))

    @property
    def pending_tool_use_ids(self) -> list[str]:
        """Ids of the tool calls still pending."""
        return [tool_use["toolUseId"] for tool_use in self.pending_tool_uses]

    def to_dict(self) -> dict[str, Any]:
        """Serialize the context for callback handlers and tracing.

        Returns:
            A JSON serializable dictionary.
        """
        return {
            "source": self.source.value,
            "timestamp": self.timestamp.isoformat(),
            "user_message": self.user_message,
            "pending_tool_uses": list(self.pending_tool_uses),
        }
