"""Exception-related type definitions."""

from typing import Any, Optional

from .tools import ToolUse


class EventLoopException(Exception):
    """Exception raised by the event loop."""

    def __init__(self, original_exception: Exception, request_state: Any = None) -> None:
        """Initialize exception.

        Args:
            original_exception: The original exception that was raised.
            request_state: The state of the request at the time of the exception.
        """
        self.original_exception = original_exception
        self.request_state = request_state if request_state is not None else {}
        super().__init__(str(original_exception))


class ToolResultMismatchException(ValueError):
    """Raised when supplied tool results do not line up with the pending tool calls.

    Every pending tool call must be answered by exactly one tool result carrying its toolUseId, and no tool result may
    reference an id that is not pending.
    """

    def __init__(
        self,
        message: str,
        missing_ids: Optional[list[str]] = None,
        unexpected_ids: Optional[list[str]] = None,
        duplicate_ids: Optional[list[str]] = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Description of the mismatch.
            missing_ids: Pending tool use ids without a result.
            unexpected_ids: Result ids that do not belong to any pending tool use.
            duplicate_ids: Pending tool use ids answered more than once.
        """
        self.missing_ids = missing_ids or []
        self.unexpected_ids = unexpected_ids or []
        self.duplicate_ids = duplicate_ids or []
        super().__init__(message)


class PendingToolUseException(Exception):
    """Raised when new input arrives while the conversation still has unanswered tool calls.

    Resume the agent without input, or provide tool result messages for the pending calls.
    """

    def __init__(self, pending_tool_uses: list[ToolUse]) -> None:
        """Initialize exception.

        Args:
            pending_tool_uses: The tool calls still waiting for results.
        """
        self.pending_tool_uses = pending_tool_uses
        tool_use_ids = [tool_use["toolUseId"] for tool_use in pending_tool_uses]
        super().__init__(
            f"Cannot add new input while there are pending tool calls: {tool_use_ids}. "
            "Resume without input or provide tool results."
        )


class AgentRunningException(Exception):
    """Raised when an agent is invoked while a previous invocation on it is still running."""

    pass
