"""Tool types.

Tool calls and results use the same field names as the Bedrock Converse API, so model providers built on it can pass
them through unchanged.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, AsyncGenerator, Literal

from typing_extensions import TypedDict

if TYPE_CHECKING:
    from ..agent import Agent

JSONSchema = dict
"""A JSON Schema document."""


class ToolSpec(TypedDict):
    """What the model is told about a tool.

    Attributes:
        description: When and how to use the tool.
        inputSchema: Schema of the tool input, wrapped as {"json": schema}.
        name: Name the model calls the tool by, unique per agent.
    """

    description: str
    inputSchema: JSONSchema
    name: str


class ToolUse(TypedDict):
    """A tool call written by the model.

    Attributes:
        input: Arguments of the call, any JSON value.
        name: The tool to run.
        toolUseId: Identifier that the matching ToolResult repeats.
    """

    input: Any
    name: str
    toolUseId: str


class ToolResultContent(TypedDict, total=False):
    """One block of tool output, either text or a JSON value."""

    json: Any
    text: str


ToolResultStatus = Literal["success", "error"]


class ToolResult(TypedDict):
    """Output of a tool call, sent back to the model.

    Attributes:
        content: Output blocks.
        status: "error" when the tool failed or could not run.
        toolUseId: Identifier of the ToolUse being answered.
    """

    content: list[ToolResultContent]
    status: ToolResultStatus
    toolUseId: str


@dataclass
class ToolContext:
    """Handed to decorated tools that ask for it with `@tool(context=True)`.

    Attributes:
        tool_use: The call being executed.
        agent: The agent executing it.
        invocation_state: State shared across the current invocation.
    """

    tool_use: ToolUse
    agent: "Agent"
    invocation_state: dict[str, Any]


ToolGenerator = AsyncGenerator[Any, None]
"""What `AgentTool.stream` returns: intermediate items, then the ToolResult."""


class AgentTool(ABC):
    """A tool the agent can run.

    `stream` yields any number of intermediate items, each reported to hooks as an acting chunk, and ends with the
    ToolResult.
    """

    @property
    @abstractmethod
    # pragma: no cover
    def tool_name(self) -> str:
        """Name the model calls the tool by."""
        pass

    @property
    @abstractmethod
    # pragma: no cover
    def tool_spec(self) -> ToolSpec:
        """Specification sent to the model."""
        pass

    @property
    @abstractmethod
    # pragma: no cover
    def tool_type(self) -> str:
        """Kind of implementation, such as "function"."""
        pass

    @abstractmethod
    # pragma: no cover
    def stream(self, tool_use: ToolUse, invocation_state: dict[str, Any], **kwargs: Any) -> ToolGenerator:
        """Run the tool for one call.

        Args:
            tool_use: The call written by the model.
            invocation_state: State shared across the current invocation, with the agent under "agent".
            **kwargs: Reserved.

        Yields:
            Intermediate items, then the ToolResult.
        """
        ...
