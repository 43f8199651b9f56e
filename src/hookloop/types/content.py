"""Content-related type definitions.

These types are modeled after the Bedrock Converse API message shapes, which the engine uses as its provider-neutral
message representation.
"""

from typing import Literal

from typing_extensions import TypedDict

from .tools import ToolResult, ToolUse


class ReasoningTextBlock(TypedDict, total=False):
    """Contains the reasoning that the model used to return the output.

    Attributes:
        signature: A token that verifies that the reasoning text was generated by the model.
        text: The reasoning that the model used to return the output.
    """

    signature: str
    text: str


class ReasoningContentBlock(TypedDict, total=False):
    """Contains content regarding the reasoning that is carried out by the model.

    Attributes:
        reasoningText: The reasoning that the model used to return the output.
    """

    reasoningText: ReasoningTextBlock


class ContentBlock(TypedDict, total=False):
    """A block of content for a message.

    Attributes:
        reasoningContent: Contains content regarding the reasoning that is carried out by the model.
        text: Text to include in the message.
        toolResult: The result for a tool request that a model makes.
        toolUse: Information about a tool use request from a model.
    """

    reasoningContent: ReasoningContentBlock
    text: str
    toolResult: ToolResult
    toolUse: ToolUse


Role = Literal["user", "assistant", "system"]
"""Role of a message sender.

- "user": Messages from the user or tool results fed back to the model.
- "assistant": Messages from the model.
- "system": Instructions for the model; folded into the system prompt before the model is called.
"""


class Message(TypedDict):
    """A message in a conversation with the agent.

    Attributes:
        content: The message content.
        role: The role of the message sender.
    """

    content: list[ContentBlock]
    role: Role


Messages = list[Message]
"""A list of messages representing a conversation."""
