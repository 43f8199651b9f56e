"""Types describing how a model response or an invocation ended."""

from typing import Literal

from typing_extensions import Required, TypedDict


class Usage(TypedDict, total=False):
    """Token counts of one model call.

    Attributes:
        inputTokens: Tokens in the request.
        outputTokens: Tokens in the response.
        totalTokens: Sum of both.
    """

    inputTokens: Required[int]
    outputTokens: Required[int]
    totalTokens: Required[int]


class Metrics(TypedDict):
    """Timing of one model call, latencyMs being the request latency in milliseconds."""

    latencyMs: int


StopReason = Literal[
    "content_filtered",
    "end_turn",
    "guardrail_intervened",
    "interrupted",
    "max_iterations",
    "max_tokens",
    "stop_sequence",
    "tool_use",
]
"""Why a model response or an invocation ended.

The model reports all of these but two, which only the agent produces:

- "interrupted": a hook, the user or a cancellation ended the invocation early
- "max_iterations": the iteration budget was spent and the final message is a summary
"""
