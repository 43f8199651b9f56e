"""Callback handlers that consume the events streamed by `Agent.stream_async`."""

from collections.abc import Callable
from typing import Any, Optional


class PrintingCallbackHandler:
    """Print the progress of an invocation to stdout.

    Model text is streamed as it arrives. Tool calls, the start of a summary, early stops and forced stops are each
    announced on their own line.
    """

    def __init__(self, show_reasoning: bool = True, show_iterations: bool = False) -> None:
        """Initialize handler.

        Args:
            show_reasoning: Whether to print streamed reasoning text.
            show_iterations: Whether to announce every reasoning step.
        """
        self.show_reasoning = show_reasoning
        self.show_iterations = show_iterations
        self.tool_count = 0
        self.previous_tool_use_id: Optional[str] = None

    def __call__(self, **kwargs: Any) -> None:
        """Print the parts of an event that are meant for a human reader.

        Args:
            **kwargs: Callback event data including:
                - start_event_loop (bool) and iteration (int): A reasoning step begins.
                - start_summary (bool) and max_iterations (int): The iteration budget is spent.
                - reasoningText (str): Streamed reasoning text.
                - data (str): Streamed answer text.
                - current_tool_use (dict): The tool call the model is currently requesting.
                - interrupt (InterruptContext): Set when the invocation stopped early.
                - force_stop (bool) and force_stop_reason (str): Set when the invocation failed.
        """
        if kwargs.get("start_event_loop") and self.show_iterations:
            print(f"\n[step {kwargs.get('iteration')}]")

        if kwargs.get("start_summary"):
            print(f"\n[iteration budget of {kwargs.get('max_iterations')} spent, summarizing]")

        reasoning_text = kwargs.get("reasoningText")
        if reasoning_text and self.show_reasoning:
            print(reasoning_text, end="")

        data = kwargs.get("data")
        if data:
            print(data, end="")

        self._print_tool_use(kwargs.get("current_tool_use"))

        interrupt = kwargs.get("interrupt")
        if interrupt is not None:
            pending = len(interrupt.pending_tool_uses)
            print(f"\nInterrupted by {interrupt.source.value} with {pending} pending tool call(s)")

        if kwargs.get("force_stop"):
            print(f"\nStopped: {kwargs.get('force_stop_reason')}")

    def _print_tool_use(self, current_tool_use: Optional[dict[str, Any]]) -> None:
        # Input deltas of one call arrive as many events; announce the call once
        if not current_tool_use or not current_tool_use.get("name"):
            return

        tool_use_id = current_tool_use.get("toolUseId")
        if tool_use_id == self.previous_tool_use_id:
            return

        self.previous_tool_use_id = tool_use_id
        self.tool_count += 1
        print(f"\nTool #{self.tool_count}: {current_tool_use['name']}")


class CompositeCallbackHandler:
    """Fan every event out to several callback handlers, in the given order."""

    def __init__(self, *handlers: Callable[..., Any]) -> None:
        """Initialize handler.

        Args:
            *handlers: The callback handlers to invoke.
        """
        self.handlers = handlers

    def __call__(self, **kwargs: Any) -> None:
        """Invoke all handlers in the chain."""
        for handler in self.handlers:
            handler(**kwargs)


def null_callback_handler(**_kwargs: Any) -> None:
    """Callback handler that discards all output.

    Args:
        **_kwargs: Event data (ignored).
    """
    return None
