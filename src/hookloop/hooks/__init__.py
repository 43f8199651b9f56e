"""Typed hook system for observing and steering the agent loop.

Hooks are callbacks registered for a hook event class with a priority. The agent dispatches one event per phase
boundary through every matching callback, lowest priority first, and applies whatever the chain wrote to the event's
writable fields.

Example Usage:
    ```python
    from hookloop.hooks import HookProvider, HookRegistry, PostActingEvent, PreReasoningEvent

    class ApprovalHooks(HookProvider):
        def register_hooks(self, registry: HookRegistry) -> None:
            registry.add_callback(PreReasoningEvent, self.add_hint, priority=50)
            registry.add_callback(PostActingEvent, self.pause_after_payment)

        def add_hint(self, event: PreReasoningEvent) -> None:
            event.input_messages = [*event.input_messages, {"role": "system", "content": [{"text": "Be brief."}]}]

        def pause_after_payment(self, event: PostActingEvent) -> None:
            if event.tool_use["name"] == "pay":
                event.stop_agent()

    agent = Agent(model=my_model, hooks=[ApprovalHooks()])
    ```
"""

from .events import (
    ActingChunkEvent,
    ErrorEvent,
    PostActingEvent,
    PostCallEvent,
    PostReasoningEvent,
    PostSummaryEvent,
    PreActingEvent,
    PreCallEvent,
    PreReasoningEvent,
    PreSummaryEvent,
    ReasoningChunkEvent,
    SummaryChunkEvent,
)
from .registry import DEFAULT_PRIORITY, HookCallback, HookEvent, HookEventType, HookProvider, HookRegistry

__all__ = [
    "ActingChunkEvent",
    "DEFAULT_PRIORITY",
    "ErrorEvent",
    "HookCallback",
    "HookEvent",
    "HookEventType",
    "HookProvider",
    "HookRegistry",
    "PostActingEvent",
    "PostCallEvent",
    "PostReasoningEvent",
    "PostSummaryEvent",
    "PreActingEvent",
    "PreCallEvent",
    "PreReasoningEvent",
    "PreSummaryEvent",
    "ReasoningChunkEvent",
    "SummaryChunkEvent",
]
