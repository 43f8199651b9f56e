"""Hook registry for managing event callbacks.

This module provides the core infrastructure for the typed hook system. The registry keeps every registered callback
in a single list ordered by (priority, registration sequence) and threads one event through the matching callbacks
for each phase occurrence.

Two delivery modes exist:

- `invoke_callbacks_async` dispatches a mutable event through the chain. Each callback sees the event produced by the
  previous one, and the first failure aborts the chain.
- `notify_callbacks_async` broadcasts a read-only notification. Failures are logged and collected but never stop the
  remaining callbacks.
"""

import bisect
import inspect
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, ClassVar, Generator, Generic, Optional, Protocol, Type, TypeVar, Union

if TYPE_CHECKING:
    from ..agent import Agent

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 100
"""Priority assigned to callbacks registered without one. Lower values run earlier."""


class HookEventType(str, Enum):
    """Phase boundary tags, one per hook event class."""

    PRE_CALL = "pre_call"
    POST_CALL = "post_call"
    PRE_REASONING = "pre_reasoning"
    REASONING_CHUNK = "reasoning_chunk"
    POST_REASONING = "post_reasoning"
    PRE_ACTING = "pre_acting"
    ACTING_CHUNK = "acting_chunk"
    POST_ACTING = "post_acting"
    PRE_SUMMARY = "pre_summary"
    SUMMARY_CHUNK = "summary_chunk"
    POST_SUMMARY = "post_summary"
    ERROR = "error"


@dataclass
class HookEvent:
    """Common base of the events passed to hook callbacks.

    Every field is read-only once the event exists, except those a subclass opens up in `_can_write`. Fields named in
    `_non_nullable` must be set at construction and can not be cleared later.

    Attributes:
        agent: The agent running the phase.
        timestamp: Creation time in seconds since the epoch.
    """

    kind: ClassVar[Optional[HookEventType]] = None
    _non_nullable: ClassVar[frozenset[str]] = frozenset()

    agent: "Agent"
    timestamp: float = field(default_factory=time.time, init=False)

    def _can_write(self, name: str) -> bool:
        """Whether hooks may assign the field."""
        return False

    def __post_init__(self) -> None:
        """Check the required fields, then freeze the event."""
        if self.agent is None:
            raise ValueError(f"{type(self).__name__} requires an agent")

        for name in self._non_nullable:
            if getattr(self, name) is None:
                raise ValueError(f"{type(self).__name__}.{name} must not be None")

        # set last, dataclass __init__ assigns through __setattr__
        super().__setattr__("_frozen", True)

    def __setattr__(self, name: str, value: Any) -> None:
        """Assign a field that the event type leaves writable.

        Raises:
            AttributeError: If the field is read-only.
            ValueError: If None is assigned to a field that must keep a value.
        """
        if not hasattr(self, "_frozen"):
            return super().__setattr__(name, value)

        if not self._can_write(name):
            raise AttributeError(f"Property {name} is not writable")

        if value is None and name in self._non_nullable:
            raise ValueError(f"{type(self).__name__}.{name} must not be None")

        super().__setattr__(name, value)


TEvent = TypeVar("TEvent", bound=HookEvent, contravariant=True)
"""Event type a callback accepts; contravariant so a callback for a base class fits any subclass."""

TInvokeEvent = TypeVar("TInvokeEvent", bound=HookEvent)
"""Event type of a dispatch, which is also the type returned."""


class HookProvider(Protocol):
    """Something that registers a coherent set of hook callbacks, such as a guardrail or an audit log.

    Example:
        ```python
        class AuditHooks(HookProvider):
            def register_hooks(self, registry: HookRegistry) -> None:
                registry.add_callback(PreCallEvent, self.on_call_start)
                registry.add_callback(PostActingEvent, self.on_tool_done, priority=10)

        agent = Agent(model=my_model, hooks=[AuditHooks()])
        ```
    """

    def register_hooks(self, registry: "HookRegistry", **kwargs: Any) -> None:
        """Add the provider's callbacks to the registry."""
        ...


class HookCallback(Protocol, Generic[TEvent]):
    """A function or coroutine function receiving one hook event.

    It may change the writable fields of the event in place, and may return None or a replacement event of the same
    type. Exceptions it raises reach the caller of `invoke_callbacks_async`.

    Example:
        ```python
        def add_hint(event: PreReasoningEvent) -> None:
            event.input_messages = [*event.input_messages, {"role": "system", "content": [{"text": "Be brief."}]}]
        ```
    """

    def __call__(self, event: TEvent) -> Union[Optional[TEvent], Awaitable[Optional[TEvent]]]:
        """Handle the event."""
        ...


@dataclass(frozen=True)
class _RegisteredCallback:
    event_type: Type[HookEvent]
    callback: HookCallback
    priority: int
    sequence: int

    @property
    def sort_key(self) -> tuple[int, int]:
        return self.priority, self.sequence


class HookRegistry:
    """Ordered collection of hook callbacks, shared by all invocations of an agent.

    Callbacks are kept in one tuple sorted by (priority, registration sequence), which is a stable total order:
    identical registrations always produce identical dispatch order. Registration replaces the tuple under a lock
    (copy-on-write), so a dispatch that already started keeps iterating the snapshot it took.
    """

    def __init__(self) -> None:
        """Create a registry without callbacks."""
        self._lock = threading.Lock()
        self._sequence = itertools.count()
        self._registered_callbacks: tuple[_RegisteredCallback, ...] = ()

    def add_callback(
        self, event_type: Type[TEvent], callback: HookCallback[TEvent], priority: int = DEFAULT_PRIORITY
    ) -> None:
        """Subscribe a callback to one event class and its subclasses.

        Subscribing to `HookEvent` itself receives every event.

        Args:
            event_type: Event class to receive.
            callback: Function or coroutine function called with the event.
            priority: Position of the callback in the chain; lower runs earlier. Callbacks with equal priority run in
                registration order.

        Example:
            ```python
            def log_start(event: PreCallEvent) -> None:
                logger.info("messages=<%d> | invocation started", len(event.input_messages))

            registry.add_callback(PreCallEvent, log_start, priority=50)
            ```
        """
        with self._lock:
            entry = _RegisteredCallback(event_type, callback, priority, next(self._sequence))
            callbacks = list(self._registered_callbacks)
            bisect.insort(callbacks, entry, key=lambda registered: registered.sort_key)
            self._registered_callbacks = tuple(callbacks)

        logger.debug(
            "event_type=<%s>, priority=<%d> | registered hook callback",
            getattr(event_type, "__name__", event_type),
            priority,
        )

    def add_hook(self, hook: HookProvider) -> None:
        """Let a provider register its callbacks."""
        hook.register_hooks(self)

    async def invoke_callbacks_async(self, event: TInvokeEvent) -> TInvokeEvent:
        """Dispatch an event through all matching callbacks, one after another.

        Each callback receives the event produced by the previous one. Awaitable results are awaited before the next
        callback runs. A callback returning an event replaces the event for the rest of the chain. Any exception raised
        by a callback aborts the chain and propagates to the caller.

        Args:
            event: The event to dispatch.

        Returns:
            The event produced by the last callback.

        Raises:
            TypeError: If a callback returns something other than None or an event of the dispatched type.
        """
        event_type = type(event)

        for callback in list(self.get_callbacks_for(event)):
            result = callback(event)
            if inspect.isawaitable(result):
                result = await result

            if result is None:
                continue

            if not isinstance(result, event_type):
                raise TypeError(
                    f"hook callback {callback!r} returned {type(result).__name__}, expected {event_type.__name__}"
                )

            event = result

        return event

    async def notify_callbacks_async(self, event: HookEvent) -> list[Exception]:
        """Broadcast a read-only event to all matching callbacks.

        Every callback receives the same event and runs even when an earlier one failed. Return values are ignored.

        Args:
            event: The notification event.

        Returns:
            The exceptions raised by failing callbacks, in dispatch order.
        """
        failures: list[Exception] = []

        for callback in list(self.get_callbacks_for(event)):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(
                    "event=<%s>, callback=<%r>, error=<%s> | hook notification failed",
                    type(event).__name__,
                    callback,
                    e,
                    exc_info=True,
                )
                failures.append(e)

        return failures

    def has_callbacks(self) -> bool:
        """Whether any callback is registered."""
        return bool(self._registered_callbacks)

    def get_callbacks_for(self, event: HookEvent) -> Generator[HookCallback, None, None]:
        """Callbacks subscribed to the event, in dispatch order.

        The callback list is captured when the generator starts, so registrations made while iterating are not seen.

        Args:
            event: The event being dispatched.

        Yields:
            Callbacks subscribed to the class of the event or one of its bases.
        """
        snapshot = self._registered_callbacks

        for entry in snapshot:
            if isinstance(event, entry.event_type):
                yield entry.callback
