import asyncio
import unittest.mock
from dataclasses import dataclass
from typing import Optional

import pytest

from hookloop.hooks import DEFAULT_PRIORITY, HookEvent, HookProvider, HookRegistry


@dataclass
class SampleEvent(HookEvent):
    value: Optional[str] = None

    def _can_write(self, name: str) -> bool:
        return name == "value"


@dataclass
class OtherEvent(HookEvent):
    pass


class SampleHookProvider(HookProvider):
    def __init__(self):
        self.registered = False

    def register_hooks(self, registry: HookRegistry) -> None:
        self.registered = True


@pytest.fixture
def hook_registry():
    return HookRegistry()


@pytest.fixture
def sample_event():
    return SampleEvent(agent=unittest.mock.Mock())


def recorder(calls, name):
    def callback(_event):
        calls.append(name)

    return callback


def test_hook_registry_init():
    registry = HookRegistry()

    assert registry._registered_callbacks == ()
    assert not registry.has_callbacks()


def test_add_callback(hook_registry):
    callback = unittest.mock.Mock()
    hook_registry.add_callback(SampleEvent, callback)

    assert hook_registry.has_callbacks()
    assert hook_registry._registered_callbacks[0].callback == callback
    assert hook_registry._registered_callbacks[0].priority == DEFAULT_PRIORITY


def test_add_hook(hook_registry):
    hook_provider = SampleHookProvider()
    hook_registry.add_hook(hook_provider)

    assert hook_provider.registered


def test_get_callbacks_for_orders_by_priority_then_registration(hook_registry, sample_event):
    callback_50 = unittest.mock.Mock()
    callback_100a = unittest.mock.Mock()
    callback_100b = unittest.mock.Mock()
    callback_10 = unittest.mock.Mock()

    hook_registry.add_callback(SampleEvent, callback_50, priority=50)
    hook_registry.add_callback(SampleEvent, callback_100a, priority=100)
    hook_registry.add_callback(SampleEvent, callback_100b, priority=100)
    hook_registry.add_callback(SampleEvent, callback_10, priority=10)

    tru_callbacks = list(hook_registry.get_callbacks_for(sample_event))
    exp_callbacks = [callback_10, callback_50, callback_100a, callback_100b]

    assert tru_callbacks == exp_callbacks


def test_get_callbacks_for_later_equal_priority_appended_last(hook_registry, sample_event):
    first = unittest.mock.Mock()
    second = unittest.mock.Mock()
    late = unittest.mock.Mock()

    hook_registry.add_callback(SampleEvent, first, priority=100)
    hook_registry.add_callback(SampleEvent, second, priority=100)
    list(hook_registry.get_callbacks_for(sample_event))
    hook_registry.add_callback(SampleEvent, late, priority=100)

    assert list(hook_registry.get_callbacks_for(sample_event)) == [first, second, late]


def test_get_callbacks_for_filters_by_event_type(hook_registry, sample_event):
    sample_callback = unittest.mock.Mock()
    other_callback = unittest.mock.Mock()
    any_callback = unittest.mock.Mock()

    hook_registry.add_callback(SampleEvent, sample_callback)
    hook_registry.add_callback(OtherEvent, other_callback)
    hook_registry.add_callback(HookEvent, any_callback)

    assert list(hook_registry.get_callbacks_for(sample_event)) == [sample_callback, any_callback]


def test_get_callbacks_for_uses_snapshot(hook_registry, sample_event):
    late_callback = unittest.mock.Mock()

    def register_late(_event):
        hook_registry.add_callback(SampleEvent, late_callback)

    hook_registry.add_callback(SampleEvent, register_late)

    callbacks = hook_registry.get_callbacks_for(sample_event)
    tru_callbacks = []
    for callback in callbacks:
        callback(sample_event)
        tru_callbacks.append(callback)

    assert tru_callbacks == [register_late]
    assert list(hook_registry.get_callbacks_for(sample_event)) == [register_late, late_callback]


@pytest.mark.asyncio
async def test_invoke_callbacks_async_runs_in_priority_order(hook_registry, sample_event):
    calls = []
    hook_registry.add_callback(SampleEvent, recorder(calls, "late"), priority=200)
    hook_registry.add_callback(SampleEvent, recorder(calls, "early"), priority=1)

    await hook_registry.invoke_callbacks_async(sample_event)

    assert calls == ["early", "late"]


@pytest.mark.asyncio
async def test_invoke_callbacks_async_chains_mutations(hook_registry, sample_event):
    def first(event):
        event.value = "x"

    def second(event):
        event.value = event.value + "y"

    hook_registry.add_callback(SampleEvent, second, priority=20)
    hook_registry.add_callback(SampleEvent, first, priority=10)

    tru_event = await hook_registry.invoke_callbacks_async(sample_event)

    assert tru_event.value == "xy"


@pytest.mark.asyncio
async def test_invoke_callbacks_async_replacement_event(hook_registry, sample_event):
    replacement = SampleEvent(agent=sample_event.agent, value="replaced")
    seen = []

    hook_registry.add_callback(SampleEvent, lambda _event: replacement, priority=10)
    hook_registry.add_callback(SampleEvent, lambda event: seen.append(event.value), priority=20)

    tru_event = await hook_registry.invoke_callbacks_async(sample_event)

    assert tru_event is replacement
    assert seen == ["replaced"]


@pytest.mark.asyncio
async def test_invoke_callbacks_async_awaits_coroutines(hook_registry, sample_event):
    async def callback(event):
        await asyncio.sleep(0)
        event.value = "async"

    hook_registry.add_callback(SampleEvent, callback)

    tru_event = await hook_registry.invoke_callbacks_async(sample_event)

    assert tru_event.value == "async"


@pytest.mark.asyncio
async def test_invoke_callbacks_async_wrong_return_type(hook_registry, sample_event):
    hook_registry.add_callback(SampleEvent, lambda _event: "not an event")

    with pytest.raises(TypeError):
        await hook_registry.invoke_callbacks_async(sample_event)


@pytest.mark.asyncio
async def test_invoke_callbacks_async_exception_aborts_chain(hook_registry, sample_event):
    calls = []

    def failing(_event):
        raise RuntimeError("hook failed")

    hook_registry.add_callback(SampleEvent, failing, priority=10)
    hook_registry.add_callback(SampleEvent, recorder(calls, "after"), priority=20)

    with pytest.raises(RuntimeError, match="hook failed"):
        await hook_registry.invoke_callbacks_async(sample_event)

    assert calls == []


@pytest.mark.asyncio
async def test_invoke_callbacks_async_no_registered_callbacks(hook_registry, sample_event):
    tru_event = await hook_registry.invoke_callbacks_async(sample_event)

    assert tru_event is sample_event


@pytest.mark.asyncio
async def test_notify_callbacks_async_isolates_failures(hook_registry, sample_event):
    calls = []
    error = RuntimeError("chunk hook failed")

    def failing(_event):
        raise error

    hook_registry.add_callback(SampleEvent, recorder(calls, "first"), priority=10)
    hook_registry.add_callback(SampleEvent, failing, priority=20)
    hook_registry.add_callback(SampleEvent, recorder(calls, "third"), priority=30)

    tru_failures = await hook_registry.notify_callbacks_async(sample_event)

    assert calls == ["first", "third"]
    assert tru_failures == [error]


@pytest.mark.asyncio
async def test_notify_callbacks_async_ignores_return_values(hook_registry, sample_event):
    hook_registry.add_callback(SampleEvent, lambda _event: "ignored")

    tru_failures = await hook_registry.notify_callbacks_async(sample_event)

    assert tru_failures == []
