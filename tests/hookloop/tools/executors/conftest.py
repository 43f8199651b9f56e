import unittest.mock

import pytest

import hookloop
from hookloop.hooks import HookRegistry, PostActingEvent, PreActingEvent
from hookloop.tools.registry import ToolRegistry


@pytest.fixture
def hook_events():
    return []


@pytest.fixture
def tool_hook(hook_events):
    def callback(event):
        hook_events.append(event)

    return callback


@pytest.fixture
def hook_registry(tool_hook):
    registry = HookRegistry()
    registry.add_callback(PreActingEvent, tool_hook)
    registry.add_callback(PostActingEvent, tool_hook)
    return registry


@pytest.fixture
def weather_tool():
    @hookloop.tool(name="weather_tool")
    def func():
        return "sunny"

    return func


@pytest.fixture
def temperature_tool():
    @hookloop.tool(name="temperature_tool")
    def func():
        return "75F"

    return func


@pytest.fixture
def exception_tool():
    @hookloop.tool(name="exception_tool")
    def func():
        pass

    async def mock_stream(_tool_use, _invocation_state, **_kwargs):
        raise RuntimeError("Tool error")
        yield  # make generator

    func.stream = mock_stream
    return func


@pytest.fixture
def streaming_tool():
    @hookloop.tool(name="streaming_tool")
    async def func():
        yield "step 1"
        yield "step 2"
        yield "done"

    return func


@pytest.fixture
def tool_registry(weather_tool, temperature_tool, exception_tool, streaming_tool):
    registry = ToolRegistry()
    registry.register_tool(weather_tool)
    registry.register_tool(temperature_tool)
    registry.register_tool(exception_tool)
    registry.register_tool(streaming_tool)
    return registry


@pytest.fixture
def agent(tool_registry, hook_registry):
    mock_agent = unittest.mock.Mock()
    mock_agent.tool_registry = tool_registry
    mock_agent.hooks = hook_registry
    mock_agent.interrupt_requested = False
    return mock_agent


@pytest.fixture
def cycle_span():
    return unittest.mock.Mock()


@pytest.fixture
def invocation_state():
    return {}
