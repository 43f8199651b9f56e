import unittest.mock

import pytest

from hookloop.hooks import ActingChunkEvent, ErrorEvent, PostActingEvent, PreActingEvent
from hookloop.tools.executors._executor import ToolExecutor
from hookloop.types._events import ToolResultEvent, ToolStreamEvent


@pytest.fixture
def executor():
    return ToolExecutor


@pytest.fixture
def tracer():
    with unittest.mock.patch("hookloop.tools.executors._executor.get_tracer") as mock_get_tracer:
        yield mock_get_tracer.return_value


@pytest.mark.asyncio
async def test_executor_stream_yields_result(executor, agent, invocation_state, hook_events, alist):
    tool_use = {"name": "weather_tool", "toolUseId": "1", "input": {}}

    tru_events = await alist(executor._stream(agent, tool_use, invocation_state))
    exp_events = [ToolResultEvent({"toolUseId": "1", "status": "success", "content": [{"text": "sunny"}]})]
    assert tru_events == exp_events

    tru_hook_kinds = [type(event) for event in hook_events]
    assert tru_hook_kinds == [PreActingEvent, PostActingEvent]
    assert hook_events[1].tool_result == exp_events[0].tool_result
    assert hook_events[1].exception is None


@pytest.mark.asyncio
async def test_executor_stream_unknown_tool(executor, agent, invocation_state, alist):
    tool_use = {"name": "missing_tool", "toolUseId": "1", "input": {}}

    tru_events = await alist(executor._stream(agent, tool_use, invocation_state))

    assert tru_events[-1].tool_result == {
        "toolUseId": "1",
        "status": "error",
        "content": [{"text": "Unknown tool: missing_tool"}],
    }


@pytest.mark.asyncio
async def test_executor_stream_tool_exception(executor, agent, invocation_state, hook_events, alist):
    tool_use = {"name": "exception_tool", "toolUseId": "1", "input": {}}

    tru_events = await alist(executor._stream(agent, tool_use, invocation_state))

    assert tru_events[-1].tool_result == {
        "toolUseId": "1",
        "status": "error",
        "content": [{"text": "Error: Tool error"}],
    }
    assert isinstance(hook_events[-1].exception, RuntimeError)


@pytest.mark.asyncio
async def test_executor_stream_notifies_chunks(executor, agent, hook_registry, invocation_state, alist):
    chunks = []
    hook_registry.add_callback(ActingChunkEvent, lambda event: chunks.append(event.chunk))
    tool_use = {"name": "streaming_tool", "toolUseId": "1", "input": {}}

    tru_events = await alist(executor._stream(agent, tool_use, invocation_state))

    assert chunks == ["step 1", "step 2"]
    assert [event["tool_stream_event"] for event in tru_events if isinstance(event, ToolStreamEvent)] == [
        "step 1",
        "step 2",
    ]
    assert tru_events[-1].tool_result["content"] == [{"text": "done"}]


@pytest.mark.asyncio
async def test_executor_stream_chunk_failure_is_reported(executor, agent, hook_registry, invocation_state, alist):
    errors = []

    def failing_chunk(event):
        raise ValueError("chunk failed")

    hook_registry.add_callback(ActingChunkEvent, failing_chunk)
    hook_registry.add_callback(ErrorEvent, lambda event: errors.append(event.error))
    tool_use = {"name": "streaming_tool", "toolUseId": "1", "input": {}}

    tru_events = await alist(executor._stream(agent, tool_use, invocation_state))

    assert tru_events[-1].tool_result["status"] == "success"
    assert [str(error) for error in errors] == ["chunk failed", "chunk failed"]


@pytest.mark.asyncio
async def test_executor_stream_pre_acting_replaces_tool(
    executor, agent, hook_registry, temperature_tool, invocation_state, alist
):
    def swap_tool(event: PreActingEvent):
        event.selected_tool = temperature_tool

    hook_registry.add_callback(PreActingEvent, swap_tool)
    tool_use = {"name": "weather_tool", "toolUseId": "1", "input": {}}

    tru_events = await alist(executor._stream(agent, tool_use, invocation_state))

    assert tru_events[-1].tool_result["content"] == [{"text": "75F"}]


@pytest.mark.asyncio
async def test_executor_stream_pre_acting_removes_tool(executor, agent, hook_registry, invocation_state, alist):
    def drop_tool(event: PreActingEvent):
        event.selected_tool = None

    hook_registry.add_callback(PreActingEvent, drop_tool)
    tool_use = {"name": "weather_tool", "toolUseId": "1", "input": {}}

    tru_events = await alist(executor._stream(agent, tool_use, invocation_state))

    assert tru_events[-1].tool_result["content"] == [{"text": "Unknown tool: weather_tool"}]


@pytest.mark.asyncio
async def test_executor_stream_post_acting_rewrites_result(executor, agent, hook_registry, invocation_state, alist):
    def rewrite(event: PostActingEvent):
        event.tool_result = {"toolUseId": "other", "status": "success", "content": [{"text": "cloudy"}]}

    hook_registry.add_callback(PostActingEvent, rewrite)
    tool_use = {"name": "weather_tool", "toolUseId": "1", "input": {}}

    tru_events = await alist(executor._stream(agent, tool_use, invocation_state))

    assert tru_events[-1].tool_result == {"toolUseId": "1", "status": "success", "content": [{"text": "cloudy"}]}


@pytest.mark.asyncio
async def test_executor_stream_post_acting_stop(executor, agent, hook_registry, invocation_state, alist):
    hook_registry.add_callback(PostActingEvent, lambda event: event.stop_agent())
    tool_use = {"name": "weather_tool", "toolUseId": "1", "input": {}}

    tru_events = await alist(executor._stream(agent, tool_use, invocation_state))

    assert tru_events[-1].stop_requested


@pytest.mark.asyncio
async def test_executor_stream_hook_exception_propagates(executor, agent, hook_registry, invocation_state, alist):
    def failing_hook(event):
        raise ValueError("hook failed")

    hook_registry.add_callback(PreActingEvent, failing_hook)
    tool_use = {"name": "weather_tool", "toolUseId": "1", "input": {}}

    with pytest.raises(ValueError, match="hook failed"):
        await alist(executor._stream(agent, tool_use, invocation_state))


@pytest.mark.asyncio
async def test_executor_stream_with_trace(executor, tracer, agent, invocation_state, cycle_span, alist):
    tool_use = {"name": "weather_tool", "toolUseId": "1", "input": {}}

    tru_events = await alist(executor._stream_with_trace(agent, tool_use, invocation_state, cycle_span))

    tracer.start_tool_call_span.assert_called_once_with(tool_use, cycle_span)
    tracer.end_tool_call_span.assert_called_once_with(
        tracer.start_tool_call_span.return_value, tru_events[-1].tool_result
    )
    tracer.end_span_with_error.assert_not_called()


@pytest.mark.asyncio
async def test_executor_stream_with_trace_error(
    executor, tracer, agent, hook_registry, invocation_state, cycle_span, alist
):
    def failing_hook(event):
        raise ValueError("hook failed")

    hook_registry.add_callback(PostActingEvent, failing_hook)
    tool_use = {"name": "weather_tool", "toolUseId": "1", "input": {}}

    with pytest.raises(ValueError):
        await alist(executor._stream_with_trace(agent, tool_use, invocation_state, cycle_span))

    tracer.end_span_with_error.assert_called_once()
    tracer.end_tool_call_span.assert_not_called()
