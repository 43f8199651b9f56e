from hookloop.agent.agent_result import AgentResult
from hookloop.types._events import (
    AgentResultEvent,
    EventLoopStopEvent,
    ForceStopEvent,
    InitEventLoopEvent,
    InterruptEvent,
    ModelMessageEvent,
    ModelPartialMessageEvent,
    ModelStopReason,
    ModelStreamEvent,
    ReasoningTextStreamEvent,
    StartEventLoopEvent,
    SummaryStartEvent,
    TextStreamEvent,
    ToolResultEvent,
    ToolStreamEvent,
)
from hookloop.types.interrupt import InterruptContext


def test_typed_event_as_dict_is_a_copy():
    event = StartEventLoopEvent(2)

    data = event.as_dict()
    data["iteration"] = 5

    assert event["iteration"] == 2
    assert event.is_callback_event


def test_init_event_loop_event_prepare_merges_invocation_state():
    event = InitEventLoopEvent()

    event.prepare({"request_state": {"a": 1}})

    assert event == {"init_event_loop": True, "request_state": {"a": 1}}


def test_model_stream_event_prepare_only_with_delta():
    text_event = TextStreamEvent(delta={"text": "hi"}, text="hi")
    empty_event = ModelStreamEvent({})

    text_event.prepare({"custom": True})
    empty_event.prepare({"custom": True})

    assert text_event["custom"] is True
    assert text_event["data"] == "hi"
    assert "custom" not in empty_event
    assert not empty_event.is_callback_event


def test_reasoning_text_stream_event():
    event = ReasoningTextStreamEvent(delta={"reasoningContent": {"text": "hmm"}}, reasoning_text="hmm")

    assert event["reasoning"] is True
    assert event["reasoningText"] == "hmm"


def test_internal_events_are_not_callback_events():
    message = {"role": "assistant", "content": []}
    usage = {"inputTokens": 0, "outputTokens": 0, "totalTokens": 0}

    assert not ModelPartialMessageEvent(message, message).is_callback_event
    assert not ModelStopReason("end_turn", message, usage, {"latencyMs": 0}).is_callback_event
    assert not EventLoopStopEvent("end_turn", message, None, {}).is_callback_event
    assert not ToolResultEvent({"toolUseId": "t1", "status": "success", "content": []}).is_callback_event


def test_tool_result_event():
    tool_result = {"toolUseId": "t1", "status": "success", "content": [{"text": "ok"}]}

    event = ToolResultEvent(tool_result, stop_requested=True)

    assert event.tool_use_id == "t1"
    assert event.tool_result == tool_result
    assert event.stop_requested


def test_tool_stream_event():
    event = ToolStreamEvent({"toolUseId": "t1", "name": "tool", "input": {}}, {"progress": 50})

    assert event.tool_use_id == "t1"
    assert event["tool_stream_event"] == {"progress": 50}
    assert event.is_callback_event


def test_callback_events():
    interrupt = InterruptContext()
    result = AgentResult(stop_reason="end_turn", message={"role": "assistant", "content": []})

    assert SummaryStartEvent(3) == {"start_summary": True, "max_iterations": 3}
    assert ModelMessageEvent({"role": "assistant", "content": []})["message"]["role"] == "assistant"
    assert InterruptEvent(interrupt)["interrupt"] is interrupt
    assert ForceStopEvent(ValueError("bad")) == {"force_stop": True, "force_stop_reason": "bad"}
    assert AgentResultEvent(result)["result"] is result
