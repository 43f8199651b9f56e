import json
from datetime import date, datetime, timezone
from unittest import mock

import pytest
from opentelemetry.trace import SpanKind, StatusCode

from hookloop.agent.agent_result import AgentResult
from hookloop.telemetry.tracer import JSONEncoder, Tracer, get_tracer, serialize
from hookloop.types.interrupt import InterruptContext, InterruptSource
from hookloop.types.streaming import StopReason, Usage


@pytest.fixture
def mock_tracer():
    with mock.patch("hookloop.telemetry.tracer.trace_api.get_tracer_provider") as mock_get_tracer_provider:
        mock_tracer = mock.MagicMock()
        mock_get_tracer_provider.return_value.get_tracer.return_value = mock_tracer
        yield mock_tracer


@pytest.fixture
def mock_span():
    return mock.MagicMock()


@pytest.fixture
def tracer(mock_tracer, mock_span):
    mock_tracer.start_span.return_value = mock_span
    return Tracer()


def test_init_default():
    tracer = Tracer()

    assert tracer.service_name == "hookloop.telemetry.tracer"
    assert tracer.tracer_provider is not None
    assert tracer.tracer is not None


def test_start_span_no_tracer():
    tracer = Tracer()
    span = tracer._start_span("test_span")

    assert span is not None


def test_start_span(tracer, mock_tracer, mock_span):
    span = tracer._start_span("test_span", attributes={"key": "value"})

    mock_tracer.start_span.assert_called_once_with(name="test_span", context=None, kind=SpanKind.INTERNAL)
    mock_span.set_attributes.assert_called_once_with({"key": "value"})
    assert span == mock_span


def test_start_span_with_recording_parent(tracer, mock_tracer):
    parent_span = mock.MagicMock()
    parent_span.is_recording.return_value = True

    with mock.patch("hookloop.telemetry.tracer.trace_api.set_span_in_context") as mock_set_span_in_context:
        tracer._start_span("child", parent_span)

    mock_set_span_in_context.assert_called_once_with(parent_span)
    assert mock_tracer.start_span.call_args[1]["context"] == mock_set_span_in_context.return_value


def test_end_span_no_span(tracer):
    tracer._end_span(None)


def test_end_span(tracer, mock_span):
    tracer._end_span(mock_span, {"key": "value"})

    mock_span.set_attributes.assert_called_once_with({"key": "value"})
    mock_span.set_status.assert_called_once_with(StatusCode.OK)
    mock_span.end.assert_called_once()


def test_end_span_with_error(tracer, mock_span):
    error = Exception("Test error")

    tracer.end_span_with_error(mock_span, error)

    mock_span.set_status.assert_called_once_with(StatusCode.ERROR, str(error))
    mock_span.record_exception.assert_called_once_with(error)
    mock_span.end.assert_called_once()


def test_end_span_still_ends_when_status_fails(tracer, mock_span):
    mock_span.set_status.side_effect = RuntimeError("exporter gone")

    tracer._end_span(mock_span)

    mock_span.end.assert_called_once()


def test_end_interrupted_span(tracer, mock_span):
    tracer.end_interrupted_span(mock_span)

    mock_span.set_attributes.assert_called_once_with({"agent.interrupted": True})
    mock_span.end.assert_called_once()


def test_start_model_invoke_span(tracer, mock_tracer, mock_span):
    messages = [{"role": "user", "content": [{"text": "Hello"}]}]

    span = tracer.start_model_invoke_span(messages=messages, model_id="test-model")

    assert mock_tracer.start_span.call_args[1]["name"] == "chat"
    assert mock_tracer.start_span.call_args[1]["kind"] == SpanKind.CLIENT
    mock_span.set_attributes.assert_called_once_with(
        {
            "gen_ai.system": "hookloop",
            "gen_ai.operation.name": "chat",
            "gen_ai.request.model": "test-model",
        }
    )
    mock_span.add_event.assert_called_with("gen_ai.user.message", {"content": json.dumps(messages[0]["content"])})
    assert span == mock_span


def test_start_model_invoke_span_summarize(tracer, mock_tracer):
    tracer.start_model_invoke_span(messages=[], operation="summarize")

    assert mock_tracer.start_span.call_args[1]["name"] == "summarize"


def test_end_model_invoke_span(tracer, mock_span):
    message = {"role": "assistant", "content": [{"text": "Response"}]}
    usage = Usage(inputTokens=10, outputTokens=20, totalTokens=30)
    stop_reason: StopReason = "end_turn"

    tracer.end_model_invoke_span(mock_span, message, usage, stop_reason)

    mock_span.set_attributes.assert_called_once_with(
        {
            "gen_ai.usage.input_tokens": 10,
            "gen_ai.usage.output_tokens": 20,
            "gen_ai.usage.total_tokens": 30,
        }
    )
    mock_span.add_event.assert_called_with(
        "gen_ai.choice",
        attributes={"finish_reason": "end_turn", "message": json.dumps(message["content"])},
    )
    mock_span.set_status.assert_called_once_with(StatusCode.OK)
    mock_span.end.assert_called_once()


def test_start_tool_call_span(tracer, mock_tracer, mock_span):
    tool = {"name": "test-tool", "toolUseId": "123", "input": {"param": "value"}}

    span = tracer.start_tool_call_span(tool)

    assert mock_tracer.start_span.call_args[1]["name"] == "execute_tool test-tool"
    mock_span.set_attributes.assert_called_once_with(
        {
            "gen_ai.operation.name": "execute_tool",
            "gen_ai.system": "hookloop",
            "gen_ai.tool.name": "test-tool",
            "gen_ai.tool.call.id": "123",
        }
    )
    mock_span.add_event.assert_any_call(
        "gen_ai.tool.message", attributes={"role": "tool", "content": json.dumps({"param": "value"}), "id": "123"}
    )
    assert span == mock_span


def test_end_tool_call_span(tracer, mock_span):
    tool_result = {"status": "success", "content": [{"text": "Tool result"}], "toolUseId": "123"}

    tracer.end_tool_call_span(mock_span, tool_result)

    mock_span.set_attributes.assert_called_once_with({"tool.status": "success"})
    mock_span.add_event.assert_called_with(
        "gen_ai.choice", attributes={"message": json.dumps(tool_result["content"]), "id": "123"}
    )
    mock_span.set_status.assert_called_once_with(StatusCode.OK)
    mock_span.end.assert_called_once()


def test_start_event_loop_cycle_span(tracer, mock_tracer, mock_span):
    messages = [{"role": "user", "content": [{"text": "Hello"}]}]

    span = tracer.start_event_loop_cycle_span(3, messages)

    assert mock_tracer.start_span.call_args[1]["name"] == "execute_event_loop_cycle"
    mock_span.set_attributes.assert_called_once_with({"event_loop.iteration": 3})
    mock_span.add_event.assert_called_with("gen_ai.user.message", {"content": json.dumps(messages[0]["content"])})
    assert span == mock_span


def test_end_event_loop_cycle_span(tracer, mock_span):
    message = {"role": "assistant", "content": [{"text": "Response"}]}

    tracer.end_event_loop_cycle_span(mock_span, message)

    mock_span.add_event.assert_called_with("gen_ai.choice", attributes={"message": json.dumps(message["content"])})
    mock_span.end.assert_called_once()


def test_start_agent_span(tracer, mock_tracer, mock_span):
    messages = [{"role": "user", "content": [{"text": "Hello"}]}]

    span = tracer.start_agent_span(
        messages,
        agent_name="WeatherAgent",
        model_id="test-model",
        tools=["weather"],
        custom_trace_attributes={"session.id": "abc"},
    )

    assert mock_tracer.start_span.call_args[1]["name"] == "invoke_agent WeatherAgent"
    assert mock_tracer.start_span.call_args[1]["kind"] == SpanKind.CLIENT
    mock_span.set_attributes.assert_called_once_with(
        {
            "gen_ai.system": "hookloop",
            "gen_ai.agent.name": "WeatherAgent",
            "gen_ai.operation.name": "invoke_agent",
            "gen_ai.request.model": "test-model",
            "gen_ai.agent.tools": json.dumps(["weather"]),
            "session.id": "abc",
        }
    )
    assert span == mock_span


def test_end_agent_span(tracer, mock_span):
    result = AgentResult(stop_reason="end_turn", message={"role": "assistant", "content": [{"text": "Done"}]})

    tracer.end_agent_span(mock_span, result)

    mock_span.add_event.assert_called_with(
        "gen_ai.choice", attributes={"message": "Done\n", "finish_reason": "end_turn"}
    )
    mock_span.set_status.assert_called_once_with(StatusCode.OK)
    mock_span.end.assert_called_once()


def test_end_agent_span_interrupted(tracer, mock_span):
    interrupt = InterruptContext(
        source=InterruptSource.HOOK,
        pending_tool_uses=[{"toolUseId": "t1", "name": "tool", "input": {}}],
    )
    result = AgentResult(
        stop_reason="interrupted", message={"role": "assistant", "content": []}, interrupt=interrupt
    )

    tracer.end_agent_span(mock_span, result)

    mock_span.set_attributes.assert_called_once_with(
        {"agent.interrupt.source": "hook", "agent.interrupt.pending_tool_calls": 1}
    )


def test_get_tracer_singleton():
    with mock.patch("hookloop.telemetry.tracer._tracer_instance", None):
        tracer1 = get_tracer()
        tracer2 = get_tracer()

    assert tracer1 is tracer2


def test_json_encoder_serializable():
    encoder = JSONEncoder()

    assert json.loads(encoder.encode({"a": [1, "two", None]})) == {"a": [1, "two", None]}


def test_json_encoder_datetime():
    encoder = JSONEncoder()
    value = {"when": datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc), "day": date(2025, 1, 2)}

    assert json.loads(encoder.encode(value)) == {"when": "2025-01-01T12:00:00+00:00", "day": "2025-01-02"}


def test_json_encoder_unserializable():
    class Opaque:
        pass

    assert json.loads(serialize({"value": Opaque(), "items": (1, Opaque())})) == {
        "value": "<replaced>",
        "items": [1, "<replaced>"],
    }


def test_serialize_non_ascii():
    assert serialize({"text": "héllo"}) == '{"text": "héllo"}'
