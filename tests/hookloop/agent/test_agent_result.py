import pytest

from hookloop.agent.agent_result import AgentResult
from hookloop.types.interrupt import InterruptContext, InterruptSource


@pytest.fixture
def simple_message():
    return {"role": "assistant", "content": [{"text": "Hello world!"}]}


@pytest.fixture
def complex_message():
    return {
        "role": "assistant",
        "content": [
            {"text": "First paragraph"},
            {"toolUse": {"toolUseId": "t1", "name": "tool", "input": {}}},
            {"text": "Second paragraph"},
        ],
    }


def test_init(simple_message):
    result = AgentResult(stop_reason="end_turn", message=simple_message, state={"key": "value"})

    assert result.stop_reason == "end_turn"
    assert result.message == simple_message
    assert result.interrupt is None
    assert result.state == {"key": "value"}
    assert not result.interrupted


def test_str(simple_message, complex_message):
    assert str(AgentResult(stop_reason="end_turn", message=simple_message)) == "Hello world!\n"
    assert str(AgentResult(stop_reason="end_turn", message=complex_message)) == "First paragraph\nSecond paragraph\n"


def test_str_empty():
    assert str(AgentResult(stop_reason="end_turn", message={"role": "assistant", "content": []})) == ""


def test_interrupted(simple_message):
    result = AgentResult(
        stop_reason="interrupted",
        message=simple_message,
        interrupt=InterruptContext(source=InterruptSource.HOOK),
    )

    assert result.interrupted
