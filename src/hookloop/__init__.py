"""An agent engine that drives a reasoning/acting loop through ordered, mutating hooks."""

from . import agent, hooks, models, telemetry, types
from .agent.agent import Agent
from .agent.agent_result import AgentResult
from .memory import InMemoryMemory, Memory
from .tools.decorator import tool
from .types.interrupt import InterruptContext, InterruptSource
from .types.tools import ToolContext

__all__ = [
    "Agent",
    "AgentResult",
    "agent",
    "hooks",
    "InMemoryMemory",
    "InterruptContext",
    "InterruptSource",
    "Memory",
    "models",
    "telemetry",
    "tool",
    "ToolContext",
    "types",
]
