"""This package provides the Agent interface and the AgentResult returned by invocations."""

from .agent import Agent
from .agent_result import AgentResult

__all__ = ["Agent", "AgentResult"]
