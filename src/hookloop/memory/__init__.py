"""Conversation memory used by the agent loop."""

from .memory import InMemoryMemory, Memory

__all__ = ["InMemoryMemory", "Memory"]
