"""Tools: the @tool decorator, the per-agent ToolRegistry and the executors running tool calls."""

from .decorator import DecoratedFunctionTool, tool
from .registry import ToolRegistry

__all__ = ["DecoratedFunctionTool", "ToolRegistry", "tool"]
