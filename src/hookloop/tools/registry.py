"""The tools an agent can call, keyed by name."""

import inspect
import logging
from typing import Any, Iterable, Optional

from ..types.tools import AgentTool, ToolSpec
from .decorator import DecoratedFunctionTool

logger = logging.getLogger(__name__)

_REQUIRED_SPEC_FIELDS = ("name", "description", "inputSchema")


def _normalize(tool_name: str) -> str:
    return tool_name.replace("-", "_")


class ToolRegistry:
    """Tools of one agent.

    Names that only differ by "-" and "_" are treated as the same name, since model providers disagree on which of the
    two they accept.
    """

    def __init__(self) -> None:
        """Create an empty registry."""
        self.registry: dict[str, AgentTool] = {}

    def process_tools(self, tools: Iterable[Any]) -> list[str]:
        """Register everything that looks like a tool.

        Accepted are AgentTool instances (functions decorated with @tool among them), modules, whose @tool functions
        are registered, and iterables nesting any of these. Anything else is logged and skipped.

        Args:
            tools: What to register.

        Returns:
            Names of the registered tools, in registration order.
        """
        names: list[str] = []

        for item in tools:
            for found in self._expand(item):
                self.register_tool(found)
                names.append(found.tool_name)

        return names

    def _expand(self, item: Any) -> list[AgentTool]:
        if isinstance(item, AgentTool):
            return [item]

        if inspect.ismodule(item):
            found = [member for _, member in inspect.getmembers(item) if isinstance(member, DecoratedFunctionTool)]
            if not found:
                logger.warning("module=<%s> | module defines no tools", item.__name__)
            return found

        if isinstance(item, Iterable) and not isinstance(item, (str, bytes, bytearray, dict)):
            return [found for nested in item for found in self._expand(nested)]

        logger.warning("tool=<%s> | skipping, not a tool", item)
        return []

    def register_tool(self, tool: AgentTool) -> None:
        """Add a tool, replacing a previous tool of exactly the same name.

        Args:
            tool: The tool to add.

        Raises:
            ValueError: If the spec is invalid, or another tool has the same name up to "-" and "_".
        """
        logger.debug("tool_name=<%s>, tool_type=<%s> | registering tool", tool.tool_name, tool.tool_type)

        if tool.tool_name not in self.registry:
            clash = next((name for name in self.registry if _normalize(name) == _normalize(tool.tool_name)), None)
            if clash is not None:
                raise ValueError(
                    f"Tool name '{tool.tool_name}' already exists as '{clash}'."
                    " Cannot add a duplicate tool which differs by a '-' or '_'"
                )

        self.validate_tool_spec(tool.tool_spec)
        self.registry[tool.tool_name] = tool

    def get(self, tool_name: str) -> Optional[AgentTool]:
        """The tool with this name, if registered."""
        return self.registry.get(tool_name)

    def get_all_tool_specs(self) -> list[ToolSpec]:
        """Specs of all tools, as sent to the model."""
        return [tool.tool_spec for tool in self.registry.values()]

    def validate_tool_spec(self, tool_spec: ToolSpec) -> None:
        """Check a spec and complete its input schema in place.

        A bare schema is wrapped as {"json": schema}. The schema gets an object type, and every property without a
        description gets a generic one. Properties that are not dicts become string properties.

        Args:
            tool_spec: The spec to check.

        Raises:
            ValueError: If name, description or inputSchema is missing.
        """
        missing = [name for name in _REQUIRED_SPEC_FIELDS if name not in tool_spec]
        if missing:
            raise ValueError(f"Missing required fields in tool spec: {', '.join(missing)}")

        if "json" not in tool_spec["inputSchema"]:
            tool_spec["inputSchema"] = {"json": tool_spec["inputSchema"]}

        schema = tool_spec["inputSchema"]["json"]
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        schema.setdefault("required", [])

        properties = schema["properties"]
        for name, definition in properties.items():
            if not isinstance(definition, dict):
                properties[name] = {"type": "string", "description": f"Property {name}"}
            elif "$ref" not in definition:
                # referenced definitions carry their own description
                definition.setdefault("description", f"Property {name}")
