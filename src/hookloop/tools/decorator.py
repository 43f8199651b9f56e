"""The @tool decorator.

Decorating a function makes it an AgentTool. The tool name comes from the function name, the description from the
docstring summary, and the input schema from the signature and the `Args:` section of the docstring. Model input is
validated with a pydantic model built from the same signature, and the function stays callable as before.

How the function runs depends on its kind:

- plain functions run in a worker thread
- coroutine functions are awaited
- async generator functions stream, each item but the last becomes an acting chunk and the last one is the result

Example:
    ```python
    from hookloop import Agent, tool

    @tool
    def weather(city: str, unit: str = "celsius") -> str:
        '''Look up the current weather.

        Args:
            city: Name of the city.
            unit: Temperature unit.
        '''
        return f"Sunny in {city}"

    agent = Agent(model=my_model, tools=[weather])
    ```
"""

import asyncio
import functools
import inspect
import logging
from typing import Any, Callable, Generic, Optional, ParamSpec, Type, TypeVar, Union, get_type_hints, overload

import docstring_parser
from pydantic import BaseModel, Field, ValidationError, create_model
from typing_extensions import override

from ..types.tools import AgentTool, JSONSchema, ToolContext, ToolGenerator, ToolResult, ToolSpec, ToolUse

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

# Parameters filled in by the agent rather than by the model.
_INJECTED_PARAMS = frozenset({"self", "cls", "agent"})

# Keys pydantic adds to a JSON schema that models do not need.
_PYDANTIC_SCHEMA_NOISE = ("title", "additionalProperties")


class FunctionSignature:
    """Everything the agent needs to know about a decorated function's parameters.

    Attributes:
        func: The decorated function.
        doc: The parsed docstring.
        input_model: Pydantic model validating the parameters the model fills in.
    """

    def __init__(self, func: Callable[..., Any], context_param: Optional[str] = None) -> None:
        """Inspect the function.

        Args:
            func: The decorated function.
            context_param: Parameter that receives the ToolContext, if any.
        """
        self.func = func
        self.parameters = inspect.signature(func).parameters
        self.doc = docstring_parser.parse(inspect.getdoc(func) or "")
        self._context_param = context_param
        self.input_model = self._build_input_model()

    def _build_input_model(self) -> Type[BaseModel]:
        hints = get_type_hints(self.func)
        described = {param.arg_name: param.description for param in self.doc.params if param.description}

        fields: dict[str, Any] = {}
        for name, param in self.parameters.items():
            if self._is_injected(name):
                continue

            default = ... if param.default is inspect.Parameter.empty else param.default
            description = described.get(name, f"Parameter {name}")
            fields[name] = (hints.get(name, Any), Field(default=default, description=description))

        return create_model(f"{self.func.__name__.capitalize()}Tool", **fields)

    def _is_injected(self, name: str) -> bool:
        return name in _INJECTED_PARAMS or name == self._context_param

    def tool_spec(self) -> ToolSpec:
        """Build the tool specification sent to the model."""
        summary = self.doc.short_description or ""
        if self.doc.long_description:
            summary = f"{summary}\n\n{self.doc.long_description}".strip()

        schema = self.input_model.model_json_schema()
        _simplify_schema(schema)

        return {
            "name": self.func.__name__,
            "description": summary or self.func.__name__,
            "inputSchema": {"json": schema},
        }

    def call_arguments(self, tool_use: ToolUse, invocation_state: dict[str, Any]) -> dict[str, Any]:
        """Turn the model's tool input into keyword arguments for the function.

        Args:
            tool_use: The tool call written by the model.
            invocation_state: State of the current invocation, holding the agent under "agent".

        Returns:
            Validated arguments, plus the agent and the ToolContext where the function asks for them.

        Raises:
            ValueError: If the input does not match the function's parameters.
        """
        try:
            parsed = self.input_model(**tool_use.get("input", {}))
        except ValidationError as e:
            raise ValueError(f"Validation failed for input parameters: {e}") from e

        arguments = {name: getattr(parsed, name) for name in type(parsed).model_fields}

        if self._context_param and self._context_param in self.parameters:
            arguments[self._context_param] = ToolContext(
                tool_use=tool_use, agent=invocation_state["agent"], invocation_state=invocation_state
            )
        if "agent" in self.parameters and "agent" in invocation_state:
            arguments["agent"] = invocation_state["agent"]

        return arguments


def _simplify_schema(schema: dict[str, Any]) -> None:
    """Strip pydantic noise and turn `anyOf[X, null]` into plain X, in place."""
    for key in _PYDANTIC_SCHEMA_NOISE:
        schema.pop(key, None)

    for prop in schema.get("properties", {}).values():
        variants = prop.get("anyOf")
        if variants and len(variants) == 2 and any(variant.get("type") == "null" for variant in variants):
            prop.update(next(variant for variant in variants if variant.get("type") != "null"))
            del prop["anyOf"]

        if "properties" in prop:
            _simplify_schema(prop)

        for key in _PYDANTIC_SCHEMA_NOISE:
            prop.pop(key, None)


def _to_tool_result(tool_use_id: str, value: Any) -> ToolResult:
    if isinstance(value, dict) and "status" in value and "content" in value:
        return {**value, "toolUseId": tool_use_id}  # type: ignore[typeddict-item]

    return {"toolUseId": tool_use_id, "status": "success", "content": [{"text": str(value)}]}


def _error_result(tool_use_id: str, text: str) -> ToolResult:
    return {"toolUseId": tool_use_id, "status": "error", "content": [{"text": text}]}


class DecoratedFunctionTool(AgentTool, Generic[P, R]):
    """A function turned into a tool by @tool.

    Calling the object calls the function. Streaming it runs the function for a tool call from the model.
    """

    def __init__(self, tool_name: str, tool_spec: ToolSpec, tool_func: Callable[P, R], signature: FunctionSignature):
        """Wrap the function.

        Args:
            tool_name: Name the model calls the tool by.
            tool_spec: Specification sent to the model.
            tool_func: The decorated function.
            signature: Parameter information of the function.
        """
        super().__init__()

        self._tool_name = tool_name
        self._tool_spec = tool_spec
        self._tool_func = tool_func
        self._signature = signature

        functools.update_wrapper(wrapper=self, wrapped=self._tool_func)

    def __get__(self, instance: Any, obj_type: Optional[Type] = None) -> "DecoratedFunctionTool[P, R]":
        """Bind the tool to an instance when the decorated function is a method."""
        if instance is None or inspect.ismethod(self._tool_func):
            return self

        bound = self._tool_func.__get__(instance, instance.__class__)
        return DecoratedFunctionTool(self._tool_name, self._tool_spec, bound, self._signature)

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        """Call the decorated function directly."""
        return self._tool_func(*args, **kwargs)

    @property
    def tool_name(self) -> str:
        """Name the model calls the tool by."""
        return self._tool_name

    @property
    def tool_spec(self) -> ToolSpec:
        """Specification sent to the model."""
        return self._tool_spec

    @property
    def tool_type(self) -> str:
        """Always "function"."""
        return "function"

    @override
    async def stream(self, tool_use: ToolUse, invocation_state: dict[str, Any], **kwargs: Any) -> ToolGenerator:
        """Run the function for one tool call.

        Invalid input and exceptions raised by the function are reported as error results rather than raised.

        Args:
            tool_use: The tool call written by the model.
            invocation_state: State of the current invocation.
            **kwargs: Unused.

        Yields:
            The intermediate items of an async generator function, then the tool result.
        """
        tool_use_id = tool_use.get("toolUseId", "unknown")

        try:
            arguments = self._signature.call_arguments(tool_use, invocation_state)

            if inspect.isasyncgenfunction(self._tool_func):
                pending: list[Any] = []
                async for item in self._tool_func(**arguments):  # type: ignore
                    if pending:
                        yield pending.pop()
                    pending.append(item)
                value = pending[0] if pending else None
            elif inspect.iscoroutinefunction(self._tool_func):
                value = await self._tool_func(**arguments)  # type: ignore
            else:
                value = await asyncio.to_thread(self._tool_func, **arguments)  # type: ignore

            yield _to_tool_result(tool_use_id, value)

        except ValueError as e:
            logger.debug("tool_name=<%s>, error=<%s> | tool input rejected", self._tool_name, e)
            yield _error_result(tool_use_id, f"Error: {e}")

        except Exception as e:
            logger.debug("tool_name=<%s> | tool failed", self._tool_name, exc_info=True)
            yield _error_result(tool_use_id, f"Error: {type(e).__name__} - {e}")


@overload
def tool(__func: Callable[P, R]) -> DecoratedFunctionTool[P, R]: ...
@overload
def tool(
    description: Optional[str] = None,
    inputSchema: Optional[JSONSchema] = None,
    name: Optional[str] = None,
    context: bool | str = False,
) -> Callable[[Callable[P, R]], DecoratedFunctionTool[P, R]]: ...
def tool(  # type: ignore
    func: Optional[Callable[P, R]] = None,
    description: Optional[str] = None,
    inputSchema: Optional[JSONSchema] = None,
    name: Optional[str] = None,
    context: bool | str = False,
) -> Union[DecoratedFunctionTool[P, R], Callable[[Callable[P, R]], DecoratedFunctionTool[P, R]]]:
    """Turn a function into a tool, used either as `@tool` or as `@tool(...)`.

    Args:
        func: The function when used as `@tool`.
        description: Replaces the description taken from the docstring.
        inputSchema: Replaces the generated input schema.
        name: Replaces the function name as tool name.
        context: Pass a ToolContext to the function, in the parameter "tool_context" for True or in the named
            parameter for a string.

    Returns:
        The tool, or a decorator producing it when called with options.

    Raises:
        ValueError: If the context parameter name is blank or the tool name is not a string.
    """

    def decorator(f: Callable[P, R]) -> DecoratedFunctionTool[P, R]:
        if isinstance(context, str):
            context_param: Optional[str] = context.strip()
            if not context_param:
                raise ValueError("Context parameter name cannot be empty")
        else:
            context_param = "tool_context" if context else None

        signature = FunctionSignature(f, context_param)
        spec = signature.tool_spec()
        overrides = {"name": name, "description": description, "inputSchema": inputSchema}
        for key, value in overrides.items():
            if value is not None:
                spec[key] = value  # type: ignore[literal-required]

        if not isinstance(spec["name"], str):
            raise ValueError(f"Tool name must be a string, got {type(spec['name'])}")

        return DecoratedFunctionTool(spec["name"], spec, f, signature)

    return decorator if func is None else decorator(func)
