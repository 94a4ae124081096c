"""Tool protocol and helper base classes.

A tool is the unit of side-effecting work the model can request. The runtime
only needs four things from it: a ``name`` the model refers to, a
``description`` and a JSON ``parameters_schema`` that are sent to the model,
and an async ``execute`` that receives the raw JSON argument text of a
``ToolCall``.

``execute`` may return a plain value (converted to text by the invoker), a
``ToolResult`` (used as-is) or raise. Raising is never fatal to the loop: the
``ToolInvoker`` turns the exception into an error result.

Helpers
-------

- ``BaseTool``: parses the JSON arguments into a dict and dispatches to
  ``run``; provides typed argument accessors.
- ``FunctionTool`` / ``@tool``: wraps a plain or async function, deriving the
  parameter schema from its signature and validating arguments with pydantic.
"""

from __future__ import annotations

import inspect
import json
from typing import Any, Callable, Dict, Optional, Protocol, Type, get_type_hints

from pydantic import BaseModel, create_model

from ..schemas.config import ToolDescriptor

_EMPTY_SCHEMA: Dict[str, Any] = {"type": "object", "properties": {}}


class Tool(Protocol):
    """Protocol for tool implementations."""

    name: str
    description: str
    parameters_schema: Dict[str, Any]

    async def execute(self, arguments: str) -> Any: ...


def describe(tool: Tool) -> ToolDescriptor:
    """Build the descriptor the model is given for ``tool``."""
    return ToolDescriptor(
        name=tool.name,
        description=tool.description or "",
        parameters_schema=dict(tool.parameters_schema or _EMPTY_SCHEMA),
    )


class BaseTool(Tool):
    """Convenience base class for tools taking a JSON object as arguments.

    Subclasses set ``name``/``description``/``parameters_schema`` and
    implement ``run``.
    """

    name: str = ""
    description: str = ""
    parameters_schema: Dict[str, Any] = _EMPTY_SCHEMA

    async def execute(self, arguments: str) -> Any:
        return await self.run(self.parse_arguments(arguments))

    async def run(self, args: Dict[str, Any]) -> Any:
        raise NotImplementedError

    @staticmethod
    def parse_arguments(arguments: Optional[str]) -> Dict[str, Any]:
        """
        Decode JSON argument text.

        Raises:
            ValueError: If the text is not valid JSON or not an object.
        """
        if arguments is None or not arguments.strip():
            return {}
        try:
            parsed = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid tool arguments: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError("tool arguments must be a JSON object")
        return parsed

    @staticmethod
    def get_string(args: Dict[str, Any], key: str, default: Optional[str] = None) -> Optional[str]:
        value = args.get(key)
        return default if value is None else str(value)

    @staticmethod
    def get_int(args: Dict[str, Any], key: str, default: Optional[int] = None) -> Optional[int]:
        value = args.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    @staticmethod
    def get_bool(args: Dict[str, Any], key: str, default: bool = False) -> bool:
        value = args.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        return bool(value)

    def descriptor(self) -> ToolDescriptor:
        return describe(self)


class FunctionTool(BaseTool):
    """Expose a Python function as a tool.

    The function's parameters become the tool's JSON schema; incoming
    arguments are validated against a pydantic model generated from the
    signature before the function is called.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        self._func = func
        self.name = name or func.__name__
        self.description = description or (inspect.getdoc(func) or "").split("\n\n")[0]
        self._args_model = self._build_args_model(func)
        self.parameters_schema = self._args_model.model_json_schema()

    def _build_args_model(self, func: Callable[..., Any]) -> Type[BaseModel]:
        hints = get_type_hints(func)
        fields: Dict[str, Any] = {}
        for param in inspect.signature(func).parameters.values():
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue
            annotation = hints.get(param.name, Any)
            default = ... if param.default is inspect.Parameter.empty else param.default
            fields[param.name] = (annotation, default)
        model_name = "".join(part.capitalize() for part in self.name.split("_")) + "Arguments"
        return create_model(model_name, **fields)

    async def run(self, args: Dict[str, Any]) -> Any:
        validated = self._args_model.model_validate(args)
        kwargs = {field: getattr(validated, field) for field in self._args_model.model_fields}
        result = self._func(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result


def tool(
    func: Optional[Callable[..., Any]] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Any:
    """Decorator turning a function into a ``FunctionTool``.

    Usable bare (``@tool``) or with overrides (``@tool(name="weather")``).
    """

    def _wrap(fn: Callable[..., Any]) -> FunctionTool:
        return FunctionTool(fn, name=name, description=description)

    if func is not None:
        return _wrap(func)
    return _wrap
