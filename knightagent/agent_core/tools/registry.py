"""Tool registry and invoker.

``ToolInvoker`` maps tool names to implementations and executes ``ToolCall``
values against them. It is the only place where tools run, so it is also the
place that guarantees tool failures never escape as exceptions:

- an unknown tool name yields an error ``ToolResult``;
- a tool that raises yields an error ``ToolResult`` carrying the message;
- a tool exceeding the per-call timeout yields an error ``ToolResult``.

Cancellation (``asyncio.CancelledError``) is not a tool failure and propagates.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel

from knightagent.core.logging_config import get_logger

from ..errors import ToolExecutionError
from ..schemas.config import ToolDescriptor
from ..schemas.messages import ToolCall, ToolResult
from .base import Tool, describe

logger = get_logger(__name__)


def _stringify(output: Any) -> str:
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    if isinstance(output, BaseModel):
        return output.model_dump_json()
    try:
        return json.dumps(output, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(output)


class ToolInvoker:
    """
    In-memory mapping of tool names to implementations, plus execution.

    Notes:
        - ``register`` overwrites any existing tool with the same name.
        - ``get`` raises ``KeyError`` for unknown names; ``invoke`` does not.
    """

    def __init__(self, tools: Optional[Iterable[Tool]] = None, *, timeout_seconds: Optional[float] = None) -> None:
        """
        Initialize the invoker.

        Args:
            tools: Tools to register up front.
            timeout_seconds: Default deadline for a single tool call.
        """
        self._tools: Dict[str, Tool] = {}
        self.timeout_seconds = timeout_seconds
        if tools is not None:
            self.register_all(tools)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, tool: Tool) -> None:
        """
        Register a tool implementation.

        Raises:
            ValueError: If the tool has no name.
        """
        name = getattr(tool, "name", None)
        if not name or not str(name).strip():
            raise ValueError("tool name must not be empty")
        if name in self._tools:
            logger.warning(f"Replacing already registered tool '{name}'")
        self._tools[name] = tool
        logger.debug(f"Registered tool '{name}'")

    def register_all(self, tools: Iterable[Tool]) -> None:
        for t in tools:
            self.register(t)

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Tool:
        return self._tools[name]

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    def get_tools(self) -> List[ToolDescriptor]:
        """Descriptors of all registered tools, in registration order."""
        return [describe(t) for t in self._tools.values()]

    def clear(self) -> None:
        self._tools.clear()

    def __len__(self) -> int:
        return len(self._tools)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def invoke(self, call: ToolCall, *, timeout_seconds: Optional[float] = None) -> ToolResult:
        """
        Execute one tool call.

        Args:
            call: The call requested by the model.
            timeout_seconds: Overrides the invoker's default deadline.

        Returns:
            The tool's result; failures are returned with ``error=True``.
        """
        tool = self._tools.get(call.name)
        if tool is None:
            logger.warning(f"Tool call {call.id} requested unknown tool '{call.name}'")
            return ToolResult.failure(call.id, f"tool '{call.name}' does not exist")

        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        started = time.perf_counter()
        try:
            pending = tool.execute(call.arguments)
            output = await (asyncio.wait_for(pending, timeout) if timeout else pending)
        except asyncio.TimeoutError:
            logger.warning(f"Tool '{call.name}' ({call.id}) timed out after {timeout}s")
            return ToolResult.failure(call.id, f"tool '{call.name}' timed out after {timeout:g} seconds")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = ToolExecutionError(call.name, call.id, str(e) or type(e).__name__)
            logger.warning(f"{err}", exc_info=True)
            return ToolResult.failure(call.id, err.reason)
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.debug(f"Tool '{call.name}' ({call.id}) finished in {duration_ms:.1f}ms")

        if isinstance(output, ToolResult):
            return output.model_copy(update={"tool_call_id": call.id})
        return ToolResult.success(call.id, _stringify(output))

    async def invoke_all(self, calls: Iterable[ToolCall]) -> List[ToolResult]:
        """Execute calls one after another, preserving their order."""
        results: List[ToolResult] = []
        for call in calls:
            results.append(await self.invoke(call))
        return results
