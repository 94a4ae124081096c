"""Tool contract and the tool invoker.

- ``Tool``: protocol every tool implements (name, description, JSON schema,
  async ``execute``).
- ``BaseTool`` / ``FunctionTool`` / ``tool``: helpers for writing tools.
- ``ToolInvoker``: name -> tool registry whose ``invoke`` never raises for
  tool-level failures.
"""

from .base import BaseTool, FunctionTool, Tool, describe, tool
from .registry import ToolInvoker

__all__ = [
    "BaseTool",
    "FunctionTool",
    "Tool",
    "ToolInvoker",
    "describe",
    "tool",
]
