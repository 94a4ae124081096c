"""Middleware: hooks around model and tool calls.

See ``base`` for the hook contract and ``chain`` for dispatch and failure
policy.
"""

from .base import (
    CONTINUE,
    ContinueExecution,
    InterceptionResult,
    InterruptExecution,
    Middleware,
    StopExecution,
)
from .builtin import (
    ApprovalMode,
    HumanInTheLoopMiddleware,
    InjectionMode,
    LoggingMiddleware,
    RateLimitMiddleware,
    StateInjectionMiddleware,
    SummarizationMiddleware,
    VariableMode,
)
from .chain import MiddlewareChain
from .context import AgentContext

__all__ = [
    "CONTINUE",
    "ContinueExecution",
    "InterceptionResult",
    "InterruptExecution",
    "Middleware",
    "StopExecution",
    "MiddlewareChain",
    "AgentContext",
    "ApprovalMode",
    "HumanInTheLoopMiddleware",
    "InjectionMode",
    "LoggingMiddleware",
    "RateLimitMiddleware",
    "StateInjectionMiddleware",
    "SummarizationMiddleware",
    "VariableMode",
]
