"""Error types for the agent runtime.

Defines the exception hierarchy raised by the execution loop and its
collaborators.

Propagation
-----------

- Tool failures are recovered inside ``ToolInvoker`` and become error
  ``ToolResult`` values; ``ToolExecutionError`` only describes them.
- ``ModelError`` and ``CheckpointError`` abort the current call. The loop
  re-raises them as ``AgentExecutionError`` with a matching ``code`` and the
  original error as ``__cause__``.
- ``MiddlewareError`` is fatal for ``before_*`` hooks and logged-and-dropped
  for ``after_*`` hooks.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional


class KnightAgentError(Exception):
    """Base error for all agent runtime exceptions."""


class ModelErrorCode(str, Enum):
    """Machine-readable reason for a failed model call."""

    bad_request = "bad_request"
    unauthorized = "unauthorized"
    forbidden = "forbidden"
    not_found = "not_found"
    rate_limit_exceeded = "rate_limit_exceeded"
    service_error = "service_error"
    timeout = "timeout"
    connection_error = "connection_error"
    invalid_response = "invalid_response"
    model_error = "model_error"


_RETRYABLE_MODEL_CODES = {
    ModelErrorCode.timeout,
    ModelErrorCode.rate_limit_exceeded,
    ModelErrorCode.service_error,
    ModelErrorCode.connection_error,
}


class ModelError(KnightAgentError):
    """Raised when a chat model call fails.

    Args:
        message: Human-readable error description.
        code: Classified failure reason.
        status_code: Optional HTTP status code reported by the provider.
    """

    def __init__(
        self,
        message: str,
        *,
        code: ModelErrorCode = ModelErrorCode.model_error,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.code in _RETRYABLE_MODEL_CODES

    @classmethod
    def from_status_code(cls, status_code: int, message: str) -> "ModelError":
        """Classify a provider HTTP failure."""
        if status_code == 400:
            code = ModelErrorCode.bad_request
        elif status_code == 401:
            code = ModelErrorCode.unauthorized
        elif status_code == 403:
            code = ModelErrorCode.forbidden
        elif status_code == 404:
            code = ModelErrorCode.not_found
        elif status_code == 429:
            code = ModelErrorCode.rate_limit_exceeded
        elif status_code >= 500:
            code = ModelErrorCode.service_error
        else:
            code = ModelErrorCode.model_error
        return cls(message, code=code, status_code=status_code)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ModelError":
        """Classify an arbitrary exception raised by a model client."""
        if isinstance(exc, ModelError):
            return exc
        status_code = getattr(exc, "status_code", None)
        if isinstance(status_code, int):
            return cls.from_status_code(status_code, str(exc) or type(exc).__name__)
        if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
            return cls(str(exc) or "model call timed out", code=ModelErrorCode.timeout)
        if isinstance(exc, ConnectionError):
            return cls(str(exc) or "connection to model failed", code=ModelErrorCode.connection_error)
        return cls(str(exc) or type(exc).__name__)


class ToolExecutionError(KnightAgentError):
    """Describes a tool that raised instead of returning a result."""

    def __init__(self, tool_name: str, tool_call_id: Optional[str], message: str) -> None:
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name
        self.tool_call_id = tool_call_id
        self.reason = message


class CheckpointErrorKind(str, Enum):
    """Failure classes of checkpoint storage."""

    io = "io"
    serialization = "serialization"
    timeout = "timeout"
    not_found = "not_found"


class CheckpointError(KnightAgentError):
    """Raised by ``Checkpointer`` implementations.

    Only ``io`` and ``timeout`` failures are worth retrying; a payload that
    cannot be (de)serialized or a checkpoint that does not exist will fail the
    same way again.
    """

    def __init__(self, message: str, *, kind: CheckpointErrorKind = CheckpointErrorKind.io) -> None:
        super().__init__(message)
        self.kind = kind

    @property
    def retryable(self) -> bool:
        return self.kind in (CheckpointErrorKind.io, CheckpointErrorKind.timeout)

    @classmethod
    def io_error(cls, message: str) -> "CheckpointError":
        return cls(message, kind=CheckpointErrorKind.io)

    @classmethod
    def serialization_error(cls, message: str) -> "CheckpointError":
        return cls(message, kind=CheckpointErrorKind.serialization)

    @classmethod
    def timeout(cls, message: str) -> "CheckpointError":
        return cls(message, kind=CheckpointErrorKind.timeout)

    @classmethod
    def not_found(cls, thread_id: str, checkpoint_id: str) -> "CheckpointError":
        return cls(
            f"Checkpoint '{checkpoint_id}' not found in thread '{thread_id}'",
            kind=CheckpointErrorKind.not_found,
        )


class MiddlewareError(KnightAgentError):
    """Raised when a middleware hook fails.

    ``fatal`` is True for gate hooks (``before_invoke``/``before_tool_call``)
    whose failure aborts the call.
    """

    def __init__(self, middleware: str, hook: str, message: str, *, fatal: bool = True) -> None:
        super().__init__(f"Middleware '{middleware}' failed in {hook}: {message}")
        self.middleware = middleware
        self.hook = hook
        self.fatal = fatal


class AgentErrorCode(str, Enum):
    """Machine-readable code attached to ``AgentExecutionError``."""

    model_error = "model_error"
    tool_error = "tool_error"
    checkpoint_error = "checkpoint_error"
    middleware_error = "middleware_error"
    timeout = "timeout"
    max_iterations_exceeded = "max_iterations_exceeded"
    agent_error = "agent_error"


class AgentExecutionError(KnightAgentError):
    """Raised by ``Agent`` when an invoke or resume call cannot complete."""

    def __init__(self, message: str, *, code: AgentErrorCode = AgentErrorCode.agent_error) -> None:
        super().__init__(message)
        self.code = code

    @property
    def retryable(self) -> bool:
        return self.code in (AgentErrorCode.timeout, AgentErrorCode.model_error)
