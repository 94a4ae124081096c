"""Interrupts and the commands that resume them.

An interrupt is a deliberate, middleware-requested pause. The loop persists
the state, stamps the interrupt with the thread and checkpoint it was saved
under, and returns it on the response. The caller later answers with the
matching command.

Variants
--------

============================  ===============================
Interrupt (``kind``)          Command (``kind``)
============================  ===============================
``ToolApprovalInterrupt``     ``ApprovalInterruptCommand``
(``"tool_approval"``)         (``"approval"``)
``RateLimitInterrupt``        ``RateLimitWaitCommand``
(``"rate_limit"``)            (``"rate_limit_wait"``)
============================  ===============================

Adding a variant means adding both models here and a branch in
``Agent.resume_command``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union
from uuid import uuid4

from pydantic import ConfigDict, Field

from .approval import ApprovalRequest
from .base import BaseSchema, _utc_now
from .messages import ToolCall


def _interrupt_id() -> str:
    return f"interrupt_{uuid4().hex}"


class _InterruptBase(BaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    interrupt_id: str = Field(default_factory=_interrupt_id)
    thread_id: Optional[str] = None
    checkpoint_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utc_now)

    def with_checkpoint(self, *, thread_id: Optional[str], checkpoint_id: Optional[str]):
        return self.model_copy(update={"thread_id": thread_id, "checkpoint_id": checkpoint_id})


class ToolApprovalInterrupt(_InterruptBase):
    """A tool call is waiting for an operator decision."""

    kind: Literal["tool_approval"] = "tool_approval"
    tool_call: ToolCall

    @property
    def description(self) -> str:
        return f"waiting for tool approval: {self.tool_call.name}"

    def to_approval_request(self) -> ApprovalRequest:
        return ApprovalRequest.from_tool_call(self.tool_call, self.thread_id, self.checkpoint_id)

    def to_command(self, approval: ApprovalRequest) -> "ApprovalInterruptCommand":
        return ApprovalInterruptCommand(
            interrupt_id=self.interrupt_id,
            thread_id=self.thread_id,
            checkpoint_id=self.checkpoint_id,
            approval=approval,
        )


class RateLimitInterrupt(_InterruptBase):
    """Execution must wait before the gated tool call may run."""

    kind: Literal["rate_limit"] = "rate_limit"
    retry_after_seconds: float = Field(ge=0)
    tool_call: Optional[ToolCall] = None

    @property
    def description(self) -> str:
        return f"rate limited, retry in {self.retry_after_seconds:g} seconds"

    def to_command(self) -> "RateLimitWaitCommand":
        return RateLimitWaitCommand(
            interrupt_id=self.interrupt_id,
            thread_id=self.thread_id,
            checkpoint_id=self.checkpoint_id,
            retry_after_seconds=self.retry_after_seconds,
            tool_call=self.tool_call,
        )


Interrupt = Annotated[
    Union[ToolApprovalInterrupt, RateLimitInterrupt],
    Field(discriminator="kind"),
]


class _CommandBase(BaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    interrupt_id: str
    thread_id: Optional[str] = None
    checkpoint_id: Optional[str] = None


class ApprovalInterruptCommand(_CommandBase):
    kind: Literal["approval"] = "approval"
    approval: ApprovalRequest


class RateLimitWaitCommand(_CommandBase):
    kind: Literal["rate_limit_wait"] = "rate_limit_wait"
    retry_after_seconds: float = Field(default=0.0, ge=0)
    tool_call: Optional[ToolCall] = None


InterruptCommand = Annotated[
    Union[ApprovalInterruptCommand, RateLimitWaitCommand],
    Field(discriminator="kind"),
]
