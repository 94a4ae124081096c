"""Approval request model.

An ``ApprovalRequest`` is handed to an operator when a middleware gates a
tool call. The operator records a decision on it and passes it back to
``Agent.resume``:

- ``allow()``: run the captured call unchanged.
- ``reject(reason)``: do not run it; the model sees an error tool message
  carrying the reason.
- ``edit(arguments)``: run the call with operator-supplied arguments.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import uuid4

from pydantic import Field

from .base import BaseSchema, _utc_now
from .messages import ToolCall

DEFAULT_REJECT_REASON = "user rejected the operation"


class ApprovalDecision(str, Enum):
    allow = "allow"
    reject = "reject"
    edit = "edit"


class ApprovalRequest(BaseSchema):
    """A pending (or decided) approval for one tool call."""

    approval_id: str = Field(default_factory=lambda: f"approve_{uuid4().hex}")
    thread_id: Optional[str] = None
    checkpoint_id: Optional[str] = None
    tool_call: ToolCall
    decision: Optional[ApprovalDecision] = None
    reject_reason: Optional[str] = None
    modified_arguments: Optional[str] = None
    created_at: datetime = Field(default_factory=_utc_now)

    @classmethod
    def from_tool_call(
        cls,
        tool_call: ToolCall,
        thread_id: Optional[str] = None,
        checkpoint_id: Optional[str] = None,
    ) -> "ApprovalRequest":
        return cls(tool_call=tool_call, thread_id=thread_id, checkpoint_id=checkpoint_id)

    @property
    def tool_name(self) -> str:
        return self.tool_call.name

    @property
    def original_arguments(self) -> str:
        return self.tool_call.arguments

    @property
    def is_processed(self) -> bool:
        return self.decision is not None

    @property
    def final_arguments(self) -> str:
        """Arguments the tool will actually receive."""
        if self.decision == ApprovalDecision.edit and self.modified_arguments is not None:
            return self.modified_arguments
        return self.tool_call.arguments

    def allow(self) -> "ApprovalRequest":
        self.decision = ApprovalDecision.allow
        return self

    def reject(self, reason: Optional[str] = None) -> "ApprovalRequest":
        self.decision = ApprovalDecision.reject
        self.reject_reason = reason
        return self

    def edit(self, arguments: Union[str, Dict[str, Any]]) -> "ApprovalRequest":
        self.decision = ApprovalDecision.edit
        self.modified_arguments = arguments if isinstance(arguments, str) else json.dumps(arguments, ensure_ascii=False)
        return self
