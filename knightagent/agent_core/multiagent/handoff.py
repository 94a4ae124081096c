"""Handoff signals exchanged between agents of a ``MultiAgentSystem``.

An agent passes control to another agent by writing a directive into its
output. Two spellings are recognised:

- ``HANDOFF:<agent>:<message>``
- ``[HANDOFF <agent>] <message>``

A target of ``FINAL`` or ``END`` (any case) ends the run.
"""

from __future__ import annotations

import re
from typing import Optional

from ..schemas.base import BaseSchema

FINAL = "FINAL"

_FINAL_TARGETS = {"FINAL", "END"}
_COLON_DIRECTIVE = re.compile(r"HANDOFF:\s*([^:\s]+)\s*(?::(.*))?", re.DOTALL)
_BRACKET_DIRECTIVE = re.compile(r"\[HANDOFF\s+([^\]]+?)\s*\](.*)", re.DOTALL)


class AgentHandoff(BaseSchema):
    """Transfer of control from one agent node to another.

    Attributes:
        from_agent: Name of the node handing off, when known.
        to_agent: Target node name; ``None`` or ``FINAL`` ends the run.
        message: Note passed to the target (progress, next steps).
        reason: Why the handoff happened, for logs.
    """

    from_agent: Optional[str] = None
    to_agent: Optional[str] = None
    message: str = ""
    reason: Optional[str] = None

    @property
    def is_final(self) -> bool:
        return self.to_agent is None or self.to_agent.upper() in _FINAL_TARGETS

    @classmethod
    def finish(cls, message: str = "", reason: str = "task complete") -> "AgentHandoff":
        return cls(to_agent=FINAL, message=message, reason=reason)

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["AgentHandoff"]:
        """Extract the first handoff directive from an agent's output."""
        if not text:
            return None
        match = _COLON_DIRECTIVE.search(text)
        if match is not None:
            return cls(to_agent=match.group(1).strip(), message=(match.group(2) or "").strip())
        match = _BRACKET_DIRECTIVE.search(text)
        if match is not None:
            return cls(to_agent=match.group(1).strip(), message=match.group(2).strip())
        return None

    def to_directive(self) -> str:
        target = FINAL if self.is_final else self.to_agent
        return f"HANDOFF:{target}:{self.message}"

    def describe(self) -> str:
        text = "Handoff"
        if self.from_agent:
            text += f" from {self.from_agent}"
        if self.to_agent:
            text += f" to {self.to_agent}"
        if self.reason:
            text += f" ({self.reason})"
        if self.message:
            text += f": {self.message}"
        return text

    def __str__(self) -> str:
        return self.describe()
