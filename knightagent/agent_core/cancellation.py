"""Cooperative cancellation for agent calls.

A ``CancellationToken`` is handed to ``Agent.invoke``/``resume`` by a caller
that may want to abort the call from elsewhere (a user pressing stop, a
shutdown hook). The loop checks it at the top of every iteration and before
every tool invocation; once cancelled, the call behaves exactly as if a
middleware had issued a stop: pending tool calls are skipped and the call
finalizes with what it has.

Cancellation never interrupts a model call or tool call already in flight.
"""

from __future__ import annotations

from typing import Optional


class CancellationToken:
    """One-shot, thread-safe-enough flag with an optional reason."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason or "cancelled"

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._reason
