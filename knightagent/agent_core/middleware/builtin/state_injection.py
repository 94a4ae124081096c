"""Dynamic system prompt injection.

``StateInjectionMiddleware`` rewrites the request's system prompt once per
call, before the first model call, from either a template or a custom
injector function.

Templates may reference values with ``${source:key}`` placeholders:

- ``${state:key}``: ``AgentState.data[key]``
- ``${request:key}``: ``AgentRequest.parameters[key]``
- ``${context:key}``: ``AgentContext.data[key]``

Unresolvable placeholders are left in place. ``VariableMode`` limits which
sources are substituted, and ``InjectionMode`` decides how the rendered text
combines with the existing prompt:

- ``prefix``: rendered text, blank line, existing prompt.
- ``suffix``: existing prompt, blank line, rendered text (the default).
- ``replace``: substitute placeholders inside the existing prompt.
- ``override``: drop the existing prompt.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from knightagent.core.logging_config import get_logger

from ...schemas.domain import AgentRequest
from ...schemas.state import AgentState
from ..base import Middleware
from ..context import AgentContext

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\$\{(\w+):([^}]+)\}")


class InjectionMode(str, Enum):
    prefix = "prefix"
    suffix = "suffix"
    replace = "replace"
    override = "override"


class VariableMode(str, Enum):
    none = "none"
    state_only = "state_only"
    all = "all"


@dataclass(frozen=True)
class InjectionContext:
    """What a custom injector sees."""

    state: AgentState
    request: AgentRequest
    context: AgentContext


Injector = Callable[[InjectionContext], Optional[str]]


class StateInjectionMiddleware(Middleware):
    priority = 50

    def __init__(
        self,
        template: Optional[str] = None,
        *,
        injector: Optional[Injector] = None,
        injection_mode: InjectionMode = InjectionMode.suffix,
        variable_mode: VariableMode = VariableMode.all,
        trim: bool = True,
    ) -> None:
        if template is None and injector is None:
            raise ValueError("either template or injector must be provided")
        self.template = template
        self.injector = injector
        self.injection_mode = InjectionMode(injection_mode)
        self.variable_mode = VariableMode(variable_mode)
        self.trim = trim

    async def before_invoke(self, request: AgentRequest, ctx: AgentContext) -> None:
        if ctx.iteration > 0:
            return

        content = self._render(request, ctx)
        if not content or not content.strip():
            return
        if self.trim:
            content = content.strip()

        current = ctx.system_prompt
        if self.injection_mode is InjectionMode.override or not current:
            prompt = content
        elif self.injection_mode is InjectionMode.prefix:
            prompt = f"{content}\n\n{current}"
        elif self.injection_mode is InjectionMode.suffix:
            prompt = f"{current}\n\n{content}"
        else:
            prompt = self.substitute(current, request, ctx)

        ctx.request = request.model_copy(update={"system_prompt": prompt})
        logger.debug(f"injected system prompt ({self.injection_mode.value}), {len(prompt)} chars")

    def _render(self, request: AgentRequest, ctx: AgentContext) -> Optional[str]:
        if self.injector is not None:
            return self.injector(InjectionContext(state=ctx.state, request=request, context=ctx))
        return self.substitute(self.template or "", request, ctx)

    def substitute(self, text: str, request: AgentRequest, ctx: AgentContext) -> str:
        """Replace ``${source:key}`` placeholders allowed by the variable mode."""
        if self.variable_mode is VariableMode.none:
            return text

        def _replace(match: "re.Match[str]") -> str:
            value = self._resolve(match.group(1), match.group(2), request, ctx)
            return match.group(0) if value is None else str(value)

        return _PLACEHOLDER.sub(_replace, text)

    def _resolve(self, source: str, key: str, request: AgentRequest, ctx: AgentContext) -> Any:
        if source == "state":
            return ctx.state.get(key)
        if self.variable_mode is VariableMode.state_only:
            return None
        if source == "request":
            return request.parameters.get(key)
        if source == "context":
            return ctx.get(key)
        return None
