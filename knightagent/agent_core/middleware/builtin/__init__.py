"""Built-in middlewares."""

from .human_in_the_loop import ApprovalMode, HumanInTheLoopMiddleware
from .logging_middleware import LoggingMiddleware
from .rate_limit import RateLimitMiddleware
from .state_injection import InjectionContext, InjectionMode, StateInjectionMiddleware, VariableMode
from .summarization import DEFAULT_SUMMARY_PROMPT, SummarizationMiddleware

__all__ = [
    "ApprovalMode",
    "HumanInTheLoopMiddleware",
    "LoggingMiddleware",
    "RateLimitMiddleware",
    "InjectionContext",
    "InjectionMode",
    "StateInjectionMiddleware",
    "VariableMode",
    "DEFAULT_SUMMARY_PROMPT",
    "SummarizationMiddleware",
]
