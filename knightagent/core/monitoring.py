"""
Monitoring and Tracing Configuration Module.

This module provides integration with Pydantic Logfire for tracing agent
executions:
- Agent invoke/resume start and completion
- LLM model calls and token usage
- Checkpoint database operations (SQLAlchemy instrumentation)
- Outgoing HTTP requests made by model providers (httpx instrumentation)

Nothing is emitted until ``initialize_logfire`` has configured Logfire; the
``log_*`` helpers are no-ops before that, so library users who never enable
monitoring see no console output from Logfire.
"""

import logging
from typing import Any, Optional

import logfire

from knightagent.core.config import KnightAgentSettings, get_settings

logger = logging.getLogger(__name__)

_configured = False


def initialize_logfire(settings: Optional[KnightAgentSettings] = None) -> bool:
    """
    Initialize Pydantic Logfire for monitoring and tracing.

    The initialization is conditional on ``LOGFIRE_ENABLED`` and requires a
    ``LOGFIRE_TOKEN``.

    Args:
        settings: Settings to read from. Defaults to the process-wide settings.

    Returns:
        True when Logfire was configured.
    """
    global _configured

    cfg = (settings or get_settings()).monitoring
    if not cfg.enabled:
        logger.info("Logfire monitoring is disabled. Set LOGFIRE_ENABLED=true to enable.")
        return False

    if not cfg.token:
        logger.warning(
            "Logfire is enabled but LOGFIRE_TOKEN is not set. "
            "Monitoring will not work. Set LOGFIRE_TOKEN to enable Logfire."
        )
        return False

    logfire.configure(
        token=cfg.token,
        service_name=cfg.service_name,
        environment=cfg.environment,
    )

    if cfg.trace_pydantic_ai:
        try:
            logfire.instrument_pydantic_ai()
            logger.info("Logfire: Pydantic AI instrumentation enabled")
        except Exception as e:
            logger.warning(f"Failed to instrument Pydantic AI: {e}")

    if cfg.trace_sqlalchemy:
        try:
            logfire.instrument_sqlalchemy()
            logger.info("Logfire: SQLAlchemy instrumentation enabled")
        except Exception as e:
            logger.warning(f"Failed to instrument SQLAlchemy: {e}")

    if cfg.trace_httpx:
        try:
            logfire.instrument_httpx()
            logger.info("Logfire: HTTPX instrumentation enabled")
        except Exception as e:
            logger.warning(f"Failed to instrument HTTPX: {e}")

    _configured = True
    logger.info(f"Logfire monitoring initialized: service={cfg.service_name}, environment={cfg.environment}")
    return True


def is_enabled() -> bool:
    """Whether Logfire has been configured in this process."""
    return _configured


def log_agent_invoke(agent_name: str, thread_id: Optional[str], *, resumed: bool = False) -> None:
    """
    Log the start of an agent invoke or resume.

    Args:
        agent_name: The configured agent name
        thread_id: The conversation thread, if any
        resumed: True when the call resumes an interrupted execution
    """
    if not _configured:
        return
    logfire.info("Agent invoke started", agent=agent_name, thread_id=thread_id, resumed=resumed)


def log_agent_completion(agent_name: str, thread_id: Optional[str], status: str, duration_ms: float) -> None:
    """
    Log the end of an agent invoke or resume.

    Args:
        agent_name: The configured agent name
        thread_id: The conversation thread, if any
        status: The terminal ``AgentStatus`` value
        duration_ms: Wall-clock duration of the call in milliseconds
    """
    if not _configured:
        return
    logfire.info(
        "Agent invoke completed",
        agent=agent_name,
        thread_id=thread_id,
        status=status,
        duration_ms=duration_ms,
    )


def log_model_call(model: str, tokens_used: Optional[int], duration_ms: float) -> None:
    """
    Log a chat model call with usage metrics.

    Args:
        model: The model identifier
        tokens_used: Total tokens reported by the model, if known
        duration_ms: Call duration in milliseconds
    """
    if not _configured:
        return
    logfire.info("LLM call completed", model=model, tokens_used=tokens_used, duration_ms=duration_ms)


def log_error(error_type: str, error_message: str, context: Optional[dict[str, Any]] = None) -> None:
    """
    Log an error with context for debugging.

    Args:
        error_type: Type of error
        error_message: Error message
        context: Additional context dictionary
    """
    if not _configured:
        return
    logfire.error(f"{error_type}: {error_message}", **(context or {}))
