"""
Configuration Settings.

This module defines the process-wide configuration using Pydantic's BaseSettings.
Values are read from environment variables and an optional ``.env`` file; every
field is bound to a ``KNIGHTAGENT_*`` variable through its alias.

Per-agent behavior (iteration limits, prompts, middlewares) lives on
``knightagent.agent_core.schemas.config.AgentConfig``. The settings here only
provide the defaults such a config is seeded with, plus logging, database and
monitoring switches that are shared by every agent in the process.
"""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", alias="KNIGHTAGENT_LOG_LEVEL", description="Root console log level")
    format: str = Field(
        default="detailed", alias="KNIGHTAGENT_LOG_FORMAT", description="Log format (simple, detailed or json)"
    )
    file_dir: str = Field(default="logs", alias="KNIGHTAGENT_LOG_FILE_DIR", description="Directory for log files")
    enable_file: bool = Field(
        default=False, alias="KNIGHTAGENT_ENABLE_FILE_LOGGING", description="Also write logs to a file"
    )

    model_config = {"populate_by_name": True}


class AgentDefaultsConfig(BaseModel):
    """Defaults applied to agents built without an explicit config."""

    max_iterations: int = Field(
        default=10, alias="KNIGHTAGENT_MAX_ITERATIONS", description="Model calls allowed per invoke"
    )
    timeout_seconds: float = Field(
        default=120.0, alias="KNIGHTAGENT_TIMEOUT_SECONDS", description="Deadline for one invoke or resume call"
    )
    tool_timeout_seconds: Optional[float] = Field(
        default=None, alias="KNIGHTAGENT_TOOL_TIMEOUT_SECONDS", description="Deadline for a single tool call"
    )
    checkpoint_enabled: bool = Field(
        default=True, alias="KNIGHTAGENT_CHECKPOINT_ENABLED", description="Persist state at the end of each call"
    )

    model_config = {"populate_by_name": True}


class MonitoringConfig(BaseModel):
    """Logfire monitoring configuration."""

    enabled: bool = Field(default=False, alias="LOGFIRE_ENABLED", description="Enable Logfire tracing")
    token: Optional[str] = Field(default=None, alias="LOGFIRE_TOKEN", description="Logfire write token")
    service_name: str = Field(default="knightagent", alias="LOGFIRE_SERVICE_NAME", description="Service name")
    environment: str = Field(default="development", alias="LOGFIRE_ENVIRONMENT", description="Deployment environment")
    trace_pydantic_ai: bool = Field(
        default=True, alias="LOGFIRE_TRACE_PYDANTIC_AI", description="Instrument pydantic-ai model calls"
    )
    trace_sqlalchemy: bool = Field(
        default=True, alias="LOGFIRE_TRACE_SQLALCHEMY", description="Instrument SQLAlchemy checkpoint queries"
    )
    trace_httpx: bool = Field(default=True, alias="LOGFIRE_TRACE_HTTPX", description="Instrument httpx requests")

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class KnightAgentSettings(BaseSettings):
    """
    Process-wide settings model.

    All properties are automatically bound from environment variables and .env file.
    Grouped views (``logging``, ``agent_defaults``, ``monitoring``) are derived
    from the flat alias-bound fields.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # =====================================================================
    # Logging
    # =====================================================================
    log_level: str = Field(default="INFO", alias="KNIGHTAGENT_LOG_LEVEL")
    log_format: str = Field(default="detailed", alias="KNIGHTAGENT_LOG_FORMAT")
    log_file_dir: str = Field(default="logs", alias="KNIGHTAGENT_LOG_FILE_DIR")
    enable_file_logging: bool = Field(default=False, alias="KNIGHTAGENT_ENABLE_FILE_LOGGING")

    # =====================================================================
    # Checkpoint Database
    # =====================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./knightagent.db",
        alias="KNIGHTAGENT_DATABASE_URL",
        description="Async SQLAlchemy URL used by the durable checkpointer",
    )

    # =====================================================================
    # Agent Defaults
    # =====================================================================
    max_iterations: int = Field(default=10, alias="KNIGHTAGENT_MAX_ITERATIONS")
    timeout_seconds: float = Field(default=120.0, alias="KNIGHTAGENT_TIMEOUT_SECONDS")
    tool_timeout_seconds: Optional[float] = Field(default=None, alias="KNIGHTAGENT_TOOL_TIMEOUT_SECONDS")
    checkpoint_enabled: bool = Field(default=True, alias="KNIGHTAGENT_CHECKPOINT_ENABLED")

    # =====================================================================
    # Monitoring
    # =====================================================================
    logfire_enabled: bool = Field(default=False, alias="LOGFIRE_ENABLED")
    logfire_token: Optional[str] = Field(default=None, alias="LOGFIRE_TOKEN")
    logfire_service_name: str = Field(default="knightagent", alias="LOGFIRE_SERVICE_NAME")
    logfire_environment: str = Field(default="development", alias="LOGFIRE_ENVIRONMENT")
    logfire_trace_pydantic_ai: bool = Field(default=True, alias="LOGFIRE_TRACE_PYDANTIC_AI")
    logfire_trace_sqlalchemy: bool = Field(default=True, alias="LOGFIRE_TRACE_SQLALCHEMY")
    logfire_trace_httpx: bool = Field(default=True, alias="LOGFIRE_TRACE_HTTPX")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration."""
        return LoggingConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def agent_defaults(self) -> AgentDefaultsConfig:
        """Get default agent limits."""
        return AgentDefaultsConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def monitoring(self) -> MonitoringConfig:
        """Get Logfire monitoring configuration."""
        return MonitoringConfig.model_validate(self.model_dump(by_alias=True))


@lru_cache(maxsize=1)
def get_settings() -> KnightAgentSettings:
    """Return the cached process-wide settings instance."""
    return KnightAgentSettings()
