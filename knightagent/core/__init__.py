"""
Core utilities and configuration for KnightAgent.

This package provides the process-wide settings, logging configuration and
Logfire monitoring helpers shared by the agent runtime.
"""

from knightagent.core.config import KnightAgentSettings, get_settings
from knightagent.core.logging_config import get_logger, setup_logging

__all__ = ["KnightAgentSettings", "get_settings", "get_logger", "setup_logging"]
