"""
Utilities Module
================

Common utilities shared across the assistant:
- logger: Structured logging with levels and context
- config: Centralized configuration management
"""

from mavens.utils.logger import Logger, logger
from mavens.utils.config import get_config, reset_config, Config

__all__ = ["Logger", "logger", "get_config", "reset_config", "Config"]
