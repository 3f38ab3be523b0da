"""
Utilities Module
================

Common utilities shared across the application:
- logger: Leveled, colored logging with per-component context
- config: Environment configuration loading and validation
"""

from triage_bot.utils.logger import Logger, logger, set_log_level
from triage_bot.utils.config import get_config, Config

__all__ = ["Logger", "logger", "set_log_level", "get_config", "Config"]
