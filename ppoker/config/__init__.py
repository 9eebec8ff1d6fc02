"""
Planning Poker Configuration.

Environment variables, settings, and logging configuration.
"""

from ppoker.config.logging_config import setup_logging
from ppoker.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "setup_logging"]
