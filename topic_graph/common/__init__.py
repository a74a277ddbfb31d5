"""
Shared configuration and logging helpers.
"""

from .config import Settings, load_config, load_settings
from .logging_utils import setup_logging

__all__ = [
    "Settings",
    "load_config",
    "load_settings",
    "setup_logging",
]
