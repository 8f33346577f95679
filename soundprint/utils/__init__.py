"""
Utility modules for configuration, logging, and error handling.
"""

from soundprint.utils.errors import (
    SoundprintError,
    AudioLoadError,
    AudioDecodeError,
    UnsupportedFormatError,
    FileTooLargeError,
    ConfigurationError,
    LibraryError,
    EntryNotFoundError,
    StoreError,
    MatchCancelledError,
)
from soundprint.utils.logging import get_logger, setup_logging, JSONFormatter
from soundprint.utils.config import ConfigManager, load_config

__all__ = [
    "SoundprintError",
    "AudioLoadError",
    "AudioDecodeError",
    "UnsupportedFormatError",
    "FileTooLargeError",
    "ConfigurationError",
    "LibraryError",
    "EntryNotFoundError",
    "StoreError",
    "MatchCancelledError",
    "get_logger",
    "setup_logging",
    "JSONFormatter",
    "ConfigManager",
    "load_config",
]
