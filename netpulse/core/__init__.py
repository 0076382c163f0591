"""
Core module: Configuration, logging, and exception handling.
"""

from .config import Config, config
from .exceptions import (
    AnalyticsError,
    ConfigurationError,
    InsufficientDataError,
    InsufficientTrainingDataError,
    InvalidInputError,
)

__all__ = [
    "Config",
    "config",
    "AnalyticsError",
    "ConfigurationError",
    "InsufficientDataError",
    "InsufficientTrainingDataError",
    "InvalidInputError",
]
