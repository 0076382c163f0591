"""
Custom exceptions for NetPulse analytics.

Every exception carries a stable ``code`` so callers outside the core can map
failures to their own responses without matching on message text.
"""


class AnalyticsError(Exception):
    """Base exception for analytics failures."""

    code = "ANALYTICS_ERROR"


class InvalidInputError(AnalyticsError):
    """Raised when a metrics batch or series is null or malformed."""

    code = "INVALID_INPUT"


class InsufficientDataError(AnalyticsError):
    """Raised when a component receives too few samples to compute a result."""

    code = "INSUFFICIENT_DATA"


class InsufficientTrainingDataError(InsufficientDataError):
    """Raised when a forecast model cannot be trained from the given history."""

    code = "INSUFFICIENT_TRAINING_DATA"


class ConfigurationError(AnalyticsError):
    """Raised when configuration is invalid or missing."""

    code = "CONFIGURATION_ERROR"
