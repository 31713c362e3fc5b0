"""Exception hierarchy for the usage analytics services."""
from typing import Optional


class UsageAnalyticsError(Exception):
    """Base class for all usage analytics errors."""


class ConfigError(UsageAnalyticsError):
    """Raised when configuration values cannot be parsed."""


class StoreConnectionError(UsageAnalyticsError):
    """Raised when the key-value store cannot be reached at startup."""


class CaptureError(UsageAnalyticsError):
    """Raised when a capture fails; names the stage that failed."""

    def __init__(self, stage: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.stage = stage
        self.cause = cause
        detail = message or (str(cause) if cause is not None else "unknown error")
        super().__init__(f"capture failed at {stage}: {detail}")


class TimeSeriesError(UsageAnalyticsError):
    """Raised when a time-series operation fails for a key."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(message)


class SeriesNotFoundError(TimeSeriesError):
    """Raised when a series does not exist or holds no samples."""
