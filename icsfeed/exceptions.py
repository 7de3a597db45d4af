"""Feed-specific exceptions for error handling."""

from typing import Optional


class FeedError(Exception):
    """Base exception for feed ingestion errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FeedNetworkError(FeedError):
    """Exception raised when a feed cannot be downloaded (timeout, transport, HTTP status)."""


class FeedParseError(FeedError):
    """Exception raised when a VEVENT block or one of its fields is malformed."""


class RRuleExpansionError(FeedError):
    """Exception raised when a recurring event cannot be expanded."""


class FeedConfigError(FeedError):
    """Exception raised for an empty or invalid feed URL in configuration."""
