"""Exceptions raised by data sources and the store."""

from typing import Optional


class FilterSyncError(Exception):
    """Base class for package errors."""


class ApiError(FilterSyncError):
    """Server-reported failure. The message is shown to the user as-is."""

    def __init__(self, status: int, message: Optional[str] = None) -> None:
        self.status = status
        self.message = message or f"HTTP error! status: {status}"
        super().__init__(self.message)


class TransportError(FilterSyncError):
    """Generic failure to reach the data layer; safe to retry."""
