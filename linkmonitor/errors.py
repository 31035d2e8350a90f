from typing import Optional


class MonitorError(Exception):
    """Base class for link monitor failures."""


class IngestionError(MonitorError):
    """The issue source failed with something other than end-of-pages."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StorageError(MonitorError):
    """The authoritative latest-status write failed."""
