"""
Exception hierarchy for the importer.
"""


class IngestError(Exception):
    """Base class for importer failures."""


class ConfigurationError(IngestError):
    """Raised when settings are missing or invalid."""


class FlushError(IngestError):
    """Raised when a buffer flush could not be persisted; the transaction was rolled back."""

    def __init__(self, platform: str, record_count: int, message: str):
        self.platform = platform
        self.record_count = record_count
        super().__init__(f"[{platform}] flush of {record_count} records failed: {message}")


class InvalidResponseError(IngestError):
    """Raised when a platform answers with a failure envelope or an undecodable body."""


class UnmappableOrderError(IngestError, ValueError):
    """Raised when one order lacks what its warehouse rows need; only that order is skipped."""

    def __init__(self, order_id: str | None, code: str, message: str):
        self.order_id = order_id
        self.code = code
        super().__init__(message)
