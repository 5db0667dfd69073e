from typing import Optional


class BulkListError(Exception):
    """Base class for errors raised by bulklist."""


class ConfigurationError(BulkListError):
    """Required context for a run is missing, e.g. no resolvable list id."""


class RemoteError(BulkListError):
    """A single mutation call failed.

    Covers network failures, non-success HTTP statuses and API-level error
    payloads alike; ``message`` is always human-readable.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status
