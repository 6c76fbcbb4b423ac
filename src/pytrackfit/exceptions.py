"""Custom exception hierarchy for pytrackfit."""

from __future__ import annotations


class TrackfitError(Exception):
    """Base exception for all pytrackfit errors."""


class TrackfitConfigError(TrackfitError):
    """Invalid or missing configuration."""


class ValidationError(TrackfitError):
    """Malformed entry, QR code or serialized payload.

    Raised at the API boundary; an entry that fails validation never
    enters the sync queue.
    """

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class StorageFault(TrackfitError):
    """Local key-value store unavailable or holding corrupt data.

    The core catches this, logs it and keeps operating in memory.
    """

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class TransientNetworkError(TrackfitError):
    """Upload failed for a reason that may go away (timeout, refused, 5xx)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class RemoteAuthError(TransientNetworkError):
    """Endpoint refused the credentials (HTTP 401/403).

    Retried like other transient failures: the entry itself is not at
    fault, the token is.
    """


class RemoteRejection(TrackfitError):
    """Endpoint rejected the entry as bad data (4xx-equivalent).

    Terminal for the entry: it is not retried and is surfaced as failed.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        detail: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        self.detail = detail
        super().__init__(message)
