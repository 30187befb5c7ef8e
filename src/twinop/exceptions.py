"""Custom exception hierarchy for twinop."""

from __future__ import annotations


class TwinOpError(Exception):
    """Base exception for all twinop errors."""


class TwinOpConfigError(TwinOpError):
    """Invalid or missing configuration."""


class TwinOpTemplateError(TwinOpConfigError):
    """Thing template could not be loaded.

    Raised at startup when the template document is unreadable, is not
    valid YAML, does not match the expected shape, or references an
    external script file that cannot be read.
    """


class TwinOpTransportError(TwinOpError):
    """HTTP-level failure (network, invalid JSON, unexpected payload)."""

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


class TwinOpApiError(TwinOpError):
    """API returned a non-success status code."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        endpoint: str = "",
        reason: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(message)


class TwinOpNotFoundError(TwinOpApiError):
    """Target object does not exist (HTTP 404)."""


class TwinOpConflictError(TwinOpApiError):
    """Object was concurrently modified by another writer (HTTP 409).

    The reconciler never surfaces this as a failure; it always maps it to
    a retry of the whole device.
    """


class TwinOpEventDecodeError(TwinOpError):
    """Event bus payload is not a structured event."""


class TwinOpEventBusError(TwinOpError):
    """Event bus connection was lost and could not be re-established."""


class TwinOpRetryExhaustedError(TwinOpError):
    """A device kept requesting retries beyond the configured attempt ceiling."""

    def __init__(self, message: str, *, device: str, attempts: int) -> None:
        self.device = device
        self.attempts = attempts
        super().__init__(message)
