from __future__ import annotations

from typing import Optional


class ClassificationError(Exception):
    """Base exception for the classification core."""


class ModelCallError(ClassificationError):
    """
    The remote model call itself failed.

    status_code is the HTTP-like status when the remote side answered,
    None when the failure happened before a response existed.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(ModelCallError):
    """Rejected for quota / request rate. Recoverable by waiting."""

    def __init__(self, message: str, status_code: Optional[int] = 429):
        super().__init__(message, status_code=status_code)


class TransportError(ModelCallError):
    """Network, timeout or connection failure. Not retried."""


class MalformedResponseError(ClassificationError):
    """The remote call succeeded but the payload does not have the expected shape."""


class ClassificationCancelled(ClassificationError):
    """The retry loop was cancelled between attempts."""
