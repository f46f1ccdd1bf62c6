"""
Custom exceptions for swift-obst SDK.
"""

from typing import Optional


class ObjectsError(Exception):
    """Base exception for all swift-obst errors."""

    def __init__(self, message: str, code: str = "", original: Exception = None):
        super().__init__(message)
        self.code = code
        self.original = original

    def __str__(self):
        if self.code:
            return f"[{self.code}] {super().__str__()}"
        return super().__str__()


class TransportError(ObjectsError):
    """Raised when the HTTP call fails or returns an unexpected status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        original: Exception = None,
    ):
        code = str(status_code) if status_code is not None else ""
        super().__init__(message, code=code, original=original)
        self.status_code = status_code
        self.body = body


class ConditionalRequestFailed(ObjectsError):
    """Raised when an If-Unmodified-Since condition is not satisfied."""


class PrerequisiteMissing(ObjectsError):
    """Raised when an operation needs server-side setup that is absent."""


class DecodingError(ObjectsError):
    """Raised when a response does not have the expected shape."""
