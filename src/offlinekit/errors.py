"""Error codes and the single exception type raised across offlinekit.

A cache miss is never an error (lookups return ``None``), and a response
rejected by the admission filters is still handed back to the caller, so
neither has a code here.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    PRECACHE_FETCH_FAILED = "PRECACHE_FETCH_FAILED"
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"
    NETWORK_FAILURE = "NETWORK_FAILURE"
    NO_FALLBACK_AVAILABLE = "NO_FALLBACK_AVAILABLE"
    INVALID_STATE = "INVALID_STATE"
    STORE_NOT_FOUND = "STORE_NOT_FOUND"
    STORE_VERSION_ERROR = "STORE_VERSION_ERROR"
    STORE_IO_ERROR = "STORE_IO_ERROR"


class OfflineKitError(Exception):
    """Raised for every failure that crosses a component boundary.

    ``recoverable`` tells the caller whether retrying the same operation
    later can succeed (e.g. the network came back).
    """

    def __init__(self, code: ErrorCode, message: str, recoverable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable

    def __repr__(self) -> str:
        return f"OfflineKitError(code={self.code!s}, message={self.message!r})"
