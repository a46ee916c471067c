"""Error taxonomy shared by the scan engine, the CLI and the web layer."""

from __future__ import annotations


class ScanError(Exception):
    """Base class for every error the engine raises on purpose."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ScanError):
    """Malformed caller input or an invalid pattern. Never retried."""

    status_code = 400


class NotFoundError(ScanError):
    """Missing local directory or remote repository."""

    status_code = 404


class RateLimitedError(ScanError):
    """Provider quota exhausted before any useful data came back."""

    status_code = 429

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after
        self.remaining = 0


class DecodeError(ScanError):
    """A single file is not valid text. Recovered by skipping the file."""

    status_code = 422

    def __init__(self, path: str, reason: str = "") -> None:
        super().__init__(f"Cannot decode {path}: {reason}" if reason else f"Cannot decode {path}")
        self.path = path


class ProviderError(ScanError):
    """The hosting API answered with something we cannot use."""

    status_code = 502


class ScanTimeoutError(ScanError, TimeoutError):
    """The caller-imposed deadline expired. No partial result is kept."""

    status_code = 504
