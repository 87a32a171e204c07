"""
Exception taxonomy for the content scanner.

InvalidPattern and RemoteUnavailable abort a scan. RemoteError is fatal only
to the branch (project, repository or file) that raised it. CacheUnavailable
never fails a request.
"""

from typing import Optional


class ScannerError(Exception):
    """Base class for all scanner errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidPattern(ScannerError):
    """A search pattern does not compile as a regular expression."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"invalid pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class RemoteUnavailable(ScannerError):
    """The catalog service cannot be reached or rejected the session."""

    def __init__(self, message: str = "unable to connect to azure devops"):
        super().__init__(message)


class RemoteError(ScannerError):
    """A listing or fetch call returned a well-formed failure response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CacheUnavailable(ScannerError):
    """The result cache could not be read or written."""
