"""
Pipeline error taxonomy.

Every failure inside the acquisition pipeline is one of these. They are
raised inside the pipeline and converted into a FetchResult at its public
boundary, so callers never see them propagate.
"""

from typing import Iterable, Optional


class UsageError(Exception):
    """Base class for all pipeline failures."""


class AuthError(UsageError):
    """Login failed: ticket exchange rejected, credentials refused or no cookie."""

    def __init__(self, reason: str, message: Optional[str] = None):
        super().__init__(message or f"Authentication failed: {reason}")
        self.reason = reason


class TokenExtractionError(UsageError):
    """Hidden per-request tokens were absent from an authenticated page."""

    def __init__(self, missing: Iterable[str]):
        self.missing = tuple(missing)
        super().__init__(f"Hidden tokens not found: {', '.join(self.missing)}")


class ParseError(UsageError):
    """Markup did not match the expected layout.

    Always names the field (or structural element) that failed.
    """

    def __init__(self, field: str, detail: Optional[object] = None):
        self.field = field
        self.detail = detail
        message = f"Could not parse '{field}'"
        if detail is not None:
            message += f": {detail}"
        super().__init__(message)


class NetworkError(UsageError):
    """Transport failure, timeout or non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CacheError(UsageError):
    """Storage read or write failure. Always non-fatal."""


class CredentialError(UsageError):
    """Stored credentials exist but cannot be decrypted or decoded."""
