"""Error taxonomy for retrieval sessions.

Only AuthFailure is fatal to a session; every other backend error is absorbed by
the tiered retrieval loop and recorded in the escalation trail.
"""

from enum import StrEnum


class MetaSearchError(Exception):
    """Base class for all errors raised by this package."""


class QueryValidationError(MetaSearchError, ValueError):
    """Malformed or oversized query, rejected before any backend call."""


class BackendErrorKind(StrEnum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    AUTH_FAILURE = "auth_failure"
    UNREACHABLE = "unreachable"
    MALFORMED = "malformed"


class BackendError(MetaSearchError):
    """Typed failure from a search provider."""

    def __init__(self, kind: BackendErrorKind, source: str = "", message: str = ""):
        self.kind = BackendErrorKind(kind)
        self.source = source
        self.message = message
        detail = f": {message}" if message else ""
        super().__init__(f"{source or 'backend'} {self.kind.value}{detail}")

    @property
    def is_fatal(self) -> bool:
        return self.kind == BackendErrorKind.AUTH_FAILURE


class AuthFailureError(BackendError):
    """Credentials rejected. Retrying with the same credential cannot succeed."""

    def __init__(self, source: str = "", message: str = ""):
        super().__init__(BackendErrorKind.AUTH_FAILURE, source, message)


def error_from_status(status_code: int, source: str, body: str = "") -> BackendError:
    """Map a non-success HTTP status to a typed backend error."""
    message = f"HTTP {status_code}"
    body = (body or "").strip()
    if body:
        message = f"{message}: {body[:200]}"
    if status_code in (401, 403):
        return AuthFailureError(source, message)
    if status_code == 429:
        return BackendError(BackendErrorKind.RATE_LIMITED, source, message)
    if status_code in (408, 504):
        return BackendError(BackendErrorKind.TIMEOUT, source, message)
    if status_code >= 500:
        return BackendError(BackendErrorKind.UNREACHABLE, source, message)
    return BackendError(BackendErrorKind.MALFORMED, source, message)
