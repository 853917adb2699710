"""
Domain exceptions.

Every failure of the analysis pipeline surfaces as one of the typed
exceptions below, so callers can tell "check your connection" apart from
"try a clearer photo" without parsing messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

SNIPPET_MAX_CHARS = 200


class ErrorKind(str, Enum):
    """Reportable failure classes."""

    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    PROVIDER_ERROR = "provider_error"
    TRUNCATED = "truncated"
    REJECTED = "rejected"
    MALFORMED_RESPONSE = "malformed_response"
    INVALID_SCHEMA = "invalid_schema"
    MISSING_CREDENTIALS = "missing_credentials"
    QUOTA_EXCEEDED = "quota_exceeded"
    UNAUTHORIZED = "unauthorized"


def snippet(raw: Optional[str], limit: int = SNIPPET_MAX_CHARS) -> Optional[str]:
    """Shorten raw provider text for diagnostics."""
    if raw is None:
        return None
    raw = raw.strip()
    if len(raw) <= limit:
        return raw
    return raw[: limit - 3] + "..."


# ═══════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════


class DomainError(Exception):
    """Base exception for all domain errors."""

    pass


class AnalysisError(DomainError):
    """
    Base exception for a failed food photo analysis.

    Attributes:
        kind: Failure class reported to the caller
        status: HTTP status returned by the provider, when there was one
        raw_snippet: First characters of the raw provider response
        attempt: Attempt number (1-based) that produced the failure
    """

    kind: ErrorKind = ErrorKind.PROVIDER_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        raw: Optional[str] = None,
        attempt: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.raw_snippet = snippet(raw)
        self.attempt = attempt

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"kind": self.kind.value, "message": self.message}
        if self.status is not None:
            data["status"] = self.status
        if self.attempt is not None:
            data["attempt"] = self.attempt
        return data

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"message={self.message!r}, status={self.status!r}, "
            f"attempt={self.attempt!r})"
        )


# ═══════════════════════════════════════════════════════════
# TRANSIENT FAILURES (retried by the client)
# ═══════════════════════════════════════════════════════════


class AnalysisTimeoutError(AnalysisError):
    """The provider did not answer within the wall-clock timeout."""

    kind = ErrorKind.TIMEOUT
    retryable = True


class NetworkError(AnalysisError):
    """Connection-level failure before any HTTP response arrived."""

    kind = ErrorKind.NETWORK_ERROR
    retryable = True


class ProviderError(AnalysisError):
    """
    Provider answered with a non-2xx HTTP status.

    Only 5xx and 429 are transient; 401/403/400 and friends mean the
    request itself is wrong and repeating it cannot help.

    Example:
        >>> ProviderError("upstream error", status=503).retryable
        True
        >>> ProviderError("bad key", status=401).retryable
        False
    """

    kind = ErrorKind.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        *,
        status: int,
        raw: Optional[str] = None,
        attempt: Optional[int] = None,
    ) -> None:
        super().__init__(message, status=status, raw=raw, attempt=attempt)

    @property  # type: ignore[override]
    def retryable(self) -> bool:
        return self.status is not None and (self.status >= 500 or self.status == 429)


# ═══════════════════════════════════════════════════════════
# TERMINAL FAILURES (propagated on first occurrence)
# ═══════════════════════════════════════════════════════════


class TruncatedResponseError(AnalysisError):
    """Provider stopped generating because of its output length limit."""

    kind = ErrorKind.TRUNCATED


class RejectedResponseError(AnalysisError):
    """Provider refused the content (safety filter, refusal, blocked prompt)."""

    kind = ErrorKind.REJECTED


class MalformedResponseError(AnalysisError):
    """Response text could not be parsed as a JSON object, even after repair."""

    kind = ErrorKind.MALFORMED_RESPONSE


class InvalidSchemaError(AnalysisError):
    """Parsed JSON does not match the expected analysis shape."""

    kind = ErrorKind.INVALID_SCHEMA


class MissingCredentialsError(AnalysisError):
    """No API key configured for the selected provider."""

    kind = ErrorKind.MISSING_CREDENTIALS


# ═══════════════════════════════════════════════════════════
# SERVICE-LEVEL FAILURES
# ═══════════════════════════════════════════════════════════


class QuotaExceededError(AnalysisError):
    """
    Free plan daily scan limit reached.

    Example:
        >>> raise QuotaExceededError("Daily limit of 3 scans reached", limit=3)
    """

    kind = ErrorKind.QUOTA_EXCEEDED

    def __init__(self, message: str, *, limit: int) -> None:
        super().__init__(message, status=429)
        self.limit = limit


class UnauthorizedError(AnalysisError):
    """Bearer token missing or not resolvable to a user."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, status=401)


def is_transient(exc: BaseException) -> bool:
    """Return True if a failed attempt is worth repeating."""
    return isinstance(exc, AnalysisError) and exc.retryable
