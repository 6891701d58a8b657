"""Exceptions for the Grohe Smarthome integration."""

from __future__ import annotations

from enum import StrEnum

from .util import clip


class AuthErrorKind(StrEnum):
    """Machine-checkable reason of an authentication failure."""

    NO_REFRESH_TOKEN = "NO_REFRESH_TOKEN"
    TOKEN_FORMAT_INVALID = "TOKEN_FORMAT_INVALID"
    NO_ISSUER = "NO_ISSUER"
    TOKEN_RESPONSE_INVALID = "TOKEN_RESPONSE_INVALID"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    TOKEN_REFRESH_FAILED = "TOKEN_REFRESH_FAILED"
    # Detected on identity provider HTML pages
    RESTART_COOKIE_NOT_FOUND = "RESTART_COOKIE_NOT_FOUND"
    KEYCLOAK_SORRY_PAGE = "KEYCLOAK_SORRY_PAGE"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    MFA_REQUIRED = "MFA_REQUIRED"
    # Login flow
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    UNEXPECTED_START_RESPONSE = "UNEXPECTED_START_RESPONSE"
    AUTH_PAGE_UNEXPECTED = "AUTH_PAGE_UNEXPECTED"
    LOGIN_FORM_INVALID = "LOGIN_FORM_INVALID"
    REDIRECT_INVALID = "REDIRECT_INVALID"
    UNEXPECTED_FLOW_STATE = "UNEXPECTED_FLOW_STATE"
    TOKEN_EXCHANGE_FAILED = "TOKEN_EXCHANGE_FAILED"
    LOGIN_ATTEMPTS_EXHAUSTED = "LOGIN_ATTEMPTS_EXHAUSTED"


# Transient failures are retried on the next setup attempt or poll.
TRANSIENT_AUTH_ERRORS = frozenset({AuthErrorKind.TOKEN_REFRESH_FAILED})


class GroheApiError(Exception):
    """General API exception."""


class GroheApiConnectionError(GroheApiError):
    """Timeout or connection failure before a response was received."""


class GroheApiHttpError(GroheApiError):
    """HTTP response with a 4xx/5xx status."""

    def __init__(self, status: int, body: str = "") -> None:
        """Initialize the error with the response status and body."""
        super().__init__(f"HTTP {status}: {clip(body)}")
        self.status = status
        self.body = body


class GroheAuthError(GroheApiError):
    """Authentication exception tagged with an AuthErrorKind."""

    def __init__(self, kind: AuthErrorKind, detail: str = "") -> None:
        """Initialize the error.

        Args:
            kind: Reason of the failure
            detail: Human-readable detail, clipped before storing

        """
        self.kind = kind
        self.detail = clip(detail)
        super().__init__(f"{kind}: {self.detail}" if self.detail else str(kind))

    @property
    def is_fatal(self) -> bool:
        """Return True if retrying without user action cannot succeed."""
        return self.kind not in TRANSIENT_AUTH_ERRORS
