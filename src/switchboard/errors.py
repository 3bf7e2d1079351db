"""Structured error taxonomy for Switchboard.

Every error carries a machine-readable code, severity, and retryability
flag so that callers can decide whether to retry, relax preferences, or
give up.

Error code format: SB_<DOMAIN>_<ISSUE>
Domains: CONFIG, ROUTING, BACKEND
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class Severity(StrEnum):
    CRITICAL = "critical"  # router cannot serve anything
    ERROR = "error"  # operation failed
    WARN = "warn"  # degraded but operational


class ErrorDomain(StrEnum):
    CONFIG = "CONFIG"
    ROUTING = "ROUTING"
    BACKEND = "BACKEND"


# ── Base exception ─────────────────────────────────────────────────────────


class SwitchboardError(Exception):
    """Base exception for all Switchboard errors."""

    code: str = "SB_UNKNOWN"
    domain: ErrorDomain = ErrorDomain.ROUTING
    severity: Severity = Severity.ERROR
    is_retryable: bool = False
    retry_delay_ms: int = 0

    def __init__(
        self,
        message: str = "",
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.code
        self.context: dict[str, Any] = context or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "message": self.message,
            "is_retryable": self.is_retryable,
            "retry_delay_ms": self.retry_delay_ms,
            "context": self.context,
        }


# ── Config errors ──────────────────────────────────────────────────────────


class ConfigurationError(SwitchboardError):
    code = "SB_CONFIG_INVALID"
    domain = ErrorDomain.CONFIG
    severity = Severity.ERROR
    is_retryable = False


# ── Routing errors ─────────────────────────────────────────────────────────


class NoProviderAvailableError(SwitchboardError):
    """No registered backend can serve the request right now."""

    code = "SB_ROUTING_NO_PROVIDER"
    domain = ErrorDomain.ROUTING
    severity = Severity.WARN
    is_retryable = True
    retry_delay_ms = 5000


# ── Backend errors ─────────────────────────────────────────────────────────


class BackendError(SwitchboardError):
    """A failed adapter invocation, wrapping the underlying cause."""

    code = "SB_BACKEND_FAILED"
    domain = ErrorDomain.BACKEND
    severity = Severity.ERROR
    is_retryable = True
    retry_delay_ms = 1000

    def __init__(
        self,
        backend_id: str,
        message: str = "",
        *,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.backend_id = backend_id
        self.cause = cause
        ctx = {"backend_id": backend_id, **(context or {})}
        if cause is not None:
            ctx.setdefault("cause", type(cause).__name__)
        super().__init__(message or str(cause or "") or self.code, context=ctx)
        if cause is not None:
            self.__cause__ = cause


class BackendTimeoutError(BackendError):
    code = "SB_BACKEND_TIMEOUT"
    severity = Severity.WARN
    retry_delay_ms = 2000


class BackendRateLimitError(BackendError):
    code = "SB_BACKEND_RATE_LIMIT"
    severity = Severity.WARN
    retry_delay_ms = 5000


class BackendUnavailableError(BackendError):
    code = "SB_BACKEND_UNAVAILABLE"
    retry_delay_ms = 10000


class BackendResponseError(BackendError):
    """The backend answered but the payload could not be parsed or validated."""

    code = "SB_BACKEND_BAD_RESPONSE"
    retry_delay_ms = 1000


class BackendRequestError(BackendError):
    """The backend rejected the request itself; retrying it will not help."""

    code = "SB_BACKEND_BAD_REQUEST"
    is_retryable = False
    retry_delay_ms = 0


# ── Error classification helper ────────────────────────────────────────────

_BACKEND_KEYWORDS: dict[str, type[BackendError]] = {
    "timeout": BackendTimeoutError,
    "timed out": BackendTimeoutError,
    "rate_limit": BackendRateLimitError,
    "rate limit": BackendRateLimitError,
    "429": BackendRateLimitError,
    "quota": BackendRateLimitError,
    "502": BackendUnavailableError,
    "503": BackendUnavailableError,
    "504": BackendUnavailableError,
    "connection": BackendUnavailableError,
    "unavailable": BackendUnavailableError,
    "400": BackendRequestError,
    "invalid request": BackendRequestError,
    "parse": BackendResponseError,
    "json": BackendResponseError,
    "validation": BackendResponseError,
}


def classify_backend_error(backend_id: str, exc: BaseException) -> BackendError:
    """Wrap a raw adapter exception into a structured BackendError.

    Existing BackendErrors pass through unchanged. Timeouts are recognised
    by type; everything else by keyword matching on the message, falling
    back to the generic BackendError.
    """
    if isinstance(exc, BackendError):
        return exc

    if isinstance(exc, TimeoutError):
        return BackendTimeoutError(backend_id, "invocation timed out", cause=exc)

    msg = f"{type(exc).__name__} {exc}".lower()
    for keyword, error_cls in _BACKEND_KEYWORDS.items():
        if keyword in msg:
            return error_cls(backend_id, str(exc), cause=exc)

    return BackendError(backend_id, str(exc), cause=exc)
