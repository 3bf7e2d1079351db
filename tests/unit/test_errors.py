"""Tests for the structured error taxonomy."""

from __future__ import annotations

import pytest

from switchboard.errors import (
    BackendError,
    BackendRateLimitError,
    BackendRequestError,
    BackendResponseError,
    BackendTimeoutError,
    BackendUnavailableError,
    ConfigurationError,
    ErrorDomain,
    NoProviderAvailableError,
    Severity,
    SwitchboardError,
    classify_backend_error,
)


class TestErrorBasics:
    def test_to_dict(self):
        err = NoProviderAvailableError("nothing for moderation", context={"operation": "m"})
        d = err.to_dict()
        assert d["code"] == "SB_ROUTING_NO_PROVIDER"
        assert d["domain"] == "ROUTING"
        assert d["severity"] == "warn"
        assert d["is_retryable"] is True
        assert d["context"] == {"operation": "m"}

    def test_message_defaults_to_code(self):
        assert ConfigurationError().message == "SB_CONFIG_INVALID"

    def test_hierarchy(self):
        assert issubclass(BackendTimeoutError, BackendError)
        assert issubclass(BackendError, SwitchboardError)
        assert ConfigurationError.domain == ErrorDomain.CONFIG
        assert BackendUnavailableError.severity == Severity.ERROR

    def test_backend_error_carries_cause(self):
        cause = ConnectionResetError("peer reset")
        err = BackendError("x", cause=cause)
        assert err.backend_id == "x"
        assert err.cause is cause
        assert err.__cause__ is cause
        assert err.context == {"backend_id": "x", "cause": "ConnectionResetError"}
        assert err.message == "peer reset"

    def test_request_errors_not_retryable(self):
        assert BackendRequestError("x").is_retryable is False
        assert BackendUnavailableError("x").is_retryable is True


class TestClassify:
    def test_backend_error_passes_through(self):
        err = BackendRateLimitError("x", "slow down")
        assert classify_backend_error("x", err) is err

    def test_timeout_by_type(self):
        err = classify_backend_error("x", TimeoutError())
        assert isinstance(err, BackendTimeoutError)
        assert err.backend_id == "x"

    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (RuntimeError("Rate limit reached for requests"), BackendRateLimitError),
            (RuntimeError("HTTP 429"), BackendRateLimitError),
            (RuntimeError("503 Service Unavailable"), BackendUnavailableError),
            (ConnectionError("refused"), BackendUnavailableError),
            (ValueError("400 invalid request body"), BackendRequestError),
            (ValueError("could not parse model output"), BackendResponseError),
            (RuntimeError("read timed out"), BackendTimeoutError),
        ],
    )
    def test_keyword_mapping(self, exc, expected):
        err = classify_backend_error("x", exc)
        assert type(err) is expected
        assert err.__cause__ is exc

    def test_unknown_falls_back_to_generic(self):
        err = classify_backend_error("x", KeyError("weird"))
        assert type(err) is BackendError
        assert err.context["cause"] == "KeyError"
