"""
Tests for the error taxonomy and failure-string normalization.

Covers:
- ErrorKind enum values and ConnectorError fields
- handle_error_message() on mapping-shaped errors, exceptions and
  ConnectorError instances
- error_for_response() status mapping
"""

import httpx
import pytest

from flowbridge.http.errors import (
    UNEXPECTED_ERROR,
    ConnectorError,
    ErrorKind,
    RateLimited,
    RegistrationFailed,
    RemoteError,
    RequiredDataMissing,
    RetryExhausted,
    Unauthorized,
    compose_error_message,
    error_for_response,
    handle_error_message,
)


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------

class TestErrorKinds:

    def test_is_string_enum(self):
        assert isinstance(ErrorKind.RATE_LIMITED, str)
        assert ErrorKind.RETRY_EXHAUSTED == "retry_exhausted"

    @pytest.mark.parametrize("cls,kind", [
        (RequiredDataMissing, ErrorKind.REQUIRED_DATA_MISSING),
        (Unauthorized, ErrorKind.UNAUTHORIZED),
        (RateLimited, ErrorKind.RATE_LIMITED),
        (RetryExhausted, ErrorKind.RETRY_EXHAUSTED),
        (RemoteError, ErrorKind.REMOTE_ERROR),
        (RegistrationFailed, ErrorKind.REGISTRATION_FAILED),
    ])
    def test_subclass_kinds(self, cls, kind):
        exc = cls("boom")
        assert isinstance(exc, ConnectorError)
        assert exc.kind is kind
        assert exc.message == "boom"
        assert str(exc) == "boom"

    def test_retry_exhausted_attempts(self):
        exc = RetryExhausted("Max retries limit was reached.", attempts=5)
        assert exc.attempts == 5


# ---------------------------------------------------------------------------
# handle_error_message()
# ---------------------------------------------------------------------------

class TestHandleErrorMessage:

    def test_message_and_error_field(self):
        error = {"message": "boom", "response": {"data": {"error": "bad input"}}}
        assert handle_error_message(error) == "boom. bad input. "

    def test_empty_error(self):
        assert handle_error_message({}) == UNEXPECTED_ERROR
        assert handle_error_message({}) == "Unexpected Error."

    def test_plain_text_body(self):
        assert handle_error_message({"response": {"data": "plain text error"}}) == "plain text error. "

    def test_object_error_is_json_encoded(self):
        error = {"message": "boom", "response": {"data": {"error": {"code": 7}}}}
        assert handle_error_message(error) == 'boom. {"code":7}. '

    def test_msg_and_capital_message_fields(self):
        assert handle_error_message({"response": {"data": {"msg": "slow down"}}}) == "slow down. "
        assert handle_error_message({"response": {"data": {"Message": "denied"}}}) == "denied. "

    def test_exception_uses_first_line(self):
        assert handle_error_message(ValueError("first\nsecond")) == "first. "

    def test_exception_with_httpx_response(self):
        exc = RuntimeError("Request failed")
        exc.response = httpx.Response(400, json={"error": "invalid_grant"})
        assert handle_error_message(exc) == "Request failed. invalid_grant. "

    def test_connector_error_passes_through(self):
        assert handle_error_message(RemoteError("already. normalized. ")) == "already. normalized. "

    def test_compose_without_detail(self):
        assert compose_error_message("boom", {"unrelated": 1}) == "boom. "


# ---------------------------------------------------------------------------
# error_for_response()
# ---------------------------------------------------------------------------

class TestErrorForResponse:

    def test_401_is_unauthorized(self):
        exc = error_for_response(httpx.Response(401, json={"error": "expired"}))
        assert isinstance(exc, Unauthorized)
        assert exc.status_code == 401
        assert exc.message == "Request failed with status code 401. expired. "

    def test_429_is_rate_limited(self):
        exc = error_for_response(httpx.Response(429))
        assert isinstance(exc, RateLimited)
        assert exc.message == "Request failed with status code 429. "

    def test_other_is_remote_error(self):
        exc = error_for_response(httpx.Response(500, text="upstream down"))
        assert isinstance(exc, RemoteError)
        assert exc.response_body == "upstream down"
        assert exc.message == "Request failed with status code 500. upstream down. "
