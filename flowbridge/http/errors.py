"""Error taxonomy and the canonical failure-string normalizer."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Mapping, Optional

import httpx

UNEXPECTED_ERROR = "Unexpected Error."


class ErrorKind(str, Enum):
    """Classification attached to every :class:`ConnectorError`."""

    REQUIRED_DATA_MISSING = "required_data_missing"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    RETRY_EXHAUSTED = "retry_exhausted"
    REMOTE_ERROR = "remote_error"
    REGISTRATION_FAILED = "registration_failed"
    CANCELLED = "cancelled"
    DEADLINE_EXCEEDED = "deadline_exceeded"


class ConnectorError(Exception):
    """Base exception for all connector errors.

    ``message`` is always the normalized, single-line string shown to users.
    """

    kind: ErrorKind = ErrorKind.REMOTE_ERROR

    def __init__(
        self,
        message: str = "",
        *,
        status_code: Optional[int] = None,
        response_body: Any = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class RequiredDataMissing(ConnectorError):
    """A required configuration value or credential was not supplied."""

    kind = ErrorKind.REQUIRED_DATA_MISSING


class Unauthorized(ConnectorError):
    """HTTP 401 that could not be resolved by refreshing a token."""

    kind = ErrorKind.UNAUTHORIZED


class RateLimited(ConnectorError):
    """HTTP 429 from an integration without retry-after support."""

    kind = ErrorKind.RATE_LIMITED


class RetryExhausted(ConnectorError):
    """The attempt budget reached zero without a successful response."""

    kind = ErrorKind.RETRY_EXHAUSTED

    def __init__(self, message: str = "", *, attempts: int = 0, **kwargs: Any) -> None:
        self.attempts = attempts
        super().__init__(message, **kwargs)


class RemoteError(ConnectorError):
    """Any other non-2xx response or transport failure."""

    kind = ErrorKind.REMOTE_ERROR


class RegistrationFailed(ConnectorError):
    """Webhook list/create/delete failure. Absorbed at the registrar boundary."""

    kind = ErrorKind.REGISTRATION_FAILED


class Cancelled(ConnectorError):
    """The caller signalled cancellation between attempts."""

    kind = ErrorKind.CANCELLED


class DeadlineExceeded(ConnectorError):
    """The optional wall-clock deadline for a retry loop elapsed."""

    kind = ErrorKind.DEADLINE_EXCEEDED


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _body_detail(body: Any) -> Optional[str]:
    if not body:
        return None
    if isinstance(body, Mapping):
        error = body.get("error")
        if error:
            if isinstance(error, (Mapping, list)):
                return json.dumps(error, separators=(",", ":"), default=str)
            if isinstance(error, str):
                return error
            return None
        for key in ("msg", "Message"):
            if body.get(key):
                return str(body[key])
        return None
    if isinstance(body, str):
        return body
    return None


def compose_error_message(message: Optional[str], body: Any = None) -> str:
    """Join ``message`` and the body detail as ``"<msg>. <detail>. "``."""
    text = ""
    if message:
        text += f"{message}. "
    detail = _body_detail(body)
    if detail:
        text += f"{detail}. "
    return text or UNEXPECTED_ERROR


def _response_data(response: Any) -> Any:
    if isinstance(response, httpx.Response):
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text
    if isinstance(response, Mapping):
        return response.get("data")
    return getattr(response, "data", None)


def handle_error_message(error: Any) -> str:
    """Produce the single human-readable failure string for *error*.

    Accepts exceptions (optionally carrying an ``httpx.Response`` as
    ``.response``), mapping-shaped errors such as
    ``{"message": ..., "response": {"data": ...}}``, and
    :class:`ConnectorError` instances, whose message is already normalized.
    """
    if isinstance(error, ConnectorError):
        return error.message or UNEXPECTED_ERROR
    if isinstance(error, Mapping):
        message = error.get("message")
        response = error.get("response")
    elif isinstance(error, BaseException):
        lines = str(error).splitlines()
        message = lines[0] if lines else ""
        response = getattr(error, "response", None)
    else:
        message = str(error) if error else ""
        response = None
    body = _response_data(response) if response is not None else None
    return compose_error_message(message, body)


def error_for_response(response: httpx.Response, body: Any = None) -> ConnectorError:
    """Map a failed response onto the taxonomy with a normalized message."""
    if body is None:
        body = _response_data(response)
    message = compose_error_message(f"Request failed with status code {response.status_code}", body)
    if response.status_code == 401:
        cls = Unauthorized
    elif response.status_code == 429:
        cls = RateLimited
    else:
        cls = RemoteError
    return cls(message, status_code=response.status_code, response_body=body)
