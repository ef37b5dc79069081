"""Outbound HTTP layer shared by every integration.

Resilient invoker, canonical query serializer, error taxonomy and
normalization, and the OAuth2 refresh grant.
"""

from flowbridge.http.errors import (
    Cancelled,
    ConnectorError,
    DeadlineExceeded,
    ErrorKind,
    RateLimited,
    RegistrationFailed,
    RemoteError,
    RequiredDataMissing,
    RetryExhausted,
    Unauthorized,
    handle_error_message,
)
from flowbridge.http.invoker import (
    InvokeResult,
    InvokeState,
    ResilientInvoker,
    RetryMode,
    invoke,
)
from flowbridge.http.oauth2 import OAuth2Refresh, refresh_oauth2_token
from flowbridge.http.query import serialize_query_params
from flowbridge.http.request import Credential, RequestDescriptor, is_oauth2_credential

__all__ = [
    "Cancelled",
    "ConnectorError",
    "Credential",
    "DeadlineExceeded",
    "ErrorKind",
    "InvokeResult",
    "InvokeState",
    "OAuth2Refresh",
    "RateLimited",
    "RegistrationFailed",
    "RemoteError",
    "RequestDescriptor",
    "RequiredDataMissing",
    "ResilientInvoker",
    "RetryExhausted",
    "RetryMode",
    "Unauthorized",
    "handle_error_message",
    "invoke",
    "is_oauth2_credential",
    "refresh_oauth2_token",
    "serialize_query_params",
]
