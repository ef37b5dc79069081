"""
Tests for the resilient HTTP invoker.

Covers:
- 401 triggers exactly one OAuth2 refresh per attempt, refreshed token spliced
  into the next request, caller credential untouched
- 429 honours retry-after on a simulated clock
- Attempt budget: always-401 / always-429 make exactly max_attempts calls
- Non-recoverable statuses and transport errors fail fast
- Cancellation and deadline between attempts
- refresh_oauth2_token() request shape and failures
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from flowbridge.http.errors import (
    Cancelled,
    DeadlineExceeded,
    RateLimited,
    RemoteError,
    RequiredDataMissing,
    RetryExhausted,
    Unauthorized,
)
from flowbridge.http.invoker import (
    InvokeState,
    ResilientInvoker,
    RetryMode,
    invoke,
    parse_retry_after,
)
from flowbridge.http.oauth2 import refresh_oauth2_token
from flowbridge.http.request import RequestDescriptor

API_URL = "https://api.example.com/items"
TOKEN_HOST = "auth.example.com"


def _descriptor(token="stale-token"):
    return RequestDescriptor("GET", API_URL, headers={"Authorization": f"Bearer {token}"})


# ---------------------------------------------------------------------------
# OAuth2 refresh on 401
# ---------------------------------------------------------------------------

class TestOAuth2Refresh:

    @pytest.mark.asyncio
    async def test_401_refreshes_exactly_once(self, mock_client, oauth2_credential):
        api_calls = []
        token_calls = []

        def handler(request):
            if request.url.host == TOKEN_HOST:
                token_calls.append(request)
                return httpx.Response(200, json={"access_token": "fresh-token", "expires_in": 3600})
            api_calls.append(request)
            if len(api_calls) == 1:
                return httpx.Response(401, json={"error": "expired"})
            return httpx.Response(200, json={"ok": True})

        invoker = ResilientInvoker(mock_client(handler), retry_mode=RetryMode.OAUTH2_REFRESH)
        result = await invoker.invoke(_descriptor(), oauth2_credential)

        assert result.body == {"ok": True}
        assert result.attempts == 2
        assert len(token_calls) == 1
        assert len(api_calls) == 2
        assert api_calls[0].headers["authorization"] == "Bearer stale-token"
        assert api_calls[1].headers["authorization"] == "Bearer fresh-token"
        assert result.refreshed == {"access_token": "fresh-token", "expires_in": 3600}
        assert result.transitions == [
            InvokeState.ATTEMPTING,
            InvokeState.REFRESHING,
            InvokeState.ATTEMPTING,
            InvokeState.SUCCEEDED,
        ]

    @pytest.mark.asyncio
    async def test_credential_not_mutated(self, mock_client, oauth2_credential):
        calls = []

        def handler(request):
            if request.url.host == TOKEN_HOST:
                return httpx.Response(200, json={"access_token": "fresh-token"})
            calls.append(request)
            return httpx.Response(401 if len(calls) == 1 else 200, json={})

        before = dict(oauth2_credential)
        invoker = ResilientInvoker(mock_client(handler), retry_mode=RetryMode.OAUTH2_REFRESH)
        await invoker.invoke(_descriptor(), oauth2_credential)
        assert oauth2_credential == before

    @pytest.mark.asyncio
    async def test_refresh_request_payload(self, mock_client, oauth2_credential):
        token_requests = []

        def handler(request):
            if request.url.host == TOKEN_HOST:
                token_requests.append(json.loads(request.content))
                return httpx.Response(200, json={"access_token": "fresh-token"})
            return httpx.Response(401 if not token_requests else 200, json={})

        invoker = ResilientInvoker(mock_client(handler), retry_mode=RetryMode.OAUTH2_REFRESH)
        await invoker.invoke(_descriptor(), oauth2_credential)
        assert token_requests == [{
            "grant_type": "refresh_token",
            "client_id": "client-id",
            "client_secret": "client-secret",
            "refresh_token": "refresh-me",
        }]

    @pytest.mark.asyncio
    async def test_401_without_oauth2_credential_fails_fast(self, mock_client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, json={"error": "expired"})

        invoker = ResilientInvoker(mock_client(handler), retry_mode=RetryMode.OAUTH2_REFRESH)
        with pytest.raises(Unauthorized) as exc_info:
            await invoker.invoke(_descriptor(), {"access_token": "x"})
        assert len(calls) == 1
        assert exc_info.value.message == "Request failed with status code 401. expired. "

    @pytest.mark.asyncio
    async def test_refresh_failure_propagates(self, mock_client, oauth2_credential):
        def handler(request):
            if request.url.host == TOKEN_HOST:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(401)

        invoker = ResilientInvoker(mock_client(handler), retry_mode=RetryMode.OAUTH2_REFRESH)
        with pytest.raises(RemoteError) as exc_info:
            await invoker.invoke(_descriptor(), oauth2_credential)
        assert exc_info.value.message == "Request failed with status code 400. invalid_grant. "

    @pytest.mark.asyncio
    async def test_always_401_exhausts_budget(self, mock_client, oauth2_credential):
        api_calls = []
        token_calls = []

        def handler(request):
            if request.url.host == TOKEN_HOST:
                token_calls.append(request)
                return httpx.Response(200, json={"access_token": "still-bad"})
            api_calls.append(request)
            return httpx.Response(401)

        invoker = ResilientInvoker(
            mock_client(handler),
            retry_mode=RetryMode.OAUTH2_REFRESH,
            exhausted_message="Error executing GoogleSheet node. Max retries limit was reached.",
        )
        with pytest.raises(RetryExhausted) as exc_info:
            await invoker.invoke(_descriptor(), oauth2_credential)

        assert len(api_calls) == 5
        assert len(token_calls) == 4
        assert exc_info.value.attempts == 5
        assert exc_info.value.message == "Error executing GoogleSheet node. Max retries limit was reached."


# ---------------------------------------------------------------------------
# Retry-after on 429
# ---------------------------------------------------------------------------

class TestRetryAfter:

    @pytest.mark.asyncio
    async def test_429_waits_retry_after(self, mock_client, sleeps):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, headers={"retry-after": "2"})
            return httpx.Response(200, json={"id": "msg-1"})

        invoker = ResilientInvoker(mock_client(handler), retry_mode=RetryMode.RETRY_AFTER, sleep=sleeps)
        result = await invoker.invoke(RequestDescriptor("POST", API_URL, json={"content": "hi"}))

        assert result.body == {"id": "msg-1"}
        assert sleeps.calls == [2]
        assert len(calls) == 2
        assert InvokeState.BACKING_OFF in result.transitions

    @pytest.mark.asyncio
    async def test_missing_retry_after_uses_default(self, mock_client, sleeps):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429 if len(calls) == 1 else 204)

        invoker = ResilientInvoker(
            mock_client(handler), retry_mode=RetryMode.RETRY_AFTER, sleep=sleeps, default_retry_after=60
        )
        result = await invoker.invoke(RequestDescriptor("POST", API_URL))
        assert sleeps.calls == [60]
        assert result.body is None

    @pytest.mark.asyncio
    async def test_always_429_exhausts_budget(self, mock_client, sleeps):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, headers={"retry-after": "1"})

        invoker = ResilientInvoker(mock_client(handler), retry_mode=RetryMode.RETRY_AFTER, sleep=sleeps)
        with pytest.raises(RetryExhausted):
            await invoker.invoke(RequestDescriptor("POST", API_URL))
        assert len(calls) == 5
        assert sleeps.calls == [1, 1, 1, 1]

    @pytest.mark.asyncio
    async def test_429_without_retry_mode_is_rate_limited(self, mock_client, sleeps):
        def handler(request):
            return httpx.Response(429)

        invoker = ResilientInvoker(mock_client(handler), sleep=sleeps)
        with pytest.raises(RateLimited):
            await invoker.invoke(RequestDescriptor("GET", API_URL))
        assert sleeps.calls == []

    @pytest.mark.asyncio
    async def test_custom_budget(self, mock_client, sleeps):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        invoker = ResilientInvoker(
            mock_client(handler), max_attempts=2, retry_mode=RetryMode.RETRY_AFTER, sleep=sleeps
        )
        with pytest.raises(RetryExhausted):
            await invoker.invoke(RequestDescriptor("GET", API_URL))
        assert len(calls) == 2


class TestParseRetryAfter:

    def test_integer_seconds(self):
        assert parse_retry_after("2", 60) == 2

    def test_missing(self):
        assert parse_retry_after(None, 60) == 60

    def test_not_a_number(self):
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT", 60) == 60

    def test_negative(self):
        assert parse_retry_after("-1", 60) == 60


# ---------------------------------------------------------------------------
# Failures, cancellation and deadlines
# ---------------------------------------------------------------------------

class TestFailures:

    @pytest.mark.asyncio
    async def test_server_error_is_remote_error(self, mock_client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"msg": "upstream down"})

        invoker = ResilientInvoker(mock_client(handler), retry_mode=RetryMode.RETRY_AFTER)
        with pytest.raises(RemoteError) as exc_info:
            await invoker.invoke(RequestDescriptor("GET", API_URL))
        assert len(calls) == 1
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Request failed with status code 500. upstream down. "

    @pytest.mark.asyncio
    async def test_transport_error_is_remote_error(self, mock_client):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        invoker = ResilientInvoker(mock_client(handler))
        with pytest.raises(RemoteError) as exc_info:
            await invoker.invoke(RequestDescriptor("GET", API_URL))
        assert exc_info.value.message == "connection refused. "

    @pytest.mark.asyncio
    async def test_cancelled_before_first_attempt(self, mock_client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        event = asyncio.Event()
        event.set()
        invoker = ResilientInvoker(mock_client(handler))
        with pytest.raises(Cancelled):
            await invoker.invoke(RequestDescriptor("GET", API_URL), cancel_event=event)
        assert calls == []

    @pytest.mark.asyncio
    async def test_cancelled_during_backoff(self, mock_client):
        calls = []
        event = asyncio.Event()

        def handler(request):
            calls.append(request)
            return httpx.Response(429, headers={"retry-after": "5"})

        async def sleep_then_cancel(seconds):
            event.set()

        invoker = ResilientInvoker(
            mock_client(handler), retry_mode=RetryMode.RETRY_AFTER, sleep=sleep_then_cancel
        )
        with pytest.raises(Cancelled):
            await invoker.invoke(RequestDescriptor("GET", API_URL), cancel_event=event)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_deadline_exceeded(self, mock_client, sleeps):
        calls = []
        times = iter([0.0, 0.0, 6.0])

        def handler(request):
            calls.append(request)
            return httpx.Response(429, headers={"retry-after": "6"})

        invoker = ResilientInvoker(
            mock_client(handler),
            retry_mode=RetryMode.RETRY_AFTER,
            sleep=sleeps,
            deadline=5,
            clock=lambda: next(times),
        )
        with pytest.raises(DeadlineExceeded):
            await invoker.invoke(RequestDescriptor("GET", API_URL))
        assert len(calls) == 1

    def test_budget_must_be_positive(self):
        with pytest.raises(ValueError):
            ResilientInvoker(max_attempts=0)

    @pytest.mark.asyncio
    async def test_module_level_invoke(self, mock_client):
        def handler(request):
            return httpx.Response(200, text="ok")

        result = await invoke(RequestDescriptor("GET", API_URL), client=mock_client(handler))
        assert result.body == "ok"
        assert result.status_code == 200


# ---------------------------------------------------------------------------
# refresh_oauth2_token()
# ---------------------------------------------------------------------------

class TestRefreshOAuth2Token:

    @pytest.mark.asyncio
    async def test_missing_refresh_data(self):
        with pytest.raises(RequiredDataMissing):
            await refresh_oauth2_token({"access_token": "x"})

    @pytest.mark.asyncio
    async def test_response_without_token(self, mock_client, oauth2_credential):
        def handler(request):
            return httpx.Response(200, json={"token": "wrong-field"})

        with pytest.raises(RemoteError) as exc_info:
            await refresh_oauth2_token(oauth2_credential, mock_client(handler))
        assert exc_info.value.message.startswith("Invalid token response. ")

    @pytest.mark.asyncio
    async def test_returns_token_fields(self, mock_client, oauth2_credential):
        def handler(request):
            assert request.method == "POST"
            assert str(request.url) == "https://auth.example.com/token"
            return httpx.Response(200, json={"access_token": "fresh", "expires_in": 10})

        refreshed = await refresh_oauth2_token(oauth2_credential, mock_client(handler))
        assert refreshed.to_dict() == {"access_token": "fresh", "expires_in": 10}
