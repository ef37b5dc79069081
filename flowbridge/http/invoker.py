"""Resilient HTTP invoker: attempt budget, OAuth2 refresh on 401, retry-after on 429.

Each call runs an explicit state machine::

    ATTEMPTING --2xx--> SUCCEEDED
    ATTEMPTING --401 + oauth2--> REFRESHING --> ATTEMPTING
    ATTEMPTING --429 + retry-after--> BACKING_OFF --> ATTEMPTING
    ATTEMPTING --other--> FAILED

Attempts within one call are strictly sequential. The caller's credential is
never mutated; refreshed token fields are returned with the result.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional

import httpx

from flowbridge import config
from flowbridge.http.errors import (
    Cancelled,
    ConnectorError,
    DeadlineExceeded,
    RemoteError,
    RetryExhausted,
    error_for_response,
    handle_error_message,
)
from flowbridge.http.oauth2 import OAuth2Refresh, refresh_oauth2_token
from flowbridge.http.request import (
    RequestDescriptor,
    authorization_header,
    is_oauth2_credential,
    parse_response_body,
)

logger = logging.getLogger(__name__)

DEFAULT_EXHAUSTED_MESSAGE = "Max retries limit was reached."

Refresher = Callable[[Mapping[str, Any], httpx.AsyncClient], Awaitable[OAuth2Refresh]]
Sleeper = Callable[[float], Awaitable[Any]]


class RetryMode(str, Enum):
    """Which recoverable failure an integration's remote API exhibits."""

    NONE = "none"
    OAUTH2_REFRESH = "oauth2_refresh"
    RETRY_AFTER = "retry_after"


class InvokeState(str, Enum):
    ATTEMPTING = "attempting"
    REFRESHING = "refreshing"
    BACKING_OFF = "backing_off"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RetryState:
    """Per-call bookkeeping. Created at call start, discarded at call end."""

    remaining: int
    attempts: int = 0
    state: InvokeState = InvokeState.ATTEMPTING
    refreshed: Dict[str, Any] = field(default_factory=dict)
    transitions: List[InvokeState] = field(default_factory=list)


@dataclass
class InvokeResult:
    body: Any
    refreshed: Dict[str, Any]
    attempts: int
    status_code: int
    transitions: List[InvokeState] = field(default_factory=list)


def parse_retry_after(value: Optional[str], default: int) -> int:
    """Integer seconds from a ``retry-after`` header, else *default*."""
    if value is None:
        return default
    try:
        seconds = int(value.strip())
    except (TypeError, ValueError):
        return default
    return seconds if seconds >= 0 else default


class ResilientInvoker:
    """Issue a :class:`RequestDescriptor` with bounded, failure-aware retries.

    Parameters
    ----------
    client:
        Shared ``httpx.AsyncClient``. When omitted a client is opened per call.
    max_attempts:
        Total attempts, including the first one.
    retry_mode:
        ``OAUTH2_REFRESH`` refreshes on 401 for OAuth2 credentials,
        ``RETRY_AFTER`` sleeps on 429. The two never combine.
    sleep:
        Awaitable sleep used for backoff. Injected in tests to simulate time.
    deadline:
        Optional wall-clock budget (seconds) for the whole loop.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        max_attempts: Optional[int] = None,
        retry_mode: RetryMode = RetryMode.NONE,
        default_retry_after: Optional[int] = None,
        refresher: Refresher = refresh_oauth2_token,
        sleep: Sleeper = asyncio.sleep,
        deadline: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        exhausted_message: str = DEFAULT_EXHAUSTED_MESSAGE,
        timeout: Optional[float] = None,
    ) -> None:
        self.max_attempts = config.MAX_ATTEMPTS if max_attempts is None else max_attempts
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.retry_mode = retry_mode
        self.default_retry_after = (
            config.DEFAULT_RETRY_AFTER if default_retry_after is None else default_retry_after
        )
        self.deadline = config.INVOKE_DEADLINE if deadline is None else deadline
        self.exhausted_message = exhausted_message
        self._client = client
        self._refresher = refresher
        self._sleep = sleep
        self._clock = clock
        self._timeout = config.HTTP_TIMEOUT if timeout is None else timeout

    # -- Public -----------------------------------------------------------

    async def invoke(
        self,
        descriptor: RequestDescriptor,
        credential: Optional[Mapping[str, Any]] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> InvokeResult:
        credential = credential or {}
        state = RetryState(remaining=self.max_attempts)
        self._move(state, InvokeState.ATTEMPTING, descriptor)
        started = self._clock()

        async with self._client_scope() as client:
            while state.remaining > 0:
                self._check_interrupts(state, cancel_event, started)
                state.remaining -= 1
                state.attempts += 1

                resp = await self._send(client, descriptor, state)

                if resp.is_success:
                    self._move(state, InvokeState.SUCCEEDED, descriptor)
                    return InvokeResult(
                        body=parse_response_body(resp),
                        refreshed=dict(state.refreshed),
                        attempts=state.attempts,
                        status_code=resp.status_code,
                        transitions=list(state.transitions),
                    )

                if self._should_refresh(resp, credential):
                    if state.remaining == 0:
                        break
                    self._move(state, InvokeState.REFRESHING, descriptor)
                    refreshed = await self._refresh(credential, client, state)
                    descriptor = descriptor.with_header(
                        "Authorization", authorization_header(credential, refreshed.access_token)
                    )
                    state.refreshed = refreshed.to_dict()
                    self._move(state, InvokeState.ATTEMPTING, descriptor)
                    continue

                if self._should_back_off(resp):
                    if state.remaining == 0:
                        break
                    delay = parse_retry_after(resp.headers.get("retry-after"), self.default_retry_after)
                    self._move(state, InvokeState.BACKING_OFF, descriptor)
                    logger.info(
                        "Rate limited by %s, retrying in %ss (%d attempts left)",
                        descriptor.url, delay, state.remaining,
                    )
                    await self._sleep(delay)
                    self._move(state, InvokeState.ATTEMPTING, descriptor)
                    continue

                self._move(state, InvokeState.FAILED, descriptor)
                raise error_for_response(resp)

        self._move(state, InvokeState.FAILED, descriptor)
        raise RetryExhausted(self.exhausted_message, attempts=state.attempts)

    # -- Internal ---------------------------------------------------------

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    def _move(self, state: RetryState, new_state: InvokeState, descriptor: RequestDescriptor) -> None:
        state.state = new_state
        state.transitions.append(new_state)
        logger.debug(
            "%s %s -> %s (attempt %d)",
            descriptor.method.upper(), descriptor.url, new_state.value, state.attempts,
        )

    def _check_interrupts(
        self,
        state: RetryState,
        cancel_event: Optional[asyncio.Event],
        started: float,
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            state.state = InvokeState.FAILED
            raise Cancelled("Request cancelled.")
        if self.deadline is not None and self._clock() - started >= self.deadline:
            state.state = InvokeState.FAILED
            raise DeadlineExceeded(f"Deadline of {self.deadline}s exceeded.")

    async def _send(
        self,
        client: httpx.AsyncClient,
        descriptor: RequestDescriptor,
        state: RetryState,
    ) -> httpx.Response:
        try:
            return await client.send(descriptor.build(client))
        # InvalidURL is not an HTTPError
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            state.state = InvokeState.FAILED
            raise RemoteError(handle_error_message(exc)) from exc

    async def _refresh(
        self,
        credential: Mapping[str, Any],
        client: httpx.AsyncClient,
        state: RetryState,
    ) -> OAuth2Refresh:
        try:
            return await self._refresher(credential, client)
        except ConnectorError:
            state.state = InvokeState.FAILED
            raise

    def _should_refresh(self, resp: httpx.Response, credential: Mapping[str, Any]) -> bool:
        return (
            resp.status_code == 401
            and self.retry_mode is RetryMode.OAUTH2_REFRESH
            and is_oauth2_credential(credential)
        )

    def _should_back_off(self, resp: httpx.Response) -> bool:
        return resp.status_code == 429 and self.retry_mode is RetryMode.RETRY_AFTER


async def invoke(
    descriptor: RequestDescriptor,
    credential: Optional[Mapping[str, Any]] = None,
    max_attempts: Optional[int] = None,
    **kwargs: Any,
) -> InvokeResult:
    """One-shot convenience wrapper around :class:`ResilientInvoker`."""
    cancel_event = kwargs.pop("cancel_event", None)
    invoker = ResilientInvoker(max_attempts=max_attempts, **kwargs)
    return await invoker.invoke(descriptor, credential, cancel_event=cancel_event)
