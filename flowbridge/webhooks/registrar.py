"""Idempotent webhook registration against remote providers.

``register`` lists the provider's existing webhooks, matches them
structurally on (events, target URL, scoping fields) and only creates a new
one when nothing matches. ``deregister`` deletes by provider-assigned id.

Registration is best-effort infrastructure setup: failures are logged and
reported as ``None`` / ``False`` so they never abort a workflow deployment.
Only missing configuration (:class:`RequiredDataMissing`) is raised from
``register``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import httpx

from flowbridge.http.errors import (
    ConnectorError,
    RegistrationFailed,
    RemoteError,
    RequiredDataMissing,
    handle_error_message,
)
from flowbridge.http.invoker import ResilientInvoker, RetryMode
from flowbridge.http.request import RequestDescriptor

logger = logging.getLogger(__name__)

EventSelector = Union[str, Sequence[str]]

# Parsing a provider payload that does not have the expected shape
_PARSE_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


@dataclass
class WebhookRegistration:
    """A provider-held subscription as seen in the provider's listing."""

    id: str
    target_url: str
    events: Tuple[str, ...] = ()
    scope: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)


def normalize_events(selector: EventSelector) -> Tuple[str, ...]:
    if isinstance(selector, str):
        return (selector,)
    return tuple(selector)


class WebhookRegistrar(ABC):
    """Provider-agnostic register/deregister protocol.

    Subclasses MUST set ``name`` and implement the request builders and
    payload parsers. They MAY override :meth:`events_match`,
    :meth:`scope_matches` and :meth:`check_preconditions`.
    """

    name: str = ""
    required_credential: Tuple[str, ...] = ()
    required_scope: Tuple[str, ...] = ()
    required_delete_scope: Optional[Tuple[str, ...]] = None
    # Providers that cannot create a webhook without an event selector
    requires_events: bool = False
    # Some providers answer 404 instead of an empty list
    missing_listing_is_empty: bool = False

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        invoker: Optional[ResilientInvoker] = None,
    ) -> None:
        self.invoker = invoker or ResilientInvoker(client, retry_mode=RetryMode.NONE)

    # -- Provider hooks ---------------------------------------------------

    @abstractmethod
    def list_request(self, scope: Mapping[str, Any], credential: Mapping[str, Any]) -> RequestDescriptor:
        """Descriptor for the provider's webhook listing endpoint."""

    @abstractmethod
    def parse_registrations(self, body: Any) -> List[WebhookRegistration]:
        """Turn a listing response body into registrations."""

    @abstractmethod
    def create_request(
        self,
        target_url: str,
        events: Tuple[str, ...],
        scope: Mapping[str, Any],
        credential: Mapping[str, Any],
    ) -> RequestDescriptor:
        """Descriptor that creates a webhook."""

    @abstractmethod
    def parse_created_id(self, body: Any) -> Optional[str]:
        """Extract the provider-assigned id from a create response."""

    @abstractmethod
    def delete_request(
        self,
        registration_id: str,
        scope: Mapping[str, Any],
        credential: Mapping[str, Any],
    ) -> RequestDescriptor:
        """Descriptor that deletes webhook *registration_id*."""

    def events_match(self, registration: WebhookRegistration, events: Tuple[str, ...]) -> bool:
        return sorted(registration.events) == sorted(events)

    def scope_matches(self, registration: WebhookRegistration, scope: Mapping[str, Any]) -> bool:
        return all(registration.scope.get(key) == scope.get(key) for key in self.required_scope)

    def check_preconditions(
        self,
        scope: Mapping[str, Any],
        credential: Optional[Mapping[str, Any]],
        required_scope: Optional[Tuple[str, ...]] = None,
    ) -> None:
        if not credential:
            raise RequiredDataMissing("Missing credentials")
        missing = [key for key in self.required_credential if not credential.get(key)]
        if missing:
            raise RequiredDataMissing(f"Missing credential fields: {', '.join(missing)}")
        keys = self.required_scope if required_scope is None else required_scope
        missing = [key for key in keys if not scope.get(key)]
        if missing:
            raise RequiredDataMissing(f"Required data missing: {', '.join(missing)}")

    # -- Protocol ---------------------------------------------------------

    def matches(
        self,
        registration: WebhookRegistration,
        target_url: str,
        events: Tuple[str, ...],
        scope: Mapping[str, Any],
    ) -> bool:
        return (
            registration.target_url == target_url
            and self.events_match(registration, events)
            and self.scope_matches(registration, scope)
        )

    def find_match(
        self,
        registrations: List[WebhookRegistration],
        target_url: str,
        events: Tuple[str, ...],
        scope: Mapping[str, Any],
    ) -> Optional[WebhookRegistration]:
        for registration in registrations:
            if self.matches(registration, target_url, events, scope):
                return registration
        return None

    async def list_registrations(
        self,
        scope: Mapping[str, Any],
        credential: Mapping[str, Any],
    ) -> List[WebhookRegistration]:
        try:
            result = await self.invoker.invoke(self.list_request(scope, credential), credential)
        except RemoteError as exc:
            if exc.status_code == 404 and self.missing_listing_is_empty:
                return []
            raise
        return self.parse_registrations(result.body)

    async def register(
        self,
        target_url: str,
        event_selector: EventSelector,
        scoping_fields: Optional[Mapping[str, Any]],
        credential: Optional[Mapping[str, Any]],
    ) -> Optional[str]:
        """Create the webhook unless an equivalent one already exists.

        Returns the new provider id, or ``None`` when a matching webhook was
        already registered or when the provider call failed.
        """
        events = normalize_events(event_selector)
        scope = dict(scoping_fields or {})
        self.check_preconditions(scope, credential)
        if self.requires_events and not any(events):
            raise RequiredDataMissing("Missing webhook events")

        try:
            existing = await self.list_registrations(scope, credential)
            match = self.find_match(existing, target_url, events, scope)
            if match is not None:
                logger.info("%s webhook %s already registered for %s", self.name, match.id, target_url)
                return None

            result = await self.invoker.invoke(
                self.create_request(target_url, events, scope, credential), credential
            )
            webhook_id = self.parse_created_id(result.body)
        except (ConnectorError, *_PARSE_ERRORS) as exc:
            failure = self._failure(exc)
            logger.warning("%s webhook registration for %s failed: %s", self.name, target_url, failure)
            return None

        if webhook_id is None:
            logger.warning("%s webhook created for %s but no id was returned", self.name, target_url)
            return None
        logger.info("Registered %s webhook %s for %s", self.name, webhook_id, target_url)
        return str(webhook_id)

    async def deregister(
        self,
        registration_id: Optional[str],
        credential: Optional[Mapping[str, Any]],
        scoping_fields: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Delete webhook *registration_id*. Returns False on any failure."""
        scope = dict(scoping_fields or {})
        try:
            if not registration_id:
                raise RequiredDataMissing("Missing webhook id")
            self.check_preconditions(scope, credential, self.required_delete_scope)
            await self.invoker.invoke(self.delete_request(registration_id, scope, credential), credential)
        except (ConnectorError, *_PARSE_ERRORS) as exc:
            failure = self._failure(exc)
            logger.warning("%s webhook %s deregistration failed: %s", self.name, registration_id, failure)
            return False
        logger.info("Deregistered %s webhook %s", self.name, registration_id)
        return True

    @staticmethod
    def _failure(exc: Exception) -> RegistrationFailed:
        status = exc.status_code if isinstance(exc, ConnectorError) else None
        return RegistrationFailed(handle_error_message(exc), status_code=status)
