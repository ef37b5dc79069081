"""Helio pay-link / pay-stream transaction webhooks."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from flowbridge.http.errors import RequiredDataMissing
from flowbridge.http.request import RequestDescriptor
from flowbridge.webhooks.registrar import WebhookRegistrar, WebhookRegistration

HELIO_API_URL = "https://api.hel.io/v1"
HELIO_DEV_API_URL = "https://dev.api.hel.io/v1"


def _pay_type(scope: Mapping[str, Any]) -> Tuple[str, str]:
    """``(path segment, id field)`` for the pay link or pay stream in *scope*."""
    if scope.get("paylinkId"):
        return "paylink", "paylinkId"
    return "stream", "streamId"


class HelioRegistrar(WebhookRegistrar):
    """Webhooks scoped to a single pay link or pay stream.

    Scope fields: ``paylinkId`` or ``streamId`` (one is required) and
    ``network`` (``"test"`` selects the dev API).
    """

    name = "helio"
    required_credential = ("apiKey", "secretKey")
    required_delete_scope = ()

    def check_preconditions(
        self,
        scope: Mapping[str, Any],
        credential: Optional[Mapping[str, Any]],
        required_scope: Optional[Tuple[str, ...]] = None,
    ) -> None:
        super().check_preconditions(scope, credential, required_scope)
        if required_scope is None and not (scope.get("paylinkId") or scope.get("streamId")):
            raise RequiredDataMissing("Required data missing: paylinkId or streamId")

    @staticmethod
    def _base_url(scope: Mapping[str, Any]) -> str:
        return HELIO_DEV_API_URL if scope.get("network") == "test" else HELIO_API_URL

    @staticmethod
    def _headers(credential: Mapping[str, Any]) -> Dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {credential['secretKey']}"}

    def _transaction_url(self, scope: Mapping[str, Any]) -> str:
        segment, _ = _pay_type(scope)
        return f"{self._base_url(scope)}/webhook/{segment}/transaction"

    def list_request(self, scope: Mapping[str, Any], credential: Mapping[str, Any]) -> RequestDescriptor:
        _, id_field = _pay_type(scope)
        return RequestDescriptor(
            "GET",
            self._transaction_url(scope),
            headers=self._headers(credential),
            params={"apiKey": credential["apiKey"], id_field: scope[id_field]},
        )

    def parse_registrations(self, body: Any) -> List[WebhookRegistration]:
        return [
            WebhookRegistration(
                id=str(hook["id"]),
                target_url=hook.get("targetUrl", ""),
                events=tuple(hook.get("events") or ()),
                scope={"paylinkId": hook.get("paylink"), "streamId": hook.get("stream")},
                raw=hook,
            )
            for hook in body or []
        ]

    def events_match(self, registration: WebhookRegistration, events: Tuple[str, ...]) -> bool:
        return all(event in registration.events for event in events)

    def scope_matches(self, registration: WebhookRegistration, scope: Mapping[str, Any]) -> bool:
        _, id_field = _pay_type(scope)
        return registration.scope.get(id_field) == scope.get(id_field)

    def create_request(
        self,
        target_url: str,
        events: Tuple[str, ...],
        scope: Mapping[str, Any],
        credential: Mapping[str, Any],
    ) -> RequestDescriptor:
        _, id_field = _pay_type(scope)
        payload = {"events": list(events), "targetUrl": target_url, id_field: scope[id_field]}
        return RequestDescriptor(
            "POST",
            self._transaction_url(scope),
            headers=self._headers(credential),
            params={"apiKey": credential["apiKey"]},
            json=payload,
        )

    def parse_created_id(self, body: Any) -> Optional[str]:
        if body and body.get("id"):
            return str(body["id"])
        return None

    def delete_request(
        self,
        registration_id: str,
        scope: Mapping[str, Any],
        credential: Mapping[str, Any],
    ) -> RequestDescriptor:
        return RequestDescriptor(
            "DELETE",
            f"{self._transaction_url(scope)}/{registration_id}",
            headers=self._headers(credential),
            params={"apiKey": credential["apiKey"]},
        )
