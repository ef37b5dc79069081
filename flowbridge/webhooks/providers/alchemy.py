"""Alchemy Notify webhooks."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from flowbridge.http.request import RequestDescriptor
from flowbridge.webhooks.registrar import WebhookRegistrar, WebhookRegistration

ALCHEMY_API_URL = "https://dashboard.alchemyapi.io/api"


class AlchemyRegistrar(WebhookRegistrar):
    """Team webhooks scoped by ``app_id``; the event selector is the webhook type."""

    name = "alchemy"
    required_credential = ("authToken",)
    required_scope = ("app_id",)
    required_delete_scope = ()
    requires_events = True

    def __init__(self, *args: Any, base_url: str = ALCHEMY_API_URL, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.base_url = base_url.rstrip("/")

    @staticmethod
    def _headers(credential: Mapping[str, Any]) -> Dict[str, str]:
        return {"X-Alchemy-Token": credential["authToken"]}

    def list_request(self, scope: Mapping[str, Any], credential: Mapping[str, Any]) -> RequestDescriptor:
        return RequestDescriptor("GET", f"{self.base_url}/team-webhooks", headers=self._headers(credential))

    def parse_registrations(self, body: Any) -> List[WebhookRegistration]:
        return [
            WebhookRegistration(
                id=str(hook["id"]),
                target_url=hook.get("webhook_url", ""),
                events=(hook.get("webhook_type", ""),),
                scope={"app_id": hook.get("app_id")},
                raw=hook,
            )
            for hook in (body or {}).get("data") or []
        ]

    def create_request(
        self,
        target_url: str,
        events: Tuple[str, ...],
        scope: Mapping[str, Any],
        credential: Mapping[str, Any],
    ) -> RequestDescriptor:
        payload = {"app_id": scope["app_id"], "webhook_type": events[0], "webhook_url": target_url}
        return RequestDescriptor(
            "POST", f"{self.base_url}/create-webhook", headers=self._headers(credential), json=payload
        )

    def parse_created_id(self, body: Any) -> Optional[str]:
        data = (body or {}).get("data") or {}
        if data.get("id"):
            return str(data["id"])
        return None

    def delete_request(
        self,
        registration_id: str,
        scope: Mapping[str, Any],
        credential: Mapping[str, Any],
    ) -> RequestDescriptor:
        return RequestDescriptor(
            "DELETE",
            f"{self.base_url}/delete-webhook",
            headers=self._headers(credential),
            params={"webhook_id": registration_id},
        )
