"""GitHub repository webhooks."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from flowbridge.http.request import RequestDescriptor
from flowbridge.webhooks.registrar import WebhookRegistrar, WebhookRegistration

GITHUB_API_URL = "https://api.github.com"

_HOOK_URL_RE = re.compile(r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/hooks/")


class GitHubRegistrar(WebhookRegistrar):
    """Repository hooks scoped by ``owner`` / ``repo``.

    GitHub answers 404 on the listing for repositories the token cannot see
    hooks for yet; that is treated as "no hooks" and creation proceeds.
    """

    name = "github"
    required_credential = ("accessToken",)
    required_scope = ("owner", "repo")
    missing_listing_is_empty = True

    def __init__(self, *args: Any, base_url: str = GITHUB_API_URL, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.base_url = base_url.rstrip("/")

    def _hooks_url(self, scope: Mapping[str, Any]) -> str:
        return f"{self.base_url}/repos/{scope['owner']}/{scope['repo']}/hooks"

    @staticmethod
    def _headers(credential: Mapping[str, Any]) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {credential['accessToken']}",
            "Accept": "application/vnd.github+json",
        }

    def list_request(self, scope: Mapping[str, Any], credential: Mapping[str, Any]) -> RequestDescriptor:
        return RequestDescriptor(
            "GET", self._hooks_url(scope), headers=self._headers(credential), params={"per_page": 100}
        )

    def parse_registrations(self, body: Any) -> List[WebhookRegistration]:
        registrations = []
        for hook in body or []:
            scope: Dict[str, Any] = {}
            found = _HOOK_URL_RE.search(hook.get("url") or "")
            if found:
                scope = {"owner": found.group("owner"), "repo": found.group("repo")}
            registrations.append(
                WebhookRegistration(
                    id=str(hook["id"]),
                    target_url=(hook.get("config") or {}).get("url", ""),
                    events=tuple(hook.get("events") or ()),
                    scope=scope,
                    raw=hook,
                )
            )
        return registrations

    def scope_matches(self, registration: WebhookRegistration, scope: Mapping[str, Any]) -> bool:
        # The listing is already repository-scoped; only compare when GitHub echoed the path
        if not registration.scope:
            return True
        return all(
            str(registration.scope[key]).lower() == str(scope.get(key, "")).lower()
            for key in self.required_scope
        )

    def create_request(
        self,
        target_url: str,
        events: Tuple[str, ...],
        scope: Mapping[str, Any],
        credential: Mapping[str, Any],
    ) -> RequestDescriptor:
        payload = {
            "name": "web",
            "config": {"content_type": "json", "insecure_ssl": "0", "url": target_url},
            "events": list(events),
            "active": True,
        }
        return RequestDescriptor("POST", self._hooks_url(scope), headers=self._headers(credential), json=payload)

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
            "DELETE", f"{self._hooks_url(scope)}/{registration_id}", headers=self._headers(credential)
        )
