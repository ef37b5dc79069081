"""Request descriptors, credential helpers and response body parsing."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

import httpx

from flowbridge.http.query import serialize_query_params

# Opaque bag of secrets owned by the caller. Never mutated here.
Credential = Dict[str, Any]

OAUTH2_REFRESH_KEYS = ("refresh_token", "accessTokenUrl")


def is_oauth2_credential(credential: Optional[Mapping[str, Any]]) -> bool:
    """True when *credential* carries what a refresh-token grant needs."""
    if not credential:
        return False
    return all(credential.get(key) for key in OAUTH2_REFRESH_KEYS)


def authorization_header(credential: Mapping[str, Any], access_token: Optional[str] = None) -> str:
    """Build ``<token_type> <access_token>``, defaulting the type to Bearer."""
    token_type = credential.get("token_type") or "Bearer"
    token = access_token if access_token is not None else credential.get("access_token", "")
    return f"{token_type} {token}"


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything needed to issue one HTTP attempt.

    Descriptors are immutable: retries derive a new one through
    :meth:`with_header` instead of editing headers in place.
    """

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    json: Any = None
    content: Optional[str] = None
    skip_index: bool = False

    def with_header(self, name: str, value: str) -> "RequestDescriptor":
        headers = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        headers[name] = value
        return replace(self, headers=headers)

    def full_url(self) -> str:
        """URL with the canonically serialized query string appended."""
        query = serialize_query_params(self.params, skip_index=self.skip_index)
        if not query:
            return self.url
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{query}"

    def build(self, client: httpx.AsyncClient) -> httpx.Request:
        kwargs: Dict[str, Any] = {"headers": self.headers}
        if self.json is not None:
            kwargs["json"] = self.json
        elif self.content is not None:
            kwargs["content"] = self.content
        return client.build_request(self.method.upper(), self.full_url(), **kwargs)


def parse_response_body(response: httpx.Response) -> Any:
    """Decode a response the way callers expect: JSON, text, or None."""
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text
