"""OAuth2 refresh-token grant."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from flowbridge import config
from flowbridge.http.errors import (
    RemoteError,
    RequiredDataMissing,
    compose_error_message,
    error_for_response,
    handle_error_message,
)

logger = logging.getLogger(__name__)


@dataclass
class OAuth2Refresh:
    """Fields returned by the token endpoint that the caller must persist."""

    access_token: str
    expires_in: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


async def refresh_oauth2_token(
    credential: Mapping[str, Any],
    client: Optional[httpx.AsyncClient] = None,
) -> OAuth2Refresh:
    """Exchange the credential's refresh token for a new access token.

    Raises :class:`RequiredDataMissing` when the credential lacks a token URL
    or refresh token, and a normalized :class:`ConnectorError` when the token
    endpoint fails.
    """
    url = credential.get("accessTokenUrl")
    refresh_token = credential.get("refresh_token")
    if not url or not refresh_token:
        raise RequiredDataMissing("Missing OAuth2 refresh data")

    payload = {
        "grant_type": "refresh_token",
        "client_id": credential.get("clientID"),
        "client_secret": credential.get("clientSecret"),
        "refresh_token": refresh_token,
    }
    headers = {"Content-Type": "application/json; charset=utf-8"}

    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=config.HTTP_TIMEOUT)
    try:
        try:
            resp = await http.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise RemoteError(handle_error_message(exc)) from exc
    finally:
        if owns_client:
            await http.aclose()

    if resp.status_code >= 400:
        raise error_for_response(resp)

    try:
        data = resp.json()
        access_token = data["access_token"]
    except (ValueError, KeyError, TypeError) as exc:
        raise RemoteError(
            compose_error_message("Invalid token response", resp.text),
            status_code=resp.status_code,
        ) from exc

    logger.info("Refreshed OAuth2 access token via %s", url)
    return OAuth2Refresh(access_token=access_token, expires_in=data.get("expires_in"))
