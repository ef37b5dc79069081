"""Normalized view of an inbound webhook request."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field
from starlette.datastructures import UploadFile

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class WebhookEnvelope(BaseModel):
    """Headers, path params, query, parsed body, raw body and URL of a request.

    Serializes with ``rawBody`` as the raw body key so payloads keep the shape
    workflows already reference.
    """

    model_config = ConfigDict(populate_by_name=True)

    headers: Dict[str, str] = Field(default_factory=dict)
    params: Dict[str, str] = Field(default_factory=dict)
    query: Dict[str, Any] = Field(default_factory=dict)
    body: Any = None
    raw_body: str = Field(default="", alias="rawBody")
    url: str = ""

    @classmethod
    async def from_request(
        cls,
        request: Request,
        params: Optional[Dict[str, str]] = None,
    ) -> "WebhookEnvelope":
        raw = await request.body()
        raw_text = raw.decode("utf-8", errors="replace")
        content_type = request.headers.get("content-type", "").lower()

        query: Dict[str, Any] = {}
        for key in request.query_params.keys():
            values = request.query_params.getlist(key)
            query[key] = values[0] if len(values) == 1 else values

        url = request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"

        return cls(
            headers=dict(request.headers),
            params=dict(params if params is not None else request.path_params),
            query=query,
            body=await _parse_body(request, raw_text, content_type),
            raw_body=raw_text,
            url=url,
        )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


async def _parse_body(request: Request, raw_text: str, content_type: str) -> Any:
    if not raw_text:
        return {}
    if "json" in content_type:
        try:
            return json.loads(raw_text)
        except ValueError:
            return raw_text
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        parsed: Dict[str, Any] = {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                value = {"filename": value.filename, "content_type": value.content_type}
            if key in parsed:
                existing = parsed[key]
                parsed[key] = existing + [value] if isinstance(existing, list) else [existing, value]
            else:
                parsed[key] = value
        return parsed
    return raw_text
