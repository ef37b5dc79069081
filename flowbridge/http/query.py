"""Canonical query-string serializer shared by every outbound call.

Providers expect bracketed array keys and literal colons (timestamps), so
values are percent-encoded like ``encodeURIComponent`` and a fixed set of
characters is then restored.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from typing import Any, List, Mapping, Optional
from urllib.parse import quote

# encodeURIComponent leaves these unescaped
URI_COMPONENT_SAFE = "-_.!~*'()"

_UNESCAPE = (
    ("%3A", ":"),
    ("%24", "$"),
    ("%2C", ","),
    ("%20", "+"),
    ("%5B", "["),
    ("%5D", "]"),
)


def encode_component(value: str) -> str:
    encoded = quote(value, safe=URI_COMPONENT_SAFE)
    for escaped, literal in _UNESCAPE:
        encoded = encoded.replace(escaped, literal)
    return encoded


def _iso_datetime(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _stringify(value: Any) -> str:
    if isinstance(value, datetime):
        return _iso_datetime(value)
    if isinstance(value, date):
        return value.isoformat()
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def serialize_query_params(params: Optional[Mapping[str, Any]], skip_index: bool = False) -> str:
    """Serialize *params* into a query string (without the leading ``?``).

    ``None`` values are dropped, lists expand to ``key[0]=a&key[1]=b`` (or
    ``key=a&key=b`` with *skip_index*), mappings are JSON-encoded and dates
    are rendered as ISO-8601.
    """
    if not params:
        return ""
    parts: List[str] = []

    def add(key: str, value: Any) -> None:
        parts.append(f"{encode_component(key)}={encode_component(_stringify(value))}")

    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                add(key if skip_index else f"{key}[{index}]", item)
        else:
            add(key, value)
    return "&".join(parts)
