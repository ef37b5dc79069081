"""Capability interfaces every integration node implements explicitly."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type, Union

import httpx

from flowbridge.http.errors import RequiredDataMissing
from flowbridge.webhooks.registrar import EventSelector, WebhookRegistrar

if TYPE_CHECKING:
    from flowbridge.webhooks.envelope import WebhookEnvelope

OAUTH2_REFRESHED = "oAuth2RefreshedData"

NodeExecutionData = Dict[str, Any]
WebhookExecutionData = Dict[str, Any]


class NodeType(str, Enum):
    ACTION = "action"
    WEBHOOK = "webhook"
    TRIGGER = "trigger"


@dataclass
class NodeData:
    """Configuration the engine hands to a node for one execution.

    Sections are ``None`` when the workflow did not provide them at all.
    """

    node_id: str = ""
    actions: Optional[Dict[str, Any]] = None
    credentials: Optional[Dict[str, Any]] = None
    networks: Optional[Dict[str, Any]] = None
    input_parameters: Optional[Dict[str, Any]] = None
    workflow_short_id: Optional[str] = None
    webhook_endpoint: Optional[str] = None

    def require(self, *sections: str) -> None:
        """Raise :class:`RequiredDataMissing` unless every section is present."""
        for section in sections:
            if getattr(self, section) is None:
                if section == "credentials":
                    raise RequiredDataMissing("Missing credentials")
                raise RequiredDataMissing("Required data missing")

    def parameter(self, key: str, default: Any = None) -> Any:
        return (self.input_parameters or {}).get(key, default)


def return_node_execution_data(
    response_data: Union[Any, List[Any]],
    oauth2_refreshed: Optional[Dict[str, Any]] = None,
) -> List[NodeExecutionData]:
    """Wrap response items as ``{"data": item}`` for the engine.

    ``attachments`` and ``html`` are lifted next to ``data``; refreshed OAuth2
    fields ride along under ``oAuth2RefreshedData`` so the engine can persist
    them.
    """
    items = response_data if isinstance(response_data, list) else [response_data]
    results: List[NodeExecutionData] = []
    for data in items:
        entry: NodeExecutionData = {"data": data}
        if isinstance(data, dict):
            attachments = data.get("attachments")
            if attachments and (not isinstance(attachments, list) or len(attachments)):
                entry["attachments"] = attachments
            if data.get("html"):
                entry["html"] = data["html"]
        if oauth2_refreshed:
            entry[OAUTH2_REFRESHED] = oauth2_refreshed
        results.append(entry)
    return results


def return_webhook_execution_data(
    response_data: Union[Any, List[Any]],
    webhook_response: Optional[str] = None,
) -> List[WebhookExecutionData]:
    items = response_data if isinstance(response_data, list) else [response_data]
    results: List[WebhookExecutionData] = []
    for data in items:
        entry: WebhookExecutionData = {"data": data}
        if webhook_response:
            entry["response"] = webhook_response
        results.append(entry)
    return results


class BaseNode(ABC):
    """Metadata shared by all nodes.

    Subclasses MUST set ``name`` as a class attribute; the registry keys on it.
    """

    name: str = ""
    label: str = ""
    type: NodeType = NodeType.ACTION
    version: float = 1.0
    description: str = ""
    incoming: int = 1
    outgoing: int = 1

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self.client = client

    @classmethod
    def info(cls) -> Dict[str, Any]:
        return {
            "name": cls.name,
            "label": cls.label,
            "type": cls.type.value,
            "version": cls.version,
            "description": cls.description,
            "incoming": cls.incoming,
            "outgoing": cls.outgoing,
            "runnable": issubclass(cls, Runnable),
            "webhook": issubclass(cls, Webhookable),
        }


class Runnable(BaseNode):
    """A node the engine can execute as a workflow step."""

    @abstractmethod
    async def run(self, node_data: NodeData) -> List[NodeExecutionData]:
        """Execute the node and return its output items."""


class Webhookable(BaseNode):
    """A node started by inbound HTTP requests.

    Nodes backed by a provider that pushes events set ``registrar_class``;
    deployment then registers the callback URL with that provider.
    """

    type = NodeType.WEBHOOK
    incoming = 0
    registrar_class: Optional[Type[WebhookRegistrar]] = None

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(client)
        self.registrar: Optional[WebhookRegistrar] = (
            self.registrar_class(client) if self.registrar_class is not None else None
        )

    @abstractmethod
    async def run_webhook(
        self,
        node_data: NodeData,
        envelope: "WebhookEnvelope",
    ) -> Optional[List[WebhookExecutionData]]:
        """Turn an inbound request into output items, or ``None`` to ignore it."""

    def webhook_events(self, node_data: NodeData) -> EventSelector:
        actions = node_data.actions or {}
        return actions.get("events") or actions.get("event") or ()

    def webhook_scope(self, node_data: NodeData) -> Dict[str, Any]:
        return dict(node_data.input_parameters or {})

    async def create_webhook(self, node_data: NodeData, webhook_full_url: str) -> Optional[str]:
        if self.registrar is None:
            return None
        node_data.require("input_parameters", "credentials")
        return await self.registrar.register(
            webhook_full_url,
            self.webhook_events(node_data),
            self.webhook_scope(node_data),
            node_data.credentials,
        )

    async def delete_webhook(self, node_data: NodeData, webhook_id: str) -> bool:
        if self.registrar is None:
            return True
        return await self.registrar.deregister(
            webhook_id, node_data.credentials, self.webhook_scope(node_data)
        )
