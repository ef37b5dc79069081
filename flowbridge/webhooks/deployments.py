"""
Webhook endpoint bindings for deployed workflows.

Deploying a webhook node assigns it an endpoint under the public tunnel URL,
registers that URL with the node's provider (when it has one) and keeps the
provider-assigned id so undeploying can remove it again.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import httpx

from flowbridge import config
from flowbridge.nodes.base import NodeData, Webhookable
from flowbridge.nodes.registry import NodeRegistry

logger = logging.getLogger(__name__)


@dataclass
class WebhookBinding:
    endpoint: str
    http_method: str
    node_name: str
    node_data: NodeData
    webhook_id: Optional[str] = None
    created_at: float = field(default_factory=time.time)


class WebhookDeployments:
    """In-memory store of active webhook bindings keyed by (endpoint, method)."""

    def __init__(
        self,
        nodes: NodeRegistry,
        *,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
    ) -> None:
        self._nodes = nodes
        self.client = client
        self._base_url = base_url if base_url is not None else config.TUNNEL_BASE_URL
        self._lock = threading.Lock()
        self._bindings: Dict[Tuple[str, str], WebhookBinding] = {}

    def webhook_url(self, endpoint: str) -> str:
        base = self._base_url if self._base_url.endswith("/") else f"{self._base_url}/"
        return f"{base}{config.WEBHOOK_PATH_PREFIX}{endpoint}"

    def create_node(self, node_name: str) -> Webhookable:
        node = self._nodes.create(node_name, client=self.client)
        if not isinstance(node, Webhookable):
            raise ValueError(f"Node '{node_name}' does not receive webhooks")
        return node

    async def deploy(
        self,
        node_name: str,
        node_data: NodeData,
        http_method: Optional[str] = None,
    ) -> WebhookBinding:
        """Bind *node_name* to an endpoint and register it with the provider.

        Missing node configuration raises ``RequiredDataMissing``; provider
        failures are logged by the registrar and leave ``webhook_id`` unset.
        """
        node = self.create_node(node_name)
        endpoint = node_data.webhook_endpoint or uuid.uuid4().hex
        method = (http_method or node_data.parameter("httpMethod") or "POST").upper()
        node_data.webhook_endpoint = endpoint

        webhook_id = await node.create_webhook(node_data, self.webhook_url(endpoint))
        binding = WebhookBinding(
            endpoint=endpoint,
            http_method=method,
            node_name=node_name,
            node_data=node_data,
            webhook_id=webhook_id,
        )
        with self._lock:
            self._bindings[(endpoint, method)] = binding
        logger.info("Deployed %s webhook on %s %s", node_name, method, self.webhook_url(endpoint))
        return binding

    async def undeploy(self, endpoint: str, http_method: str = "POST") -> bool:
        """Remove a binding and deregister its provider webhook.

        Returns False when no such binding exists.
        """
        with self._lock:
            binding = self._bindings.pop((endpoint, http_method.upper()), None)
        if binding is None:
            return False
        if binding.webhook_id:
            node = self.create_node(binding.node_name)
            if not await node.delete_webhook(binding.node_data, binding.webhook_id):
                logger.warning(
                    "Provider webhook %s for %s was not removed", binding.webhook_id, endpoint
                )
        logger.info("Undeployed webhook %s %s", binding.http_method, endpoint)
        return True

    def get(self, endpoint: str, http_method: str) -> Optional[WebhookBinding]:
        with self._lock:
            return self._bindings.get((endpoint, http_method.upper()))

    def has_endpoint(self, endpoint: str) -> bool:
        with self._lock:
            return any(key[0] == endpoint for key in self._bindings)

    def list_bindings(self) -> List[WebhookBinding]:
        with self._lock:
            return list(self._bindings.values())

    def reset(self) -> None:
        with self._lock:
            self._bindings.clear()
