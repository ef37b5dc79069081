"""Inbound webhook nodes.

``Webhook`` is the generic endpoint. Provider nodes reuse its pass-through
behaviour and add a registrar so deploying them subscribes the endpoint at
the provider.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from flowbridge.nodes.base import (
    NodeData,
    WebhookExecutionData,
    Webhookable,
    return_webhook_execution_data,
)
from flowbridge.webhooks.envelope import WebhookEnvelope
from flowbridge.webhooks.providers import AlchemyRegistrar, GitHubRegistrar, HelioRegistrar
from flowbridge.webhooks.registrar import EventSelector


class Webhook(Webhookable):
    name = "webhook"
    label = "Webhook"
    description = "Start workflow when webhook is called"

    async def run_webhook(
        self,
        node_data: NodeData,
        envelope: WebhookEnvelope,
    ) -> Optional[List[WebhookExecutionData]]:
        node_data.require("input_parameters")
        response = node_data.parameter("responseData")
        return return_webhook_execution_data(
            [envelope.to_payload()],
            response if isinstance(response, str) else None,
        )


class GitHubWebhook(Webhook):
    name = "gitHubWebhook"
    label = "GitHub Webhook"
    description = "Start workflow whenever GitHub webhook event happened"
    registrar_class = GitHubRegistrar

    async def run_webhook(
        self,
        node_data: NodeData,
        envelope: WebhookEnvelope,
    ) -> Optional[List[WebhookExecutionData]]:
        # GitHub sends a ping right after the hook is created
        if envelope.headers.get("x-github-event") == "ping":
            return None
        return await super().run_webhook(node_data, envelope)

    def webhook_scope(self, node_data: NodeData) -> Dict[str, Any]:
        return {"owner": node_data.parameter("owner"), "repo": node_data.parameter("repo")}


class HelioWebhook(Webhook):
    name = "helioWebhook"
    label = "Helio Webhook"
    description = "Start workflow whenever Helio webhook event happened"
    registrar_class = HelioRegistrar

    def webhook_scope(self, node_data: NodeData) -> Dict[str, Any]:
        return {
            "network": (node_data.networks or {}).get("network"),
            "paylinkId": node_data.parameter("paylinkId"),
            "streamId": node_data.parameter("streamId"),
        }


class AlchemyWebhook(Webhook):
    name = "alchemyWebhook"
    label = "Alchemy Webhook"
    description = "Start workflow whenever Alchemy webhook event happened"
    registrar_class = AlchemyRegistrar

    def webhook_events(self, node_data: NodeData) -> EventSelector:
        return node_data.parameter("webhook_type") or ()

    def webhook_scope(self, node_data: NodeData) -> Dict[str, Any]:
        return {"app_id": node_data.parameter("app_id")}
