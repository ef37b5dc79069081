"""Chat-channel incoming webhooks (Discord, Slack, Teams).

These services answer bursts with 429 and a ``retry-after`` header, so posts
go through the invoker in retry-after mode.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Dict, List

from flowbridge.http.errors import RequiredDataMissing
from flowbridge.http.invoker import ResilientInvoker, RetryMode
from flowbridge.http.request import RequestDescriptor
from flowbridge.nodes.base import NodeData, NodeExecutionData, Runnable, return_node_execution_data

JSON_HEADERS = {"Content-Type": "application/json; charset=utf-8"}


class ChatWebhookNode(Runnable):
    exhausted_message = "Max retries limit was reached."
    query: Dict[str, Any] = {}

    @abstractmethod
    def build_body(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """JSON payload posted to the channel webhook."""

    def invoker(self) -> ResilientInvoker:
        return ResilientInvoker(
            self.client,
            retry_mode=RetryMode.RETRY_AFTER,
            exhausted_message=self.exhausted_message,
        )

    async def run(self, node_data: NodeData) -> List[NodeExecutionData]:
        node_data.require("input_parameters")
        params = node_data.input_parameters or {}
        webhook_url = params.get("webhookUrl")
        if not webhook_url:
            raise RequiredDataMissing("Missing webhook URL")

        descriptor = RequestDescriptor(
            "POST",
            webhook_url,
            headers=dict(JSON_HEADERS),
            params=dict(self.query),
            json=self.build_body(params),
        )
        result = await self.invoker().invoke(descriptor)
        return return_node_execution_data(result.body)


class Discord(ChatWebhookNode):
    name = "discord"
    label = "Discord"
    description = "Post message in Discord channel"
    exhausted_message = "Error posting message to discord channel. Max retries limit was reached."
    query = {"wait": "true"}

    def build_body(self, params: Dict[str, Any]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"content": params.get("content")}
        if params.get("username"):
            body["username"] = params["username"]
        if params.get("avatarUrl"):
            body["avatar_url"] = params["avatarUrl"]
        if params.get("tts"):
            body["tts"] = bool(params["tts"])
        return body


class Slack(ChatWebhookNode):
    name = "slack"
    label = "Slack"
    description = "Post message in Slack channel"
    exhausted_message = "Error posting message to Slack channel. Max retries limit was reached."

    def build_body(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"text": params.get("text")}


class Teams(ChatWebhookNode):
    name = "teams"
    label = "Teams"
    description = "Post message in Teams channel"
    exhausted_message = "Error posting message to Teams channel. Max retries limit was reached."

    def build_body(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"text": params.get("text")}
