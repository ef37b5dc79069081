"""Integration nodes and the registry that resolves them by name."""

from flowbridge.nodes.base import (
    OAUTH2_REFRESHED,
    BaseNode,
    NodeData,
    NodeExecutionData,
    NodeType,
    Runnable,
    WebhookExecutionData,
    Webhookable,
    return_node_execution_data,
    return_webhook_execution_data,
)
from flowbridge.nodes.registry import NodeNotFoundError, NodeRegistry

__all__ = [
    "OAUTH2_REFRESHED",
    "BaseNode",
    "NodeData",
    "NodeExecutionData",
    "NodeNotFoundError",
    "NodeRegistry",
    "NodeType",
    "Runnable",
    "WebhookExecutionData",
    "Webhookable",
    "return_node_execution_data",
    "return_webhook_execution_data",
]
