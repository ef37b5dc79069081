"""Webhook registration with providers and inbound request handling.

``deployments`` and ``receiver`` depend on the node layer and are imported
from their modules directly.
"""

from flowbridge.webhooks.envelope import WebhookEnvelope
from flowbridge.webhooks.registrar import (
    EventSelector,
    WebhookRegistrar,
    WebhookRegistration,
    normalize_events,
)

__all__ = [
    "EventSelector",
    "WebhookEnvelope",
    "WebhookRegistrar",
    "WebhookRegistration",
    "normalize_events",
]
