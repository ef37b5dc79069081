"""Provider-specific webhook registrars."""

from flowbridge.webhooks.providers.alchemy import AlchemyRegistrar
from flowbridge.webhooks.providers.github import GitHubRegistrar
from flowbridge.webhooks.providers.helio import HelioRegistrar

__all__ = ["AlchemyRegistrar", "GitHubRegistrar", "HelioRegistrar"]
