import httpx
import pytest

from flowbridge.nodes.registry import NodeRegistry


class SleepRecorder:
    """Stands in for ``asyncio.sleep`` so backoff runs on a simulated clock."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def mock_client():
    """Factory for ``httpx.AsyncClient`` instances backed by a handler function."""

    def make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return make


@pytest.fixture
def oauth2_credential():
    return {
        "clientID": "client-id",
        "clientSecret": "client-secret",
        "accessTokenUrl": "https://auth.example.com/token",
        "refresh_token": "refresh-me",
        "token_type": "Bearer",
        "access_token": "stale-token",
    }


@pytest.fixture
def registry():
    """Isolated node registry populated by auto-discovery."""
    nodes = NodeRegistry()
    nodes.auto_discover()
    return nodes
