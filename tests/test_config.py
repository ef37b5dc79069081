"""
Tests for environment-driven configuration.
"""

import importlib

from flowbridge import config
from flowbridge.http.invoker import ResilientInvoker


def _reload_with(monkeypatch, **env):
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    try:
        return importlib.reload(config)
    finally:
        monkeypatch.undo()


class TestConfig:

    def test_defaults(self, monkeypatch):
        for key in ("FLOWBRIDGE_MAX_ATTEMPTS", "FLOWBRIDGE_DEFAULT_RETRY_AFTER", "FLOWBRIDGE_INVOKE_DEADLINE"):
            monkeypatch.delenv(key, raising=False)
        reloaded = importlib.reload(config)
        assert reloaded.MAX_ATTEMPTS == 5
        assert reloaded.DEFAULT_RETRY_AFTER == 60
        assert reloaded.INVOKE_DEADLINE is None
        assert reloaded.WEBHOOK_PATH_PREFIX == "api/v1/webhook/"

    def test_env_overrides(self, monkeypatch):
        reloaded = _reload_with(
            monkeypatch,
            FLOWBRIDGE_MAX_ATTEMPTS="3",
            FLOWBRIDGE_INVOKE_DEADLINE="12.5",
            TUNNEL_BASE_URL="https://abc.ngrok.io/",
        )
        try:
            assert reloaded.MAX_ATTEMPTS == 3
            assert reloaded.INVOKE_DEADLINE == 12.5
            assert reloaded.TUNNEL_BASE_URL == "https://abc.ngrok.io/"
        finally:
            importlib.reload(config)

    def test_invoker_reads_config(self, monkeypatch):
        monkeypatch.setattr(config, "MAX_ATTEMPTS", 2)
        monkeypatch.setattr(config, "DEFAULT_RETRY_AFTER", 7)
        invoker = ResilientInvoker()
        assert invoker.max_attempts == 2
        assert invoker.default_retry_after == 7
