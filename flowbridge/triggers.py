"""
Lifecycle of long-lived trigger resources.

A trigger (poller, websocket subscription, scheduled task) is started under a
workflow key and stopped explicitly when the workflow is undeployed. Several
resources may run under the same key.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class TriggerManager:
    """Tracks running trigger resources per key.

    Resources are ``asyncio.Task`` objects (cancelled on stop) or objects
    exposing ``aclose()``, ``close()`` or ``stop()``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: Dict[str, List[Any]] = {}

    def start(self, key: str, resource: Any) -> Any:
        with self._lock:
            self._active.setdefault(key, []).append(resource)
        logger.info("Trigger started for %s", key)
        return resource

    async def stop(self, key: str) -> int:
        """Stop every resource under *key*. Returns how many were stopped."""
        with self._lock:
            resources = self._active.pop(key, [])
        for resource in resources:
            await self._release(resource)
        if resources:
            logger.info("Stopped %d trigger(s) for %s", len(resources), key)
        return len(resources)

    async def stop_all(self) -> int:
        with self._lock:
            keys = list(self._active)
        stopped = 0
        for key in keys:
            stopped += await self.stop(key)
        return stopped

    def active_keys(self) -> List[str]:
        with self._lock:
            return sorted(self._active)

    def is_active(self, key: str) -> bool:
        with self._lock:
            return bool(self._active.get(key))

    async def _release(self, resource: Any) -> None:
        if isinstance(resource, asyncio.Task):
            if not resource.done():
                resource.cancel()
                try:
                    await resource
                except asyncio.CancelledError:
                    pass
            return
        for method in ("aclose", "close", "stop"):
            closer = getattr(resource, method, None)
            if callable(closer):
                result = closer()
                if inspect.isawaitable(result):
                    await result
                return
        logger.warning("Trigger resource %r has no way to stop it", resource)
