"""Node registry with auto-discovery.

Maps node names to implementation classes. Resolved once at startup instead
of probing objects for ``run`` / ``run_webhook`` at call time.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pathlib
from typing import Any, Dict, List, Type

from flowbridge.nodes.base import BaseNode

logger = logging.getLogger(__name__)


class NodeNotFoundError(LookupError):
    """Raised when a requested node is not registered."""


class NodeRegistry:
    """Registry of node classes keyed by ``BaseNode.name``.

    Instantiate one per application (or per test) for an isolated registry.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, Type[BaseNode]] = {}

    def register(self, node_cls: Type[BaseNode]) -> None:
        """Register a node class. Uses ``node_cls.name`` as the key."""
        name = node_cls.name.strip()
        if not name:
            raise ValueError("Node class must have a non-empty 'name' attribute")
        self._nodes[name] = node_cls

    def get(self, name: str) -> Type[BaseNode]:
        """Look up a node class by name. Raises NodeNotFoundError if missing."""
        cls = self._nodes.get(name.strip())
        if cls is None:
            available = sorted(self._nodes)
            raise NodeNotFoundError(f"Unknown node '{name}'. Available: {available}")
        return cls

    def create(self, name: str, **kwargs: Any) -> BaseNode:
        return self.get(name)(**kwargs)

    def unregister(self, name: str) -> bool:
        return self._nodes.pop(name.strip(), None) is not None

    def has(self, name: str) -> bool:
        return name.strip() in self._nodes

    def list_nodes(self) -> List[str]:
        return sorted(self._nodes)

    def clear(self) -> None:
        self._nodes.clear()

    def all_nodes_info(self) -> List[Dict[str, Any]]:
        return [self._nodes[name].info() for name in self.list_nodes()]

    def auto_discover(self) -> int:
        """Import every module in ``flowbridge.nodes`` and register its nodes.

        Returns the number of nodes newly registered.
        """
        before = len(self._nodes)
        _scan_directory(pathlib.Path(__file__).resolve().parent, "flowbridge.nodes", self)
        return len(self._nodes) - before


def _scan_directory(directory: pathlib.Path, base_module: str, registry: NodeRegistry) -> None:
    """Walk *directory* for .py files, import them, and register concrete nodes."""
    if not directory.is_dir():
        return
    for py_file in sorted(directory.glob("*.py")):
        if py_file.name.startswith("_"):
            continue
        module_name = f"{base_module}.{py_file.stem}"
        try:
            mod = importlib.import_module(module_name)
        except ImportError:
            logger.warning("Failed to import node module %s", module_name, exc_info=True)
            continue
        for _attr_name, obj in inspect.getmembers(mod, inspect.isclass):
            if (
                issubclass(obj, BaseNode)
                and not inspect.isabstract(obj)
                and getattr(obj, "name", "")
                and not registry.has(obj.name)
            ):
                registry.register(obj)
                logger.debug("Auto-discovered node: %s", obj.name)
