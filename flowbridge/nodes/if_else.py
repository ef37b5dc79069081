"""Branch a workflow on a list of conditions."""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List

from flowbridge.nodes.base import NodeData, NodeExecutionData, Runnable, return_node_execution_data


def _text(value: Any) -> str:
    return str(value) if value else ""


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value) if value else 0.0
    except (TypeError, ValueError):
        return 0.0


def _regex(value1: Any, value2: Any) -> bool:
    try:
        return re.search(_text(value2), _text(value1)) is not None
    except re.error:
        return False


COMPARE_OPERATIONS: Dict[str, Callable[[Any, Any], bool]] = {
    "contains": lambda a, b: _text(b) in _text(a),
    "notContains": lambda a, b: _text(b) not in _text(a),
    "endsWith": lambda a, b: _text(a).endswith(_text(b)),
    "equal": lambda a, b: a == b,
    "notEqual": lambda a, b: a != b,
    "larger": lambda a, b: _number(a) > _number(b),
    "largerEqual": lambda a, b: _number(a) >= _number(b),
    "smaller": lambda a, b: _number(a) < _number(b),
    "smallerEqual": lambda a, b: _number(a) <= _number(b),
    "startsWith": lambda a, b: _text(a).startswith(_text(b)),
    "regex": _regex,
    "isEmpty": lambda a, _b: a is None or a == "",
}

# (met, total) -> branch taken
MODE_CHECKS: Dict[str, Callable[[int, int], bool]] = {
    "and": lambda met, total: met == total,
    "or": lambda met, _total: met > 0,
}


class IfElse(Runnable):
    name = "ifElse"
    label = "If Else"
    description = "Split flows based on If Else criteria"
    outgoing = 2

    async def run(self, node_data: NodeData) -> List[NodeExecutionData]:
        node_data.require("input_parameters")
        mode = node_data.parameter("mode", "and")
        conditions = node_data.parameter("conditions") or []

        met: List[Dict[str, Any]] = []
        unmet: List[Dict[str, Any]] = []
        for condition in conditions:
            operation = condition.get("operation")
            compare = COMPARE_OPERATIONS.get(operation)
            if compare is None:
                raise ValueError(f"Unknown operation '{operation}'")
            value1, value2 = condition.get("value1"), condition.get("value2")
            entry = {"value1": value1, "operation": operation, "value2": value2}
            (met if compare(value1, value2) else unmet).append(entry)

        data = {"mode": mode, "metConditions": met, "unmetConditions": unmet}
        true_branch: Dict[str, Any] = {}
        false_branch: Dict[str, Any] = {}
        # an unrecognised mode routes to neither branch
        if mode in MODE_CHECKS:
            if MODE_CHECKS[mode](len(met), len(conditions)):
                true_branch = data
            else:
                false_branch = data
        return return_node_execution_data([true_branch, false_branch])
