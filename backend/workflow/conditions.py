"""Guard evaluation and outgoing-edge selection.

Pure functions; nothing here touches the database.
"""

import json
import math
import re
from typing import Any, Optional, Sequence

from core.constants import ConditionOperator
from workflow.graph import Connection, Guard

_MISSING = object()


def get_field(context: dict, path: str) -> Any:
    """Resolve a (dotted) field against an execution context.

    The trigger payload is searched first, so authors can write ``amount``
    instead of ``trigger.amount``; then the whole context, which makes
    ``decision`` and ``approvals.<step_id>.decision`` addressable.
    Returns None when the field is absent.
    """
    trigger = context.get("trigger")
    if isinstance(trigger, dict):
        value = _resolve_path(trigger, path)
        if value is not _MISSING:
            return value
    value = _resolve_path(context, path)
    return None if value is _MISSING else value


def _resolve_path(data: Any, path: str) -> Any:
    if isinstance(data, dict) and path in data:
        return data[path]

    current = data
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return _MISSING
    return current


def to_text(value: Any) -> str:
    """String coercion used by equals / not_equals / contains."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def to_number(value: Any) -> float:
    """Numeric coercion used by greater_than / less_than.

    Only plain decimal or exponent literals count as numbers; anything
    else, including non-finite values, is 0.
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif value is not None and _NUMBER.match(str(value).strip()):
        number = float(str(value).strip())
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def evaluate_condition(field_value: Any, operator: ConditionOperator, target: str) -> bool:
    """Compare a context value against a guard literal."""
    if operator == ConditionOperator.EQUALS:
        return to_text(field_value) == target
    if operator == ConditionOperator.NOT_EQUALS:
        return to_text(field_value) != target
    if operator == ConditionOperator.GREATER_THAN:
        return to_number(field_value) > to_number(target)
    if operator == ConditionOperator.LESS_THAN:
        return to_number(field_value) < to_number(target)
    if operator == ConditionOperator.CONTAINS:
        return target.lower() in to_text(field_value).lower()
    return False


def evaluate_guard(guard: Guard, context: dict) -> bool:
    return evaluate_condition(get_field(context, guard.field), guard.operator, guard.value)


def select_connection(
    connections: Sequence[Connection],
    context: dict,
    fall_back_to_first: bool = False,
) -> Optional[Connection]:
    """Pick the edge to follow out of a branching step.

    First guarded connection whose guard holds; else the first unguarded
    connection. With ``fall_back_to_first`` (condition steps), the first
    connection is taken when neither exists. Otherwise returns None.
    """
    for conn in connections:
        if conn.guard is not None and evaluate_guard(conn.guard, context):
            return conn
    for conn in connections:
        if conn.guard is None:
            return conn
    if fall_back_to_first and connections:
        return connections[0]
    return None
