"""Declarative condition evaluation for the event engine.

Supported condition types:
- attribute: compare an actor stat
- item / itemCount: check held items
- level: compare the actor level
- chainContext: read a value from an active chain context
- history, streak, cumulative, daysSince, eventCount: delegated to the
  history manager and fail-closed when none is available
"""
from __future__ import annotations
import logging
from typing import Any, List, Optional

from ..core.state import ActorState, Inventory
from ..errors import ComparisonTypeError
from .model import Condition, ConditionGroup, ConditionType, EventDefinition, OPERATORS

logger = logging.getLogger(__name__)

_ORDERING = (">", ">=", "<", "<=")


def _kind(value: Any) -> str:
    # bool is an int subclass, keep it apart from numbers
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    raise ComparisonTypeError(f"Unsupported comparison operand: {value!r}")


def compare(actual: Any, operator: str, expected: Any) -> bool:
    """Compare two tagged values without implicit coercion.

    Ordering operators accept two numbers or two strings; equality operators
    accept any two values of the same kind. An unknown operator is false.

    Raises:
        ComparisonTypeError: when the operand kinds do not match
    """
    if operator not in OPERATORS:
        return False
    left, right = _kind(actual), _kind(expected)
    if left != right:
        raise ComparisonTypeError(
            f"Cannot compare {left} {actual!r} with {right} {expected!r} using '{operator}'"
        )
    if operator in _ORDERING and left == "bool":
        raise ComparisonTypeError(f"Operator '{operator}' is not defined for booleans")

    if operator == ">":
        return actual > expected
    if operator == ">=":
        return actual >= expected
    if operator == "<":
        return actual < expected
    if operator == "<=":
        return actual <= expected
    if operator == "==":
        return actual == expected
    return actual != expected


def resolve_path(data: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts. Missing segments give None."""
    current = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def check(condition: Condition, actor: ActorState, inventory: Inventory,
          history=None, chain_id: Optional[str] = None, chains=None) -> bool:
    """Check if a single condition is met.

    Args:
        condition: The condition to evaluate
        actor: Current actor state
        inventory: Current inventory
        history: Optional HistoryManager, required by history conditions
        chain_id: Id of the chain the event belongs to, if any
        chains: Optional ChainManager, required by chainContext conditions

    Returns:
        True if condition is satisfied, False otherwise (including every
        condition that cannot be evaluated)
    """
    try:
        return _check(condition, actor, inventory, history, chain_id, chains)
    except ComparisonTypeError as e:
        logger.warning(f"Condition {condition.type.value}:{condition.key} rejected: {e}")
        return False


def _check(condition: Condition, actor: ActorState, inventory: Inventory,
           history, chain_id: Optional[str], chains) -> bool:
    ctype = condition.type

    if ctype == ConditionType.ATTRIBUTE:
        current = actor.stats.get(condition.key)
        if current is None:
            return False
        return compare(current, condition.operator, condition.value)

    elif ctype == ConditionType.ITEM:
        held = inventory.quantity_of(condition.key)
        if condition.value is None:
            # Presence check: "==" held, "!=" not held
            if condition.operator == "==":
                return held > 0
            if condition.operator == "!=":
                return held == 0
            return False
        return compare(held, condition.operator, condition.value)

    elif ctype == ConditionType.ITEM_COUNT:
        return compare(inventory.quantity_of(condition.key), condition.operator, condition.value)

    elif ctype == ConditionType.LEVEL:
        return compare(actor.level, condition.operator, condition.value)

    elif ctype == ConditionType.CHAIN_CONTEXT:
        if not chain_id or chains is None:
            return False
        return chains.check_chain_context_condition(condition, chain_id)

    elif condition.is_history:
        # Fail closed: without history a "days since X" event must never fire
        if history is None:
            return False
        return history.check_history_condition(condition, actor.days_lived)

    logger.warning(f"Unknown condition type: {ctype}")
    return False


def check_all(conditions: List[Condition], actor: ActorState, inventory: Inventory,
              mode: str = "AND", history=None, chain_id: Optional[str] = None,
              chains=None) -> bool:
    """Combine a condition list with AND or OR. An empty list is always true."""
    if not conditions:
        return True
    if mode == "AND":
        return all(check(c, actor, inventory, history, chain_id, chains) for c in conditions)
    if mode == "OR":
        return any(check(c, actor, inventory, history, chain_id, chains) for c in conditions)
    logger.warning(f"Unknown condition mode '{mode}', rejecting")
    return False


def can_trigger(event: EventDefinition, actor: ActorState, inventory: Inventory,
                history=None, chain_id: Optional[str] = None, chains=None) -> bool:
    """Check whether an event's condition group is satisfied."""
    group: Optional[ConditionGroup] = event.conditions
    if group is None or not group.conditions:
        return True
    return check_all(group.conditions, actor, inventory, group.mode, history, chain_id, chains)
