"""Outcome application.

All functions work on clones: the caller's actor and inventory are never
modified. Batch application keeps going after a failed outcome and reports
partial success with the collected error messages.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..core.state import ActorState, Inventory, InventoryItem, STAT_FLOOR
from ..errors import OutcomeError
from .model import CustomEffect, Outcome, OutcomeType
from .random_values import RandomResolver, validate_random_config

logger = logging.getLogger(__name__)

FULL_HEAL_VALUE = 10


@dataclass
class OutcomeResult:
    success: bool
    logs: List[str] = field(default_factory=list)
    error: Optional[str] = None
    category: Optional[str] = None  # attribute | item | level | custom


@dataclass
class BatchSummary:
    total_outcomes: int = 0
    successful_outcomes: int = 0
    failed_outcomes: int = 0
    attribute_changes: int = 0
    item_changes: int = 0
    level_changes: int = 0


@dataclass
class BatchResult:
    actor: ActorState
    inventory: Inventory
    logs: List[str] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=BatchSummary)
    errors: List[str] = field(default_factory=list)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _signed(value) -> str:
    return f"+{value}" if value > 0 else str(value)


def validate_outcome(outcome: Outcome) -> Optional[str]:
    """Check an outcome before the event fires. Returns a reason or None."""
    if outcome.random is not None:
        problems = validate_random_config(outcome.random)
        if problems:
            return "; ".join(problems)
    if outcome.type == OutcomeType.RANDOM_OUTCOME:
        if not outcome.choices:
            return "randomOutcome has no candidate outcomes"
        for choice in outcome.choices:
            reason = validate_outcome(choice.outcome)
            if reason:
                return reason
    elif outcome.type == OutcomeType.CUSTOM:
        try:
            CustomEffect(outcome.key)
        except ValueError:
            return f"Unknown custom effect: {outcome.key}"
    elif outcome.type == OutcomeType.CHAIN_CONTEXT:
        if not (outcome.context_path or outcome.key):
            return "chainContext outcome needs a key or context path"
    elif outcome.type in (OutcomeType.ITEM_GAIN, OutcomeType.ITEM_LOSS):
        if not outcome.key:
            return f"{outcome.type.value} outcome needs an item id"
    return None


class OutcomeProcessor:
    """Applies resolved outcomes to actor and inventory copies."""

    def __init__(self, resolver: Optional[RandomResolver] = None):
        self.resolver = resolver or RandomResolver()

    def apply(self, actor: ActorState, inventory: Inventory,
              outcome: Outcome) -> Tuple[ActorState, Inventory, List[str]]:
        """Apply one outcome and return new state plus log lines.

        Raises:
            OutcomeError: the outcome could not be applied
        """
        new_actor, new_inventory = actor.clone(), inventory.clone()
        result = self.process(new_actor, new_inventory, outcome)
        if not result.success:
            raise OutcomeError(result.error or "Outcome failed")
        return new_actor, new_inventory, result.logs

    def process(self, actor: ActorState, inventory: Inventory, outcome: Outcome) -> OutcomeResult:
        """Resolve and apply ``outcome`` in place on already-cloned state."""
        try:
            resolved = self.resolver.resolve(outcome)
        except OutcomeError as e:
            return OutcomeResult(False, error=str(e))

        otype = resolved.type
        if otype == OutcomeType.ATTRIBUTE_CHANGE:
            return self._attribute_change(actor, resolved)
        elif otype == OutcomeType.LEVEL_CHANGE:
            return self._level_change(actor, resolved)
        elif otype == OutcomeType.ITEM_GAIN:
            return self._item_gain(actor, inventory, resolved)
        elif otype == OutcomeType.ITEM_LOSS:
            return self._item_loss(inventory, resolved)
        elif otype == OutcomeType.CUSTOM:
            return self._custom(actor, resolved)
        elif otype == OutcomeType.CHAIN_CONTEXT:
            return OutcomeResult(False, error="chainContext outcomes need an active chain")
        return OutcomeResult(False, error=f"Unknown outcome type: {otype}")

    def _attribute_change(self, actor: ActorState, outcome: Outcome) -> OutcomeResult:
        key = outcome.key
        if key not in actor.stats:
            return OutcomeResult(False, error=f"Unknown attribute: {key}")
        if not _is_number(outcome.value):
            return OutcomeResult(False, error=f"Invalid value for attribute change: {outcome.value!r}")
        old = actor.stats[key]
        new = max(STAT_FLOOR, int(old + outcome.value))
        actor.stats[key] = new
        return OutcomeResult(True, [f"{key} {_signed(outcome.value)} ({old} -> {new})"], category="attribute")

    def _level_change(self, actor: ActorState, outcome: Outcome) -> OutcomeResult:
        if not _is_number(outcome.value):
            return OutcomeResult(False, error=f"Invalid value for level change: {outcome.value!r}")
        old = actor.level
        new = max(1, int(old + outcome.value))
        actor.level = new
        return OutcomeResult(True, [f"level {_signed(outcome.value)} ({old} -> {new})"], category="level")

    def _item_gain(self, actor: ActorState, inventory: Inventory, outcome: Outcome) -> OutcomeResult:
        quantity = outcome.value
        if not _is_number(quantity) or quantity <= 0:
            return OutcomeResult(False, error=f"Invalid quantity for item gain: {quantity!r}")
        quantity = int(quantity)

        existing = inventory.find(outcome.key)
        if existing:
            existing.quantity += quantity
            return OutcomeResult(True, [f"gained {existing.name} x{quantity}"], category="item")

        item = InventoryItem(id=outcome.key, name=outcome.key, type="misc",
                             quantity=quantity, owner_id=actor.id)
        inventory.items.append(item)
        return OutcomeResult(True, [f"gained new item {item.name} x{quantity}"], category="item")

    def _item_loss(self, inventory: Inventory, outcome: Outcome) -> OutcomeResult:
        amount = outcome.value
        if not _is_number(amount) or amount <= 0:
            return OutcomeResult(False, error=f"Invalid quantity for item loss: {amount!r}")

        item = inventory.find(outcome.key)
        if item is None:
            return OutcomeResult(True, [f"tried to lose missing item {outcome.key} (ignored)"])

        lost = min(item.quantity, int(amount))
        item.quantity -= lost
        logs = [f"lost {item.name} x{lost}"]
        if item.quantity <= 0:
            inventory.items.remove(item)
            logs.append(f"no {item.name} left")
        return OutcomeResult(True, logs, category="item")

    def _custom(self, actor: ActorState, outcome: Outcome) -> OutcomeResult:
        try:
            effect = CustomEffect(outcome.key)
        except ValueError:
            return OutcomeResult(False, error=f"Unknown custom effect: {outcome.key}")

        if effect == CustomEffect.SET_PROFESSION:
            actor.profession = str(outcome.value)
            return OutcomeResult(True, [f"profession set to {actor.profession}"], category="custom")
        elif effect == CustomEffect.SET_RACE:
            actor.race = str(outcome.value)
            return OutcomeResult(True, [f"race set to {actor.race}"], category="custom")
        elif effect == CustomEffect.SET_GENDER:
            actor.gender = str(outcome.value)
            return OutcomeResult(True, [f"gender set to {actor.gender}"], category="custom")
        elif effect == CustomEffect.FULL_HEAL:
            for stat, value in actor.stats.items():
                actor.stats[stat] = max(value, FULL_HEAL_VALUE)
            return OutcomeResult(True, ["all attributes restored"], category="attribute")
        elif effect == CustomEffect.RANDOM_ATTRIBUTE_BOOST:
            amount = int(outcome.value) if _is_number(outcome.value) and outcome.value > 0 else 1
            stat = self.resolver.rng.choice(sorted(actor.stats))
            old = actor.stats[stat]
            actor.stats[stat] = old + amount
            return OutcomeResult(True, [f"random boost {stat} +{amount} ({old} -> {old + amount})"],
                                 category="attribute")
        # NO_EFFECT
        return OutcomeResult(True, ["nothing happens"], category="custom")

    def apply_batch(self, actor: ActorState, inventory: Inventory,
                    outcomes: List[Outcome]) -> BatchResult:
        """Apply a list of outcomes on a single copy of the state.

        Failed outcomes are skipped and reported in ``errors``; the others
        still take effect.
        """
        result = BatchResult(actor=actor.clone(), inventory=inventory.clone())
        result.summary.total_outcomes = len(outcomes)

        for outcome in outcomes:
            single = self.process(result.actor, result.inventory, outcome)
            if single.success:
                result.summary.successful_outcomes += 1
                result.logs.extend(single.logs)
                if single.category == "attribute":
                    result.summary.attribute_changes += 1
                elif single.category == "item":
                    result.summary.item_changes += 1
                elif single.category == "level":
                    result.summary.level_changes += 1
            else:
                result.summary.failed_outcomes += 1
                result.errors.append(single.error or "unknown error")
                logger.debug(f"Outcome {outcome.type.value}:{outcome.key} failed: {single.error}")
        return result


