"""Condition and outcome factories.

Shorthands for building event content in code instead of JSON.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from .model import (
    Condition, ConditionGroup, ConditionType, ContextOperation, CustomEffect, HistoryType,
    Outcome, OutcomeType, RandomOutcomeChoice, RandomValueConfig, WeightedValue,
)
from .history import DEFAULT_HISTORY_WINDOW


class ConditionFactory:
    """One constructor per condition type."""

    @staticmethod
    def attribute(key: str, operator: str, value: int) -> Condition:
        return Condition(ConditionType.ATTRIBUTE, key, operator, value)

    @staticmethod
    def level(operator: str, value: int) -> Condition:
        return Condition(ConditionType.LEVEL, "level", operator, value)

    @staticmethod
    def has_item(item_id: str, held: bool = True) -> Condition:
        """Presence check; ``held=False`` requires the item to be absent."""
        return Condition(ConditionType.ITEM, item_id, "==" if held else "!=")

    @staticmethod
    def item_count(item_id: str, operator: str, count: int) -> Condition:
        return Condition(ConditionType.ITEM_COUNT, item_id, operator, count)

    @staticmethod
    def chain_context(path: str, operator: str, value: Any) -> Condition:
        return Condition(ConditionType.CHAIN_CONTEXT, path.split(".")[-1], operator, value, context_path=path)

    @staticmethod
    def history(key: str, time_window: int = DEFAULT_HISTORY_WINDOW,
                history_type: HistoryType = HistoryType.EVENT_TRIGGERED,
                operator: str = ">=", value: int = 1) -> Condition:
        """Something happened within the last ``time_window`` days."""
        return Condition(ConditionType.HISTORY, key, operator, value,
                         history_type=history_type, time_window=time_window)

    @staticmethod
    def streak(key: str, days: int,
               history_type: HistoryType = HistoryType.EVENT_TRIGGERED) -> Condition:
        """``key`` happened on each of the last ``days`` consecutive days."""
        return Condition(ConditionType.STREAK, key, ">=", days, history_type=history_type)

    @staticmethod
    def cumulative(key: str, operator: str, total: int, time_window: int = DEFAULT_HISTORY_WINDOW,
                   history_type: HistoryType = HistoryType.EVENT_TRIGGERED) -> Condition:
        return Condition(ConditionType.CUMULATIVE, key, operator, total,
                         history_type=history_type, time_window=time_window)

    @staticmethod
    def days_since(event_id: str, operator: str, days: int) -> Condition:
        return Condition(ConditionType.DAYS_SINCE, event_id, operator, days)

    @staticmethod
    def event_count(event_id: str, operator: str, count: int,
                    time_window: Optional[int] = None) -> Condition:
        return Condition(ConditionType.EVENT_COUNT, event_id, operator, count, time_window=time_window)


class CommonConditions:
    """Frequently used requirements."""

    @staticmethod
    def strong(value: int = 15) -> Condition:
        return ConditionFactory.attribute("strength", ">=", value)

    @staticmethod
    def smart(value: int = 15) -> Condition:
        return ConditionFactory.attribute("intelligence", ">=", value)

    @staticmethod
    def agile(value: int = 15) -> Condition:
        return ConditionFactory.attribute("agility", ">=", value)

    @staticmethod
    def tough(value: int = 15) -> Condition:
        return ConditionFactory.attribute("stamina", ">=", value)

    @staticmethod
    def tired(threshold: int = 8) -> Condition:
        return ConditionFactory.attribute("stamina", "<", threshold)

    @staticmethod
    def min_level(value: int) -> Condition:
        return ConditionFactory.level(">=", value)

    @staticmethod
    def has_weapon_item(item_id: str) -> Condition:
        return ConditionFactory.has_item(item_id)

    @staticmethod
    def not_recently(event_id: str, days: int) -> Condition:
        # A zero count also holds for events that never happened, unlike days_since
        return ConditionFactory.cumulative(event_id, "==", 0, time_window=days)

    @staticmethod
    def veteran(event_id: str, count: int) -> Condition:
        return ConditionFactory.event_count(event_id, ">=", count)


class ConditionBuilder:
    """Fluent condition group builder.

    Example:
        ConditionBuilder().attribute("strength", ">=", 7).level(">=", 2).mode("OR").build()
    """

    def __init__(self):
        self._conditions: List[Condition] = []
        self._mode = "AND"

    def add(self, condition: Condition) -> "ConditionBuilder":
        self._conditions.append(condition)
        return self

    def add_all(self, conditions: List[Condition]) -> "ConditionBuilder":
        self._conditions.extend(conditions)
        return self

    def attribute(self, key: str, operator: str, value: int) -> "ConditionBuilder":
        return self.add(ConditionFactory.attribute(key, operator, value))

    def level(self, operator: str, value: int) -> "ConditionBuilder":
        return self.add(ConditionFactory.level(operator, value))

    def has_item(self, item_id: str, held: bool = True) -> "ConditionBuilder":
        return self.add(ConditionFactory.has_item(item_id, held))

    def item_count(self, item_id: str, operator: str, count: int) -> "ConditionBuilder":
        return self.add(ConditionFactory.item_count(item_id, operator, count))

    def mode(self, mode: str) -> "ConditionBuilder":
        self._mode = mode
        return self

    def build(self) -> ConditionGroup:
        return ConditionGroup(list(self._conditions), self._mode)

    def reset(self) -> "ConditionBuilder":
        self._conditions = []
        self._mode = "AND"
        return self


class OutcomeFactory:
    """One constructor per outcome type."""

    @staticmethod
    def attribute_change(key: str, value: int) -> Outcome:
        return Outcome(OutcomeType.ATTRIBUTE_CHANGE, key, value)

    @staticmethod
    def level_change(value: int) -> Outcome:
        return Outcome(OutcomeType.LEVEL_CHANGE, "level", value)

    @staticmethod
    def item_gain(item_id: str, quantity: int = 1) -> Outcome:
        return Outcome(OutcomeType.ITEM_GAIN, item_id, quantity)

    @staticmethod
    def item_loss(item_id: str, quantity: int = 1) -> Outcome:
        return Outcome(OutcomeType.ITEM_LOSS, item_id, quantity)

    @staticmethod
    def custom(effect: CustomEffect, value: Any = None) -> Outcome:
        return Outcome(OutcomeType.CUSTOM, CustomEffect(effect).value, value)

    @staticmethod
    def chain_context(path: str, value: Any,
                      operation: ContextOperation = ContextOperation.SET) -> Outcome:
        return Outcome(OutcomeType.CHAIN_CONTEXT, path.split(".")[-1], value,
                       context_path=path, operation=operation)

    @staticmethod
    def random_outcome(choices: List[RandomOutcomeChoice], description: Optional[str] = None) -> Outcome:
        return Outcome(OutcomeType.RANDOM_OUTCOME, "", choices=list(choices), description=description)


class RandomOutcomeFactory:
    """Outcomes whose value is drawn at application time."""

    @staticmethod
    def range(min_value: float, max_value: float, allow_float: bool = False) -> RandomValueConfig:
        return RandomValueConfig(type="range", min=min_value, max=max_value, allow_float=allow_float)

    @staticmethod
    def choice(choices: List[Any]) -> RandomValueConfig:
        return RandomValueConfig(type="choice", choices=list(choices))

    @staticmethod
    def weighted(choices: Dict[Any, float]) -> RandomValueConfig:
        """``choices`` maps each value to its weight."""
        return RandomValueConfig(
            type="weighted",
            weighted_choices=[WeightedValue(value, weight) for value, weight in choices.items()],
        )

    @staticmethod
    def random_attribute_change(key: str, min_value: int, max_value: int) -> Outcome:
        return Outcome(OutcomeType.ATTRIBUTE_CHANGE, key,
                       random=RandomOutcomeFactory.range(min_value, max_value))

    @staticmethod
    def random_item_gain(item_id: str, min_quantity: int, max_quantity: int) -> Outcome:
        return Outcome(OutcomeType.ITEM_GAIN, item_id,
                       random=RandomOutcomeFactory.range(min_quantity, max_quantity))

    @staticmethod
    def multiple_choice(choices: List[Dict[str, Any]], description: Optional[str] = None) -> Outcome:
        """Build a randomOutcome from ``{"outcome", "weight", "probability"}`` dicts."""
        return OutcomeFactory.random_outcome(
            [RandomOutcomeChoice(c["outcome"], c.get("weight"), c.get("probability")) for c in choices],
            description,
        )


class CommonOutcomes:
    """Frequently used effects."""

    @staticmethod
    def heal() -> Outcome:
        return OutcomeFactory.custom(CustomEffect.FULL_HEAL)

    @staticmethod
    def train(key: str, amount: int = 1) -> Outcome:
        return OutcomeFactory.attribute_change(key, amount)

    @staticmethod
    def exhaust(key: str = "stamina", amount: int = 1) -> Outcome:
        return OutcomeFactory.attribute_change(key, -abs(amount))

    @staticmethod
    def level_up(levels: int = 1) -> Outcome:
        return OutcomeFactory.level_change(levels)

    @staticmethod
    def reward_item(item_id: str, quantity: int = 1) -> Outcome:
        return OutcomeFactory.item_gain(item_id, quantity)


class OutcomeBuilder:
    """Fluent outcome list builder."""

    def __init__(self):
        self._outcomes: List[Outcome] = []

    def add(self, outcome: Outcome) -> "OutcomeBuilder":
        self._outcomes.append(outcome)
        return self

    def add_all(self, outcomes: List[Outcome]) -> "OutcomeBuilder":
        self._outcomes.extend(outcomes)
        return self

    def attribute_change(self, key: str, value: int) -> "OutcomeBuilder":
        return self.add(OutcomeFactory.attribute_change(key, value))

    def level_change(self, value: int) -> "OutcomeBuilder":
        return self.add(OutcomeFactory.level_change(value))

    def item_gain(self, item_id: str, quantity: int = 1) -> "OutcomeBuilder":
        return self.add(OutcomeFactory.item_gain(item_id, quantity))

    def item_loss(self, item_id: str, quantity: int = 1) -> "OutcomeBuilder":
        return self.add(OutcomeFactory.item_loss(item_id, quantity))

    def build(self) -> List[Outcome]:
        return list(self._outcomes)

    def reset(self) -> "OutcomeBuilder":
        self._outcomes = []
        return self
