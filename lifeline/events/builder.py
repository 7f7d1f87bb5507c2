"""Fluent event builder and ready-made event templates."""
from __future__ import annotations
from typing import Callable, Dict, List, Optional

from ..errors import EventDefinitionError
from .factory import CommonConditions, ConditionBuilder, ConditionFactory, OutcomeBuilder, OutcomeFactory
from .model import ChainNextEvent, Condition, ConditionGroup, EventDefinition, EventType, Outcome


class EventBuilder:
    """Builds an :class:`EventDefinition` step by step.

    Example:
        event = (EventBuilder().id("wolf").type("battle").name("Wolf attack")
                 .description("A wolf jumps out of the bushes.")
                 .condition(CommonConditions.strong(7))
                 .outcome(OutcomeFactory.attribute_change("strength", 1))
                 .build())
    """

    def __init__(self):
        self.reset()

    def reset(self) -> "EventBuilder":
        self._fields: Dict[str, object] = {}
        self._conditions: List[Condition] = []
        self._mode = "AND"
        self._outcomes: List[Outcome] = []
        self._next: List[ChainNextEvent] = []
        self._tags: List[str] = []
        return self

    def id(self, event_id: str) -> "EventBuilder":
        self._fields["id"] = event_id
        return self

    def type(self, event_type: str) -> "EventBuilder":
        self._fields["type"] = event_type.value if isinstance(event_type, EventType) else event_type
        return self

    def name(self, name: str) -> "EventBuilder":
        self._fields["name"] = name
        return self

    def description(self, description: str) -> "EventBuilder":
        self._fields["description"] = description
        return self

    def probability(self, probability: float) -> "EventBuilder":
        self._fields["probability"] = max(0.0, min(1.0, probability))
        return self

    def weight(self, weight: float) -> "EventBuilder":
        self._fields["weight"] = max(0.0, weight)
        return self

    def image(self, image: str) -> "EventBuilder":
        self._fields["image"] = image
        return self

    def tag(self, *tags: str) -> "EventBuilder":
        self._tags.extend(tags)
        return self

    def condition(self, condition: Condition) -> "EventBuilder":
        self._conditions.append(condition)
        return self

    def conditions(self, conditions: List[Condition], mode: Optional[str] = None) -> "EventBuilder":
        self._conditions.extend(conditions)
        if mode:
            self._mode = mode
        return self

    def condition_mode(self, mode: str) -> "EventBuilder":
        self._mode = mode
        return self

    def with_conditions(self, fill: Callable[[ConditionBuilder], ConditionBuilder]) -> "EventBuilder":
        group = fill(ConditionBuilder()).build()
        self._conditions = list(group.conditions)
        self._mode = group.mode
        return self

    def outcome(self, outcome: Outcome) -> "EventBuilder":
        self._outcomes.append(outcome)
        return self

    def outcomes(self, outcomes: List[Outcome]) -> "EventBuilder":
        self._outcomes.extend(outcomes)
        return self

    def with_outcomes(self, fill: Callable[[OutcomeBuilder], OutcomeBuilder]) -> "EventBuilder":
        self._outcomes = fill(OutcomeBuilder()).build()
        return self

    def chain(self, chain_id: str, step: Optional[int] = None, start: bool = False, end: bool = False,
              skip_normal_events: bool = False) -> "EventBuilder":
        self._fields.update(
            chain_id=chain_id, chain_step=step, is_chain_start=start, is_chain_end=end,
            skip_normal_events=skip_normal_events,
        )
        return self

    def next_event(self, event_id: str, delay: int = 0, probability: float = 1.0,
                   context_update: Optional[dict] = None) -> "EventBuilder":
        self._next.append(ChainNextEvent(event_id, delay, probability, dict(context_update or {})))
        return self

    def build(self) -> EventDefinition:
        """Validate and freeze the event.

        Raises:
            EventDefinitionError: a required field is missing or there is no outcome
        """
        for required in ("id", "type", "name", "description"):
            if not self._fields.get(required):
                raise EventDefinitionError(f"Event {required} is required", self._fields.get("id"))
        if not self._outcomes:
            raise EventDefinitionError("Event must have at least one outcome", self._fields["id"])
        if self._next and not self._fields.get("chain_id"):
            raise EventDefinitionError("Events with next events need a chain id", self._fields["id"])

        return EventDefinition(
            outcomes=list(self._outcomes),
            conditions=ConditionGroup(list(self._conditions), self._mode) if self._conditions else None,
            next_events=list(self._next),
            tags=list(self._tags),
            **self._fields,
        )


class EventTemplates:
    """Pre-filled builders for common event shapes; finish them with ``.build()``."""

    @staticmethod
    def battle(event_id: str, name: str, description: str, min_strength: Optional[int] = None,
               strength_gain: Optional[int] = None, loot: Optional[Dict[str, int]] = None,
               probability: float = 0.7, weight: float = 2) -> EventBuilder:
        builder = (EventBuilder().id(event_id).type(EventType.BATTLE).name(name).description(description)
                   .probability(probability).weight(weight))
        if min_strength:
            builder.condition(CommonConditions.strong(min_strength))
        if strength_gain:
            builder.outcome(OutcomeFactory.attribute_change("strength", strength_gain))
        for item_id, quantity in (loot or {}).items():
            builder.outcome(OutcomeFactory.item_gain(item_id, quantity))
        return builder

    @staticmethod
    def find_item(event_id: str, name: str, description: str, item_id: str, quantity: int = 1,
                  min_intelligence: Optional[int] = None,
                  probability: float = 0.6, weight: float = 2) -> EventBuilder:
        builder = (EventBuilder().id(event_id).type(EventType.FIND_ITEM).name(name).description(description)
                   .probability(probability).weight(weight)
                   .outcome(OutcomeFactory.item_gain(item_id, quantity)))
        if min_intelligence:
            builder.condition(CommonConditions.smart(min_intelligence))
        return builder

    @staticmethod
    def level_up(event_id: str, name: str, description: str,
                 requirements: Optional[List[Condition]] = None,
                 attribute_bonus: Optional[Dict[str, int]] = None,
                 probability: float = 0.3, weight: float = 5) -> EventBuilder:
        builder = (EventBuilder().id(event_id).type(EventType.LEVEL_UP).name(name).description(description)
                   .probability(probability).weight(weight)
                   .outcome(OutcomeFactory.level_change(1)))
        if requirements:
            builder.conditions(requirements)
        for key, value in (attribute_bonus or {}).items():
            builder.outcome(OutcomeFactory.attribute_change(key, value))
        return builder

    @staticmethod
    def training(event_id: str, name: str, description: str, attribute: str, gain: int = 1,
                 stamina_cost: int = 1, probability: float = 0.6, weight: float = 3) -> EventBuilder:
        builder = (EventBuilder().id(event_id).type(EventType.CUSTOM).name(name).description(description)
                   .probability(probability).weight(weight)
                   .outcome(OutcomeFactory.attribute_change(attribute, gain)))
        if stamina_cost:
            builder.condition(ConditionFactory.attribute("stamina", ">", stamina_cost))
            builder.outcome(OutcomeFactory.attribute_change("stamina", -stamina_cost))
        return builder

    @staticmethod
    def recovery(event_id: str, name: str, description: str, attribute: str, amount: int,
                 threshold: Optional[int] = None,
                 probability: float = 0.8, weight: float = 1) -> EventBuilder:
        builder = (EventBuilder().id(event_id).type(EventType.CUSTOM).name(name).description(description)
                   .probability(probability).weight(weight)
                   .outcome(OutcomeFactory.attribute_change(attribute, amount)))
        if threshold is not None:
            builder.condition(ConditionFactory.attribute(attribute, "<", threshold))
        return builder

    @staticmethod
    def trade(event_id: str, name: str, description: str, cost: Dict[str, int], reward: Dict[str, int],
              probability: float = 0.6, weight: float = 3) -> EventBuilder:
        builder = (EventBuilder().id(event_id).type(EventType.CUSTOM).name(name).description(description)
                   .probability(probability).weight(weight))
        for item_id, quantity in cost.items():
            builder.condition(ConditionFactory.item_count(item_id, ">=", quantity))
            builder.outcome(OutcomeFactory.item_loss(item_id, quantity))
        for item_id, quantity in reward.items():
            builder.outcome(OutcomeFactory.item_gain(item_id, quantity))
        return builder
