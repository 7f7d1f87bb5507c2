"""Event engine data models.

This module defines the declarative structures of the event library
(EventDefinition, Condition, Outcome, random configs, chain links) and the
result records produced by a day tick.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any, Optional, Literal

from ..core.state import ActorState, Inventory
from ..errors import EventDefinitionError

CombineMode = Literal["AND", "OR"]
Operator = Literal[">", ">=", "<", "<=", "==", "!="]
OPERATORS = (">", ">=", "<", "<=", "==", "!=")


class EventType(str, Enum):
    """Built-in event type tags. Content may use other tags as plain strings."""
    BATTLE = "battle"
    FIND_ITEM = "findItem"
    LEVEL_UP = "levelUp"
    CUSTOM = "custom"
    INITIAL = "initial"


class ConditionType(str, Enum):
    ATTRIBUTE = "attribute"
    ITEM = "item"
    ITEM_COUNT = "itemCount"
    LEVEL = "level"
    CHAIN_CONTEXT = "chainContext"
    # History-aware variants, evaluable only with a history manager
    HISTORY = "history"
    STREAK = "streak"
    CUMULATIVE = "cumulative"
    DAYS_SINCE = "daysSince"
    EVENT_COUNT = "eventCount"


HISTORY_CONDITION_TYPES = frozenset({
    ConditionType.HISTORY, ConditionType.STREAK, ConditionType.CUMULATIVE,
    ConditionType.DAYS_SINCE, ConditionType.EVENT_COUNT,
})


class HistoryType(str, Enum):
    EVENT_TRIGGERED = "eventTriggered"
    ATTRIBUTE_CHANGE = "attributeChange"
    ITEM_GAINED = "itemGained"


class OutcomeType(str, Enum):
    ATTRIBUTE_CHANGE = "attributeChange"
    LEVEL_CHANGE = "levelChange"
    ITEM_GAIN = "itemGain"
    ITEM_LOSS = "itemLoss"
    CHAIN_CONTEXT = "chainContext"
    CUSTOM = "custom"
    RANDOM_OUTCOME = "randomOutcome"


class CustomEffect(str, Enum):
    """Closed set of supported custom effects."""
    SET_PROFESSION = "setProfession"
    SET_RACE = "setRace"
    SET_GENDER = "setGender"
    FULL_HEAL = "fullHeal"
    RANDOM_ATTRIBUTE_BOOST = "randomAttributeBoost"
    NO_EFFECT = "noEffect"


class ContextOperation(str, Enum):
    SET = "set"
    ADD = "add"
    REMOVE = "remove"
    APPEND = "append"


@dataclass
class WeightedValue:
    value: Any
    weight: float


@dataclass
class RandomValueConfig:
    """Describes how to draw a literal value for an outcome.

    Examples:
        RandomValueConfig(type="range", min=1, max=3)
        RandomValueConfig(type="choice", choices=["sword", "axe"])
        RandomValueConfig(type="weighted", weighted_choices=[WeightedValue(1, 3), WeightedValue(5, 1)])
    """
    type: Literal["range", "choice", "weighted"]
    min: Optional[float] = None
    max: Optional[float] = None
    allow_float: bool = False
    choices: List[Any] = field(default_factory=list)
    weighted_choices: List[WeightedValue] = field(default_factory=list)


@dataclass
class Condition:
    """A single declarative predicate.

    Examples:
        Condition(ConditionType.ATTRIBUTE, "strength", ">=", 7)
        Condition(ConditionType.DAYS_SINCE, "met_stranger", ">=", 3)
        Condition(ConditionType.HISTORY, "forest_walk", ">=", 1,
                  history_type=HistoryType.EVENT_TRIGGERED, time_window=10)
    """
    type: ConditionType
    key: str = ""
    operator: str = ">="
    value: Any = None
    history_type: Optional[HistoryType] = None
    time_window: Optional[int] = None
    context_path: Optional[str] = None

    @property
    def is_history(self) -> bool:
        return self.type in HISTORY_CONDITION_TYPES


@dataclass
class ConditionGroup:
    """A condition list combined with AND or OR."""
    conditions: List[Condition] = field(default_factory=list)
    mode: str = "AND"

    def __len__(self) -> int:
        return len(self.conditions)


@dataclass
class RandomOutcomeChoice:
    """One candidate of a randomOutcome; probability gates it, weight biases the pick."""
    outcome: "Outcome"
    weight: Optional[float] = None
    probability: Optional[float] = None


@dataclass
class Outcome:
    """A single effect applied when an event fires.

    ``value`` and ``random`` are mutually exclusive: a random config is
    resolved into a literal value exactly once, right before application.
    """
    type: OutcomeType
    key: str = ""
    value: Any = None
    random: Optional[RandomValueConfig] = None
    context_path: Optional[str] = None
    operation: Optional[ContextOperation] = None
    choices: List[RandomOutcomeChoice] = field(default_factory=list)
    description: Optional[str] = None

    def __post_init__(self):
        if self.random is not None and self.value is not None:
            raise EventDefinitionError(
                f"Outcome '{self.type.value}:{self.key}' has both a literal value and a random config"
            )

    @property
    def is_literal(self) -> bool:
        return self.random is None and self.type != OutcomeType.RANDOM_OUTCOME


@dataclass
class ChainNextEvent:
    """Continuation of a chain step."""
    event_id: str
    delay: int = 0
    probability: float = 1.0
    context_update: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EventDefinition:
    """An immutable event of the library."""
    id: str
    type: str
    name: str
    description: str = ""
    outcomes: List[Outcome] = field(default_factory=list)
    conditions: Optional[ConditionGroup] = None
    probability: Optional[float] = None
    weight: Optional[float] = None
    chain_id: Optional[str] = None
    chain_step: Optional[int] = None
    is_chain_start: bool = False
    is_chain_end: bool = False
    next_events: List[ChainNextEvent] = field(default_factory=list)
    skip_normal_events: bool = False
    image: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def __post_init__(self):
        # A bare condition list means AND
        if isinstance(self.conditions, list):
            object.__setattr__(self, "conditions", ConditionGroup(list(self.conditions)) if self.conditions else None)

    @property
    def condition_list(self) -> List[Condition]:
        return self.conditions.conditions if self.conditions else []

    @property
    def immediate_next(self) -> List[ChainNextEvent]:
        return [n for n in self.next_events if (n.delay or 0) == 0]

    @property
    def is_regular(self) -> bool:
        """True for events that may be picked by normal daily selection."""
        return not self.chain_id or self.is_chain_start


# ---------------- Tick input/output ----------------

@dataclass
class TickOptions:
    """Options of a single day tick. ``None`` means "use the configured default"."""
    max_events: Optional[int] = None
    use_weights: Optional[bool] = None
    guarantee_event: Optional[bool] = None
    event_type_filter: Optional[List[str]] = None
    force_events: Optional[List[EventDefinition]] = None


@dataclass
class TriggerResult:
    """Outcome of trying to fire one event."""
    event: Optional[EventDefinition]
    triggered: bool
    actor: Optional[ActorState] = None
    inventory: Optional[Inventory] = None
    logs: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    chain_id: Optional[str] = None
    chained_events: List[str] = field(default_factory=list)

    @property
    def error(self) -> Optional[str]:
        return "; ".join(self.errors) if self.errors else None


@dataclass
class TickSummary:
    total_events: int = 0
    triggered_events: int = 0
    logs: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    new_level: Optional[int] = None


@dataclass
class TickResult:
    actor: ActorState
    inventory: Inventory
    results: List[TriggerResult] = field(default_factory=list)
    summary: TickSummary = field(default_factory=TickSummary)
