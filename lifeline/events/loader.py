"""Event library loader and validator.

Reads authored JSON event definitions, validates them with jsonschema and
converts them into dataclass instances. Also provides the reverse
conversion and a structural check of a whole library (duplicate ids,
dangling chain references).
"""
from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import jsonschema

from ..errors import EventDefinitionError
from .model import (
    ChainNextEvent, Condition, ConditionGroup, ConditionType, ContextOperation, EventDefinition,
    HistoryType, Outcome, OutcomeType, RandomOutcomeChoice, RandomValueConfig, WeightedValue,
)
from .schema import EVENT_LIBRARY_SCHEMA, EVENT_SCHEMA

logger = logging.getLogger(__name__)


def validate_event_schema(data: Dict[str, Any]):
    """Validate one authored event.

    Raises:
        EventDefinitionError: with the offending event id and schema path
    """
    try:
        jsonschema.validate(data, EVENT_SCHEMA)
    except jsonschema.ValidationError as e:
        event_id = data.get("id") if isinstance(data, dict) else None
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise EventDefinitionError(f"Event '{event_id}' invalid at {location}: {e.message}", event_id) from e


def _parse_random(data: Optional[Dict[str, Any]]) -> Optional[RandomValueConfig]:
    if data is None:
        return None
    return RandomValueConfig(
        type=data["type"],
        min=data.get("min"),
        max=data.get("max"),
        allow_float=data.get("allowFloat", False),
        choices=list(data.get("choices", [])),
        weighted_choices=[WeightedValue(c["value"], c["weight"]) for c in data.get("weightedChoices", [])],
    )


def parse_condition(data: Dict[str, Any]) -> Condition:
    history_type = data.get("historyType")
    return Condition(
        type=ConditionType(data["type"]),
        key=data.get("key", ""),
        operator=data.get("operator", ">="),
        value=data.get("value"),
        history_type=HistoryType(history_type) if history_type else None,
        time_window=data.get("timeWindow"),
        context_path=data.get("contextPath"),
    )


def parse_outcome(data: Dict[str, Any]) -> Outcome:
    operation = data.get("contextOperation")
    return Outcome(
        type=OutcomeType(data["type"]),
        key=data.get("key", ""),
        value=data.get("value"),
        random=_parse_random(data.get("random")),
        context_path=data.get("contextPath"),
        operation=ContextOperation(operation) if operation else None,
        choices=[
            RandomOutcomeChoice(
                outcome=parse_outcome(c["outcome"]),
                weight=c.get("weight"),
                probability=c.get("probability"),
            )
            for c in data.get("possibleOutcomes", [])
        ],
        description=data.get("description"),
    )


def _parse_next(data: Dict[str, Any]) -> ChainNextEvent:
    return ChainNextEvent(
        event_id=data["eventId"],
        delay=data.get("delay", 0),
        probability=data.get("probability", 1.0),
        context_update=dict(data.get("contextUpdate", {})),
    )


def parse_event(data: Dict[str, Any], validate: bool = True) -> EventDefinition:
    """Convert one authored event dictionary into an EventDefinition.

    Args:
        data: authored event (camelCase keys)
        validate: run the JSON schema check first

    Raises:
        EventDefinitionError: schema failure or inconsistent values
    """
    if validate:
        validate_event_schema(data)
    try:
        conditions = [parse_condition(c) for c in data.get("conditions", [])]
        return EventDefinition(
            id=data["id"],
            type=data["type"],
            name=data["name"],
            description=data.get("description", ""),
            outcomes=[parse_outcome(o) for o in data.get("outcomes", [])],
            conditions=ConditionGroup(conditions, data.get("conditionMode", "AND")) if conditions else None,
            probability=data.get("probability"),
            weight=data.get("weight"),
            chain_id=data.get("chainId"),
            chain_step=data.get("chainStep"),
            is_chain_start=data.get("isChainStart", False),
            is_chain_end=data.get("isChainEnd", False),
            next_events=[_parse_next(n) for n in data.get("nextEvents", [])],
            skip_normal_events=data.get("skipNormalEvents", False),
            image=data.get("image"),
            tags=list(data.get("tags", [])),
        )
    except EventDefinitionError as e:
        raise EventDefinitionError(f"Event '{data.get('id')}': {e}", data.get("id")) from e
    except (KeyError, ValueError) as e:
        raise EventDefinitionError(f"Event '{data.get('id')}' is malformed: {e}", data.get("id")) from e


def parse_events(items: Iterable[Dict[str, Any]], validate: bool = True) -> List[EventDefinition]:
    return [parse_event(item, validate) for item in items]


def load_event_library(path: Union[str, Path], validate: bool = True) -> List[EventDefinition]:
    """Load an event library from a JSON file.

    The file holds either a list of events or an object with an ``events`` list.

    Raises:
        EventDefinitionError: unreadable file, bad JSON, or an invalid event
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise EventDefinitionError(f"Cannot read event library {path}: {e}") from e

    try:
        jsonschema.validate(data, EVENT_LIBRARY_SCHEMA)
    except jsonschema.ValidationError as e:
        raise EventDefinitionError(f"Event library {path} must contain a list of events: {e.message}") from e
    items = data["events"] if isinstance(data, dict) else data

    events = parse_events(items, validate)
    problems = validate_library(events)
    for problem in problems:
        logger.warning(f"[EVENT LIBRARY] {problem}")
    logger.info(f"Loaded {len(events)} events from {path}")
    return events


def validate_library(events: List[EventDefinition]) -> List[str]:
    """Return structural problems of a whole library (empty when consistent)."""
    problems = []
    ids = set()
    for event in events:
        if event.id in ids:
            problems.append(f"duplicate event id '{event.id}'")
        ids.add(event.id)

    chain_starts = {e.chain_id for e in events if e.chain_id and e.is_chain_start}
    for event in events:
        for link in event.next_events:
            if link.event_id not in ids:
                problems.append(f"'{event.id}' continues to unknown event '{link.event_id}'")
        if (event.is_chain_start or event.is_chain_end or event.next_events) and not event.chain_id:
            problems.append(f"chain event '{event.id}' has no chainId")
        if event.chain_id and event.chain_id not in chain_starts:
            problems.append(f"chain '{event.chain_id}' of '{event.id}' has no start event")
        if not event.outcomes:
            problems.append(f"event '{event.id}' has no outcomes")
    return problems


# ---------------- Reverse conversion ----------------

def _is_empty(value: Any) -> bool:
    # 0 is a real value, only None, False and empty containers are dropped
    if value is None or value is False:
        return True
    return isinstance(value, (list, dict)) and not value


def _drop_empty(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if (k == "value" and v is not None) or not _is_empty(v)}


def condition_to_dict(condition: Condition) -> Dict[str, Any]:
    return _drop_empty({
        "type": condition.type.value,
        "key": condition.key or None,
        "operator": condition.operator,
        "value": condition.value,
        "historyType": condition.history_type.value if condition.history_type else None,
        "timeWindow": condition.time_window,
        "contextPath": condition.context_path,
    })


def _random_to_dict(config: RandomValueConfig) -> Dict[str, Any]:
    return _drop_empty({
        "type": config.type,
        "min": config.min,
        "max": config.max,
        "allowFloat": config.allow_float,
        "choices": list(config.choices),
        "weightedChoices": [{"value": c.value, "weight": c.weight} for c in config.weighted_choices],
    })


def outcome_to_dict(outcome: Outcome) -> Dict[str, Any]:
    return _drop_empty({
        "type": outcome.type.value,
        "key": outcome.key or None,
        "value": outcome.value,
        "random": _random_to_dict(outcome.random) if outcome.random else None,
        "contextPath": outcome.context_path,
        "contextOperation": outcome.operation.value if outcome.operation else None,
        "possibleOutcomes": [
            _drop_empty({"outcome": outcome_to_dict(c.outcome), "weight": c.weight, "probability": c.probability})
            for c in outcome.choices
        ],
        "description": outcome.description,
    })


def event_to_dict(event: EventDefinition) -> Dict[str, Any]:
    """Authored JSON form of an event; ``parse_event`` accepts it back."""
    data = {
        "id": event.id,
        "type": event.type,
        "name": event.name,
        "description": event.description or None,
        "image": event.image,
        "tags": list(event.tags),
        "probability": event.probability,
        "weight": event.weight,
        "conditions": [condition_to_dict(c) for c in event.condition_list],
        "conditionMode": event.conditions.mode if event.conditions and event.conditions.mode != "AND" else None,
        "outcomes": [outcome_to_dict(o) for o in event.outcomes],
        "chainId": event.chain_id,
        "chainStep": event.chain_step,
        "isChainStart": event.is_chain_start,
        "isChainEnd": event.is_chain_end,
        "nextEvents": [
            _drop_empty({
                "eventId": n.event_id,
                "delay": n.delay,
                "probability": n.probability if n.probability != 1.0 else None,
                "contextUpdate": dict(n.context_update),
            })
            for n in event.next_events
        ],
        "skipNormalEvents": event.skip_normal_events,
    }
    result = _drop_empty(data)
    result["outcomes"] = data["outcomes"]
    return result
