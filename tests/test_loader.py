"""Tests for the event library loader and its JSON schema."""

import json

import pytest

from lifeline.bootstrap import EVENTS_FILE, create_event_loop
from lifeline.config import EngineConfig
from lifeline.core.state import Inventory, create_character
from lifeline.errors import ConfigError, EventDefinitionError
from lifeline.events.loader import (
    event_to_dict, load_event_library, parse_event, validate_event_schema, validate_library,
)
from lifeline.events.model import (
    ChainNextEvent, ConditionType, ContextOperation, EventDefinition, HistoryType, OutcomeType,
)


@pytest.fixture
def authored():
    return {
        "id": "stranger_arrives",
        "type": "custom",
        "name": "A stranger arrives",
        "description": "A hooded figure asks for shelter.",
        "probability": 0.3,
        "weight": 0,
        "tags": ["village"],
        "conditions": [
            {"type": "level", "key": "level", "operator": ">=", "value": 2},
            {"type": "history", "key": "wolf_attack", "operator": ">=", "value": 1,
             "historyType": "eventTriggered", "timeWindow": 7},
        ],
        "conditionMode": "OR",
        "outcomes": [
            {"type": "attributeChange", "key": "intelligence", "value": 0},
            {"type": "itemGain", "key": "coin", "random": {"type": "range", "min": 1, "max": 4}},
            {"type": "chainContext", "key": "trust", "value": 1, "contextPath": "stranger.trust",
             "contextOperation": "set"},
            {"type": "randomOutcome", "possibleOutcomes": [
                {"outcome": {"type": "custom", "key": "fullHeal"}, "weight": 2},
                {"outcome": {"type": "levelChange", "key": "level", "value": 1}, "probability": 0.5},
            ]},
        ],
        "chainId": "stranger",
        "isChainStart": True,
        "nextEvents": [
            {"eventId": "stranger_story", "delay": 0},
            {"eventId": "stranger_returns", "delay": 3, "probability": 0.8,
             "contextUpdate": {"returned": True}},
        ],
    }


class TestParse:
    def test_parse_full_event(self, authored):
        event = parse_event(authored)
        assert event.weight == 0
        assert event.conditions.mode == "OR"
        assert event.conditions.conditions[1].history_type == HistoryType.EVENT_TRIGGERED
        assert event.conditions.conditions[0].type == ConditionType.LEVEL
        assert event.outcomes[1].random.max == 4
        assert event.outcomes[2].operation == ContextOperation.SET
        assert event.outcomes[3].choices[1].outcome.type == OutcomeType.LEVEL_CHANGE
        assert [n.delay for n in event.next_events] == [0, 3]
        assert event.next_events[1].context_update == {"returned": True}

    def test_round_trip(self, authored):
        event = parse_event(authored)
        data = event_to_dict(event)
        # Zero values survive the reverse conversion
        assert data["weight"] == 0
        assert data["outcomes"][0]["value"] == 0
        assert parse_event(data) == event

    def test_minimal_event(self):
        event = parse_event({"id": "x", "type": "custom", "name": "X",
                             "outcomes": [{"type": "custom", "key": "noEffect"}]})
        assert event.conditions is None
        assert event.probability is None and event.weight is None
        assert event.description == ""


class TestSchema:
    @pytest.mark.parametrize("patch", [
        {"probability": 1.5},
        {"weight": -1},
        {"conditionMode": "XOR"},
        {"unknownField": True},
        {"outcomes": [{"type": "custom", "key": "teleport"}]},
        {"outcomes": [{"type": "itemGain", "key": "coin", "value": 1,
                       "random": {"type": "range", "min": 1, "max": 2}}]},
        {"outcomes": [{"type": "randomOutcome"}]},
        {"conditions": [{"type": "attribute", "key": "strength", "operator": "=~", "value": 1}]},
        {"nextEvents": [{"eventId": "later", "delay": -1}]},
    ])
    def test_invalid_event_rejected(self, authored, patch):
        data = dict(authored, **patch)
        with pytest.raises(EventDefinitionError) as exc:
            validate_event_schema(data)
        assert exc.value.event_id == "stranger_arrives"

    def test_missing_outcomes(self):
        with pytest.raises(EventDefinitionError):
            parse_event({"id": "x", "type": "custom", "name": "X"})


class TestLibrary:
    def test_bundled_library_is_consistent(self):
        events = load_event_library(EVENTS_FILE)
        ids = [e.id for e in events]
        assert "stranger_arrives" in ids and "wolf_attack" in ids
        assert validate_library(events) == []

    def test_wrapped_and_plain_lists(self, tmp_path, authored):
        simple = {"id": "x", "type": "custom", "name": "X", "outcomes": [{"type": "custom", "key": "noEffect"}]}
        wrapped = tmp_path / "wrapped.json"
        wrapped.write_text(json.dumps({"events": [simple]}))
        plain = tmp_path / "plain.json"
        plain.write_text(json.dumps([simple]))
        assert load_event_library(wrapped)[0].id == "x"
        assert load_event_library(plain)[0].id == "x"

    def test_unreadable_library(self, tmp_path):
        broken = tmp_path / "broken.json"
        broken.write_text("{not json")
        with pytest.raises(EventDefinitionError):
            load_event_library(broken)
        with pytest.raises(EventDefinitionError):
            load_event_library(tmp_path / "missing.json")
        wrong_shape = tmp_path / "shape.json"
        wrong_shape.write_text(json.dumps({"library": []}))
        with pytest.raises(EventDefinitionError):
            load_event_library(wrong_shape)

    def test_structural_problems(self):
        events = [
            EventDefinition(id="a", type="custom", name="A", chain_id="orphan"),
            EventDefinition(id="a", type="custom", name="A again"),
            EventDefinition(id="b", type="custom", name="B", is_chain_start=True,
                            next_events=[ChainNextEvent("ghost", 1)]),
        ]
        problems = validate_library(events)
        assert any("duplicate event id 'a'" in p for p in problems)
        assert any("chain 'orphan'" in p for p in problems)
        assert any("unknown event 'ghost'" in p for p in problems)
        assert any("'b' has no chainId" in p for p in problems)
        assert any("no outcomes" in p for p in problems)


def test_create_event_loop_from_bundled_library():
    loop = create_event_loop(EngineConfig(), seed=7)
    result = loop.run_tick(create_character("hero", "Hero"), Inventory(owner_id="hero"))
    assert result.actor.days_lived == 1
    assert result.summary.triggered_events >= 1


def test_create_event_loop_rejects_bad_config():
    config = EngineConfig().updated(loop={"default_max_events": 0})
    with pytest.raises(ConfigError):
        create_event_loop(config)
