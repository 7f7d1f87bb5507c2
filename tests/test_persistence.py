"""Tests for snapshot serialization."""

import json
import random

import pytest

from lifeline.core.persistence import (
    SNAPSHOT_VERSION, deserialize_actor, deserialize_inventory, deserialize_session,
    serialize_actor, serialize_inventory, serialize_session,
)
from lifeline.core.state import Inventory, InventoryItem, create_character
from lifeline.errors import SnapshotError
from lifeline.events.chains import ChainManager
from lifeline.events.history import HistoryManager
from lifeline.events.model import ChainNextEvent, EventDefinition


@pytest.fixture
def actor():
    actor = create_character("hero", "Hero", {"strength": 8}, profession="hunter")
    actor.days_lived = 4
    actor.equipment["weapon"] = InventoryItem(id="bow", name="Bow", type="weapon")
    return actor


@pytest.fixture
def inventory():
    return Inventory(owner_id="hero", items=[InventoryItem(id="arrow", name="Arrow", type="misc", quantity=12)])


def test_actor_snapshot(actor):
    data = serialize_actor(actor)
    assert data["_snapshot_metadata"]["version"] == SNAPSHOT_VERSION
    restored = deserialize_actor(json.loads(json.dumps(data)))
    assert restored == actor


def test_newer_version_rejected(actor):
    data = serialize_actor(actor)
    data["_snapshot_metadata"]["version"] = SNAPSHOT_VERSION + 1
    with pytest.raises(SnapshotError):
        deserialize_actor(data)


def test_structurally_invalid_snapshot(inventory):
    data = serialize_inventory(inventory)
    data["items"] = "arrows"
    with pytest.raises(SnapshotError):
        deserialize_inventory(data)
    with pytest.raises(SnapshotError):
        deserialize_actor({"id": "hero", "name": "Hero", "stats": {"strength": "strong"}})


def test_out_of_range_values_are_repaired(actor):
    data = serialize_actor(actor)
    data["stats"]["strength"] = -5
    assert deserialize_actor(data).stats["strength"] == 1


def test_session_round_trip(actor, inventory):
    history = HistoryManager("hero")
    history.record_day_start(4, actor)
    history.record_event("wolf_attack", "Wolf attack", "battle", 4)
    history.record_attribute_change(4, "strength", 7, 8)

    chains = ChainManager(random.Random(1))
    start = EventDefinition(id="start", type="custom", name="Start", chain_id="quest",
                            is_chain_start=True, next_events=[ChainNextEvent("later", 2)])
    chains.start_chain("quest", start, actor, 4, {"trust": 1})

    data = json.loads(json.dumps(serialize_session(actor, inventory, history, chains)))

    restored_chains = ChainManager()
    new_actor, new_inventory, new_history = deserialize_session(data, restored_chains)
    assert new_actor == actor
    assert new_inventory.quantity_of("arrow") == 12
    assert new_history.get_last_occurrence("wolf_attack") == 4
    assert new_history.history.daily_records[0].attribute_changes[0].new == 8
    assert restored_chains.get_chain_context("quest") == {"trust": 1}
    assert restored_chains.get_scheduled_events(6)[0].event_id == "later"


def test_session_without_history(actor, inventory):
    data = serialize_session(actor, inventory)
    _, _, history = deserialize_session(data)
    assert history is None


def test_session_missing_part(actor):
    with pytest.raises(SnapshotError):
        deserialize_session({"actor": serialize_actor(actor)})
