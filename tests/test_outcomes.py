"""Tests for outcome application."""

import random

import pytest

from lifeline.core.state import Inventory, InventoryItem, create_character
from lifeline.errors import OutcomeError
from lifeline.events.model import Outcome, OutcomeType, RandomValueConfig
from lifeline.events.outcomes import OutcomeProcessor, validate_outcome
from lifeline.events.random_values import RandomResolver


@pytest.fixture
def processor():
    return OutcomeProcessor(RandomResolver(random.Random(3)))


@pytest.fixture
def state():
    actor = create_character("hero", "Hero", {"strength": 5, "stamina": 2})
    inventory = Inventory(owner_id="hero", items=[InventoryItem(id="herb", name="Herb", quantity=2)])
    return actor, inventory


class TestApply:
    def test_attribute_change_returns_new_state(self, processor, state):
        actor, inv = state
        new_actor, new_inv, logs = processor.apply(actor, inv, Outcome(OutcomeType.ATTRIBUTE_CHANGE, "strength", 2))
        assert new_actor.stats["strength"] == 7
        assert actor.stats["strength"] == 5
        assert logs

    def test_attribute_floor(self, processor, state):
        actor, inv = state
        new_actor, _, _ = processor.apply(actor, inv, Outcome(OutcomeType.ATTRIBUTE_CHANGE, "stamina", -10))
        assert new_actor.stats["stamina"] == 1

    def test_unknown_attribute_raises(self, processor, state):
        actor, inv = state
        with pytest.raises(OutcomeError):
            processor.apply(actor, inv, Outcome(OutcomeType.ATTRIBUTE_CHANGE, "charisma", 1))

    def test_level_never_below_one(self, processor, state):
        actor, inv = state
        new_actor, _, _ = processor.apply(actor, inv, Outcome(OutcomeType.LEVEL_CHANGE, "level", -3))
        assert new_actor.level == 1

    def test_item_gain_stacks_and_creates(self, processor, state):
        actor, inv = state
        _, new_inv, _ = processor.apply(actor, inv, Outcome(OutcomeType.ITEM_GAIN, "herb", 3))
        assert new_inv.quantity_of("herb") == 5
        _, new_inv, _ = processor.apply(actor, new_inv, Outcome(OutcomeType.ITEM_GAIN, "pelt", 1))
        assert new_inv.find("pelt").owner_id == "hero"
        assert inv.quantity_of("herb") == 2

    def test_item_loss_removes_empty_stack(self, processor, state):
        actor, inv = state
        _, new_inv, _ = processor.apply(actor, inv, Outcome(OutcomeType.ITEM_LOSS, "herb", 5))
        assert not new_inv.has_item("herb")

    def test_losing_missing_item_is_ignored(self, processor, state):
        actor, inv = state
        _, new_inv, logs = processor.apply(actor, inv, Outcome(OutcomeType.ITEM_LOSS, "gold", 1))
        assert "ignored" in logs[0]
        assert new_inv.quantity_of("herb") == 2

    def test_custom_effects(self, processor, state):
        actor, inv = state
        healed, _, _ = processor.apply(actor, inv, Outcome(OutcomeType.CUSTOM, "fullHeal"))
        assert healed.stats["stamina"] == 10
        assert all(v >= 10 for v in healed.stats.values())

        smith, _, _ = processor.apply(actor, inv, Outcome(OutcomeType.CUSTOM, "setProfession", "smith"))
        assert smith.profession == "smith"

        boosted, _, _ = processor.apply(actor, inv, Outcome(OutcomeType.CUSTOM, "randomAttributeBoost", 2))
        assert sum(boosted.stats.values()) == sum(actor.stats.values()) + 2

    def test_random_value_resolved_once(self, processor, state):
        actor, inv = state
        outcome = Outcome(OutcomeType.ITEM_GAIN, "coin", random=RandomValueConfig(type="range", min=1, max=3))
        _, new_inv, _ = processor.apply(actor, inv, outcome)
        assert 1 <= new_inv.quantity_of("coin") <= 3


class TestBatch:
    def test_partial_success(self, processor, state):
        actor, inv = state
        result = processor.apply_batch(actor, inv, [
            Outcome(OutcomeType.ATTRIBUTE_CHANGE, "strength", 1),
            Outcome(OutcomeType.ATTRIBUTE_CHANGE, "charisma", 1),
            Outcome(OutcomeType.ITEM_GAIN, "pelt", 1),
        ])
        assert result.summary.successful_outcomes == 2
        assert result.summary.failed_outcomes == 1
        assert len(result.errors) == 1
        assert result.actor.stats["strength"] == 6
        assert result.inventory.has_item("pelt")
        assert actor.stats["strength"] == 5


def test_validate_outcome():
    assert validate_outcome(Outcome(OutcomeType.ATTRIBUTE_CHANGE, "strength", 1)) is None
    assert validate_outcome(Outcome(OutcomeType.CUSTOM, "teleport")) is not None
    assert validate_outcome(Outcome(OutcomeType.RANDOM_OUTCOME)) is not None
    assert validate_outcome(Outcome(OutcomeType.ITEM_GAIN, "",
                                    random=RandomValueConfig(type="range", min=1, max=2))) is not None
