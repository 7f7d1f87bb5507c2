"""Tests for the authoring helpers: condition/outcome factories, builders and templates."""

import pytest

from lifeline.core.state import Inventory, InventoryItem, create_character
from lifeline.errors import EventDefinitionError
from lifeline.events.builder import EventBuilder, EventTemplates
from lifeline.events.dsl import can_trigger
from lifeline.events.factory import (
    CommonConditions, CommonOutcomes, ConditionBuilder, ConditionFactory, OutcomeBuilder,
    OutcomeFactory, RandomOutcomeFactory,
)
from lifeline.events.model import (
    ConditionType, ContextOperation, CustomEffect, EventType, HistoryType, OutcomeType,
)


@pytest.fixture
def actor():
    return create_character("hero", "Hero", {"strength": 20, "stamina": 4})


@pytest.fixture
def inventory():
    return Inventory(owner_id="hero", items=[InventoryItem(id="pelt", name="Pelt", quantity=3)])


class TestConditionFactory:
    def test_item_presence(self):
        held = ConditionFactory.has_item("pelt")
        absent = ConditionFactory.has_item("pelt", held=False)
        assert held.operator == "==" and absent.operator == "!="
        assert held.value is None

    def test_chain_context_path(self):
        condition = ConditionFactory.chain_context("stranger.trust", ">=", 2)
        assert condition.type == ConditionType.CHAIN_CONTEXT
        assert condition.key == "trust"
        assert condition.context_path == "stranger.trust"

    def test_history_defaults(self):
        condition = ConditionFactory.history("wolf_attack")
        assert condition.history_type == HistoryType.EVENT_TRIGGERED
        assert (condition.operator, condition.value) == (">=", 1)

    def test_common_conditions(self):
        assert CommonConditions.strong().value == 15
        assert CommonConditions.tired().operator == "<"
        assert CommonConditions.min_level(3).type == ConditionType.LEVEL
        never = CommonConditions.not_recently("wolf_attack", 4)
        assert never.type == ConditionType.CUMULATIVE
        assert (never.operator, never.value, never.time_window) == ("==", 0, 4)

    def test_builder_combines_conditions(self):
        group = (ConditionBuilder()
                 .attribute("strength", ">=", 50)
                 .has_item("pelt")
                 .mode("OR")
                 .build())
        assert group.mode == "OR"
        assert len(group.conditions) == 2

    def test_builder_reset(self):
        builder = ConditionBuilder().level(">=", 2).mode("OR")
        group = builder.reset().build()
        assert group.conditions == [] and group.mode == "AND"


class TestOutcomeFactory:
    def test_basic_outcomes(self):
        assert OutcomeFactory.level_change(1).key == "level"
        assert OutcomeFactory.item_loss("pelt", 2).value == 2
        assert OutcomeFactory.custom(CustomEffect.FULL_HEAL).key == "fullHeal"

    def test_unknown_custom_effect(self):
        with pytest.raises(ValueError):
            OutcomeFactory.custom("teleport")

    def test_chain_context_outcome(self):
        outcome = OutcomeFactory.chain_context("stranger.trust", 1, ContextOperation.ADD)
        assert outcome.type == OutcomeType.CHAIN_CONTEXT
        assert outcome.operation == ContextOperation.ADD

    def test_random_factories(self):
        config = RandomOutcomeFactory.weighted({"copper": 5, "gold": 1})
        assert [(w.value, w.weight) for w in config.weighted_choices] == [("copper", 5), ("gold", 1)]
        gain = RandomOutcomeFactory.random_item_gain("coin", 1, 3)
        assert gain.value is None
        assert (gain.random.min, gain.random.max) == (1, 3)

    def test_multiple_choice(self):
        outcome = RandomOutcomeFactory.multiple_choice([
            {"outcome": CommonOutcomes.heal(), "weight": 2},
            {"outcome": CommonOutcomes.exhaust(), "probability": 0.5},
        ], "A fork in the road")
        assert outcome.type == OutcomeType.RANDOM_OUTCOME
        assert [c.weight for c in outcome.choices] == [2, None]
        assert outcome.choices[1].probability == 0.5

    def test_outcome_builder(self):
        outcomes = OutcomeBuilder().attribute_change("strength", 1).item_gain("pelt").build()
        assert [o.type for o in outcomes] == [OutcomeType.ATTRIBUTE_CHANGE, OutcomeType.ITEM_GAIN]
        assert CommonOutcomes.exhaust(amount=2).value == -2


class TestEventBuilder:
    def test_build_complete_event(self, actor, inventory):
        event = (EventBuilder()
                 .id("hunt").type(EventType.BATTLE).name("Hunt").description("You hunt.")
                 .probability(1.5).weight(-2)
                 .tag("forest", "combat")
                 .with_conditions(lambda c: c.attribute("strength", ">=", 10).has_item("pelt"))
                 .with_outcomes(lambda o: o.attribute_change("strength", 1))
                 .build())
        assert event.type == "battle"
        assert event.probability == 1.0
        assert event.weight == 0.0
        assert event.tags == ["forest", "combat"]
        assert can_trigger(event, actor, inventory)

    def test_missing_fields(self):
        with pytest.raises(EventDefinitionError):
            EventBuilder().id("x").type("custom").name("X").outcome(CommonOutcomes.heal()).build()
        with pytest.raises(EventDefinitionError):
            EventBuilder().id("x").type("custom").name("X").description("d").build()

    def test_next_events_need_chain(self):
        builder = (EventBuilder().id("x").type("custom").name("X").description("d")
                   .outcome(CommonOutcomes.heal()).next_event("y", delay=2))
        with pytest.raises(EventDefinitionError):
            builder.build()
        event = builder.chain("quest", start=True).build()
        assert event.is_chain_start
        assert event.next_events[0].delay == 2

    def test_reset(self):
        builder = EventBuilder().id("x").tag("a")
        builder.reset()
        with pytest.raises(EventDefinitionError):
            builder.build()


class TestTemplates:
    def test_battle(self, actor, inventory):
        event = EventTemplates.battle("wolf", "Wolf", "A wolf.", min_strength=10, strength_gain=2,
                                      loot={"pelt": 1}).build()
        assert (event.probability, event.weight) == (0.7, 2)
        assert [o.type for o in event.outcomes] == [OutcomeType.ATTRIBUTE_CHANGE, OutcomeType.ITEM_GAIN]
        assert can_trigger(event, actor, inventory)

    def test_training_needs_stamina(self, actor, inventory):
        event = EventTemplates.training("drill", "Drill", "You drill.", "agility", stamina_cost=5).build()
        assert not can_trigger(event, actor, inventory)
        assert event.outcomes[1].value == -5

    def test_trade(self, actor, inventory):
        event = EventTemplates.trade("market", "Market", "Trade.", cost={"pelt": 2}, reward={"coin": 5}).build()
        assert can_trigger(event, actor, inventory)
        assert [o.type for o in event.outcomes] == [OutcomeType.ITEM_LOSS, OutcomeType.ITEM_GAIN]

    def test_level_up(self):
        event = EventTemplates.level_up("lvl", "Level", "Up.", attribute_bonus={"strength": 1}).build()
        assert event.type == "levelUp"
        assert event.outcomes[0].type == OutcomeType.LEVEL_CHANGE
