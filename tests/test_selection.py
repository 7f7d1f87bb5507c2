"""Tests for dynamic weights and weighted selection."""

import random

from lifeline.config import WeightConfig
from lifeline.core.state import Inventory, create_character
from lifeline.events.history import HistoryManager
from lifeline.events.model import Condition, ConditionGroup, ConditionType, EventDefinition
from lifeline.events.selection import calculate_event_weight, draw_weighted, level_requirement, shuffled


def event(event_id, event_type="custom", weight=None, probability=None, min_level=None):
    conditions = None
    if min_level is not None:
        conditions = ConditionGroup([Condition(ConditionType.LEVEL, "level", ">=", min_level)])
    return EventDefinition(id=event_id, type=event_type, name=event_id, weight=weight,
                           probability=probability, conditions=conditions)


def actor_and_inventory(**stats):
    return create_character("hero", "Hero", stats), Inventory(owner_id="hero")


def test_level_requirement():
    assert level_requirement(event("a")) == 1
    assert level_requirement(event("b", min_level=4)) == 4


def test_base_weight_defaults_and_floor():
    actor, inv = actor_and_inventory()
    # level 1, requirement 1: level-fit bonus applies
    assert calculate_event_weight(event("a"), actor, inv) == 1.2
    assert calculate_event_weight(event("z", weight=0), actor, inv) == WeightConfig().min_weight


def test_large_weights_keep_their_ratio():
    actor, inv = actor_and_inventory()
    heavy = calculate_event_weight(event("heavy", weight=300), actor, inv)
    light = calculate_event_weight(event("light", weight=100), actor, inv)
    assert abs(heavy - 3 * light) < 1e-9
    capped = WeightConfig(max_weight=50.0)
    assert calculate_event_weight(event("heavy", weight=300), actor, inv, weights=capped) == 50.0


def test_recent_repeats_are_damped():
    actor, inv = actor_and_inventory()
    history = HistoryManager("hero")
    history.record_day_start(3, actor)
    history.record_event("a", "A", "custom", 2)
    history.record_event("a", "A", "custom", 3)
    damped = calculate_event_weight(event("a", weight=10), actor, inv, history)
    fresh = calculate_event_weight(event("a", weight=10), actor, inv)
    assert abs(damped - fresh * 0.49) < 1e-9


def test_recent_damping_floor():
    actor, inv = actor_and_inventory()
    history = HistoryManager("hero")
    for day in range(1, 6):
        history.record_day_start(day, actor)
        for _ in range(5):
            history.record_event("a", "A", "custom", day)
    weight = calculate_event_weight(event("a", weight=10), actor, inv, history)
    # 10% of base, then the level-fit bonus
    assert abs(weight - 10 * 0.1 * 1.2) < 1e-9


def test_strength_affinity_capped():
    actor, inv = actor_and_inventory(strength=30)
    weight = calculate_event_weight(event("fight", "battle", weight=10), actor, inv)
    assert abs(weight - 10 * 1.3 * 1.2) < 1e-9


def test_rarity_bonus():
    actor, inv = actor_and_inventory()
    rare = calculate_event_weight(event("rare", weight=10, probability=0.2), actor, inv)
    common = calculate_event_weight(event("common", weight=10, probability=0.8), actor, inv)
    assert abs(rare - common * 1.4) < 1e-9


def test_level_gap_penalty():
    actor, inv = actor_and_inventory()
    actor.level = 10
    weight = calculate_event_weight(event("easy", weight=10, min_level=1), actor, inv)
    assert abs(weight - 10 * 0.5) < 1e-9


def test_draw_without_replacement():
    rng = random.Random(5)
    events = [event(str(i)) for i in range(5)]
    drawn = list(draw_weighted(events, lambda e: 1.0, rng))
    assert sorted(e.id for e in drawn) == ["0", "1", "2", "3", "4"]


def test_weighted_draw_converges_to_ratio():
    rng = random.Random(11)
    heavy, light = event("heavy", weight=3), event("light", weight=1)
    counts = {"heavy": 0, "light": 0}
    for _ in range(6000):
        first = next(draw_weighted([heavy, light], lambda e: e.weight, rng))
        counts[first.id] += 1
    ratio = counts["heavy"] / counts["light"]
    assert 2.6 < ratio < 3.5


def test_weights_recomputed_between_draws():
    rng = random.Random(2)
    calls = []

    def weigh(e):
        calls.append(e.id)
        return 1.0

    list(draw_weighted([event("a"), event("b"), event("c")], weigh, rng))
    # 3 + 2 + 1 weight computations
    assert len(calls) == 6


def test_shuffled_keeps_all_events():
    rng = random.Random(9)
    events = [event(str(i)) for i in range(6)]
    result = shuffled(events, rng)
    assert sorted(e.id for e in result) == sorted(e.id for e in events)
    assert [e.id for e in events] == ["0", "1", "2", "3", "4", "5"]
