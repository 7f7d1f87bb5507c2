"""Weighted event selection.

Dynamic weights adjust an event's base weight to the actor's situation; a
roulette wheel then draws events without replacement.
"""
from __future__ import annotations
import random
from typing import Callable, Iterator, List, Optional

from ..config import WeightConfig
from ..core.state import ActorState, Inventory
from .model import ConditionType, EventDefinition, EventType
from .random_values import roulette_index


def level_requirement(event: EventDefinition) -> float:
    """Value of the first level condition, 1 when there is none or it is not numeric."""
    for condition in event.condition_list:
        if condition.type == ConditionType.LEVEL:
            value = condition.value
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return value
            return 1
    return 1


def calculate_event_weight(event: EventDefinition, actor: ActorState, inventory: Inventory,
                           history=None, weights: Optional[WeightConfig] = None) -> float:
    """Compute the dynamic weight of an eligible event.

    The adjustments are content tuning: recent-repeat damping, attribute
    affinity by event type, a rarity bonus and a level-fit factor.
    """
    cfg = weights or WeightConfig()
    base = event.weight if event.weight is not None else 1
    weight = float(base)

    # Recent repeats decay exponentially, never below a fraction of the base
    if history is not None:
        recent = history.get_recent_event_count(event.id, cfg.recent_window_days)
        if recent > 0:
            weight *= cfg.recent_decay ** recent
            weight = max(weight, base * cfg.recent_floor_ratio)

    if event.type == EventType.BATTLE.value:
        weight *= 1 + _affinity(actor.stats.get("strength", 0), cfg)
    elif event.type == EventType.FIND_ITEM.value:
        weight *= 1 + _affinity(actor.stats.get("intelligence", 0), cfg)
    elif event.type == EventType.LEVEL_UP.value:
        weight *= 1 + actor.level * cfg.level_up_bonus_per_level

    p = event.probability
    if p is not None and 0 < p < cfg.rarity_threshold:
        weight *= 1 + (1 - p) * cfg.rarity_bonus

    diff = actor.level - level_requirement(event)
    if 0 <= diff <= cfg.level_fit_window:
        weight *= cfg.level_fit_bonus
    elif diff > cfg.level_fit_window:
        weight *= max(cfg.level_gap_floor, 1 - (diff - cfg.level_fit_window) * cfg.level_gap_penalty)

    weight = max(cfg.min_weight, weight)
    if cfg.max_weight is not None:
        weight = min(cfg.max_weight, weight)
    return weight


def _affinity(stat_value: int, cfg: WeightConfig) -> float:
    bonus = min((stat_value - cfg.affinity_baseline) * cfg.affinity_per_point, cfg.affinity_cap)
    return max(0.0, bonus)


def draw_weighted(events: List[EventDefinition], weigh: Callable[[EventDefinition], float],
                  rng: random.Random) -> Iterator[EventDefinition]:
    """Yield events one at a time by roulette wheel, without replacement.

    Weights are recomputed through ``weigh`` before every draw, so a caller
    that applies each event before asking for the next one gets weights
    computed against the updated actor state.
    """
    pool = list(events)
    while pool:
        weights = [weigh(e) for e in pool]
        yield pool.pop(roulette_index(weights, rng))


def shuffled(events: List[EventDefinition], rng: random.Random) -> List[EventDefinition]:
    """Uniform random order, used when weights are disabled."""
    pool = list(events)
    rng.shuffle(pool)
    return pool
