"""Random value and random outcome resolution.

Every draw goes through an injectable ``random.Random`` so that a seeded
resolver replays identically.
"""
from __future__ import annotations
import math
import random
from dataclasses import replace
from typing import Any, List, Optional, Sequence

from ..errors import OutcomeError
from .model import CustomEffect, Outcome, OutcomeType, RandomValueConfig

# Nested randomOutcome levels resolved before giving up
MAX_NESTING = 10


def roulette_index(weights: Sequence[float], rng: random.Random) -> int:
    """Roulette-wheel draw over ``weights``; returns the chosen index.

    Draws ``r`` in ``[0, total)`` and subtracts weights in order until the
    remainder is <= 0. With a zero total every index is equally likely.
    """
    if not weights:
        raise ValueError("roulette_index() needs at least one weight")
    total = sum(weights)
    if total <= 0:
        return rng.randrange(len(weights))
    roll = rng.random() * total
    for i, w in enumerate(weights):
        roll -= w
        if roll <= 0:
            return i
    return len(weights) - 1


def validate_random_config(config: RandomValueConfig) -> List[str]:
    """Return the problems of a random value config (empty when valid)."""
    errors = []
    if config.type == "range":
        if config.min is None:
            errors.append("range config is missing 'min'")
        if config.max is None:
            errors.append("range config is missing 'max'")
        if config.min is not None and config.max is not None and config.min > config.max:
            errors.append("range config has min greater than max")
    elif config.type == "choice":
        if not config.choices:
            errors.append("choice config needs a non-empty 'choices' list")
    elif config.type == "weighted":
        if not config.weighted_choices:
            errors.append("weighted config needs a non-empty 'weightedChoices' list")
        elif any(c.weight < 0 for c in config.weighted_choices):
            errors.append("weighted config has a negative weight")
        elif sum(c.weight for c in config.weighted_choices) <= 0:
            errors.append("weighted config total weight must be greater than 0")
    else:
        errors.append(f"unknown random type '{config.type}'")
    return errors


class RandomResolver:
    """Turns random configs and randomOutcome lists into literal outcomes."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def generate_value(self, config: RandomValueConfig) -> Any:
        """Draw one literal value.

        Raises:
            OutcomeError: when the config cannot produce a value
        """
        if config.type == "range":
            return self._range(config)
        if config.type == "choice":
            if not config.choices:
                raise OutcomeError("choice config needs a non-empty 'choices' list")
            return self.rng.choice(config.choices)
        if config.type == "weighted":
            choices = config.weighted_choices
            if not choices:
                raise OutcomeError("weighted config needs a non-empty 'weightedChoices' list")
            if sum(c.weight for c in choices) <= 0:
                raise OutcomeError("weighted config total weight must be greater than 0")
            return choices[roulette_index([c.weight for c in choices], self.rng)].value
        raise OutcomeError(f"Unknown random type: {config.type}")

    def _range(self, config: RandomValueConfig):
        if config.min is None or config.max is None:
            raise OutcomeError("range config needs both 'min' and 'max'")
        if config.min > config.max:
            raise OutcomeError("range config has min greater than max")
        if config.allow_float:
            return self.rng.uniform(config.min, config.max)
        return self.rng.randint(math.floor(config.min), math.floor(config.max))

    def pick_outcome(self, outcome: Outcome) -> Outcome:
        """Collapse a randomOutcome into one of its candidates.

        Each candidate survives its own probability roll (default 1.0). With no
        survivor the result is a no-op custom outcome. When any survivor carries
        a weight the pick is weighted (missing weights count as 1), otherwise
        it is uniform.
        """
        if outcome.type != OutcomeType.RANDOM_OUTCOME:
            raise OutcomeError("pick_outcome() only accepts randomOutcome outcomes")
        if not outcome.choices:
            raise OutcomeError("randomOutcome needs at least one candidate outcome")

        eligible = [
            c for c in outcome.choices
            if self.rng.random() <= (c.probability if c.probability is not None else 1.0)
        ]
        if not eligible:
            return Outcome(type=OutcomeType.CUSTOM, key=CustomEffect.NO_EFFECT.value, value=0)

        if any(c.weight is not None for c in eligible):
            weights = [c.weight if c.weight is not None else 1 for c in eligible]
            return eligible[roulette_index(weights, self.rng)].outcome
        return self.rng.choice(eligible).outcome

    def resolve(self, outcome: Outcome) -> Outcome:
        """Return a fully literal copy of ``outcome``. The input is left untouched."""
        depth = 0
        while outcome.type == OutcomeType.RANDOM_OUTCOME:
            depth += 1
            if depth > MAX_NESTING:
                raise OutcomeError("randomOutcome nesting is too deep")
            outcome = self.pick_outcome(outcome)

        if outcome.random is not None:
            value = self.generate_value(outcome.random)
            return replace(outcome, value=value, random=None)
        return replace(outcome)
