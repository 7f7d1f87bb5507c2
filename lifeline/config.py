"""Central configuration for the Lifeline event engine.

Every tunable parameter of the engine lives here. All values carry a sensible
default and can be overridden through environment variables (prefix
``LIFELINE_``) or by building an :class:`EngineConfig` explicitly and passing
it to the engine. There is no global instance: whoever builds the engine owns
its configuration.
"""
from __future__ import annotations
import os
from dataclasses import dataclass, field, asdict, replace
from typing import Any, Dict, List, Optional

from .errors import ConfigError


def _get_int_env(name: str, default: int, minval: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        v = int(raw)
        if minval is not None and v < minval:
            return default
        return v
    except ValueError:
        return default


def _get_float_env(name: str, default: float | None, minval: float | None = None) -> float | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        v = float(raw)
        if minval is not None and v < minval:
            return default
        return v
    except ValueError:
        return default


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on", "y")


def _default_fallback_events() -> List[Dict[str, Any]]:
    # Authored in the same JSON format as the event library
    return [{
        "id": "system_error_fallback",
        "type": "custom",
        "name": "A quiet day",
        "description": "Nothing remarkable happens, but you get some rest.",
        "outcomes": [{"type": "attributeChange", "key": "stamina", "value": 1}],
    }]


@dataclass
class LoopConfig:
    """Defaults for a single day tick."""
    default_max_events: int = 3
    default_use_weights: bool = True
    default_guarantee_event: bool = True


@dataclass
class WeightConfig:
    """Dynamic weight heuristics. Content tuning, not engine contract."""
    recent_decay: float = 0.7
    recent_window_days: int = 5
    recent_floor_ratio: float = 0.1
    affinity_per_point: float = 0.05
    affinity_baseline: int = 5
    affinity_cap: float = 0.3
    level_up_bonus_per_level: float = 0.1
    rarity_threshold: float = 0.5
    rarity_bonus: float = 0.5
    level_fit_window: int = 2
    level_fit_bonus: float = 1.2
    level_gap_penalty: float = 0.1
    level_gap_floor: float = 0.5
    min_weight: float = 0.1
    # No upper cap unless one is configured
    max_weight: Optional[float] = None


@dataclass
class DebugConfig:
    verbose_logging: bool = False
    log_level: str = "WARNING"
    development_mode: bool = False
    validate_events: bool = True


@dataclass
class SafetyConfig:
    max_recursion_depth: int = 10
    max_retry_attempts: int = 3
    error_log_size: int = 100
    fallback_events: List[Dict[str, Any]] = field(default_factory=_default_fallback_events)


@dataclass
class EngineConfig:
    """Complete engine configuration, injected at construction time."""
    loop: LoopConfig = field(default_factory=LoopConfig)
    weights: WeightConfig = field(default_factory=WeightConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a configuration from ``LIFELINE_*`` environment variables.

        Invalid values, or values below the accepted minimum, silently fall
        back to the defaults.
        """
        loop = LoopConfig(
            default_max_events=_get_int_env("LIFELINE_MAX_EVENTS", 3, minval=1),
            default_use_weights=_get_bool_env("LIFELINE_USE_WEIGHTS", True),
            default_guarantee_event=_get_bool_env("LIFELINE_GUARANTEE_EVENT", True),
        )
        weights = WeightConfig(
            recent_decay=_get_float_env("LIFELINE_RECENT_DECAY", 0.7, minval=0.0),
            min_weight=_get_float_env("LIFELINE_MIN_WEIGHT", 0.1, minval=0.0),
            max_weight=_get_float_env("LIFELINE_MAX_WEIGHT", None, minval=0.0),
        )
        debug = DebugConfig(
            verbose_logging=_get_bool_env("LIFELINE_VERBOSE", False),
            log_level=os.getenv("LIFELINE_LOG_LEVEL", "WARNING").strip().upper(),
            development_mode=_get_bool_env("LIFELINE_DEV_MODE", False),
            validate_events=_get_bool_env("LIFELINE_VALIDATE_EVENTS", True),
        )
        safety = SafetyConfig(
            max_recursion_depth=_get_int_env("LIFELINE_MAX_CHAIN_DEPTH", 10, minval=1),
            max_retry_attempts=_get_int_env("LIFELINE_MAX_RETRIES", 3, minval=0),
            error_log_size=_get_int_env("LIFELINE_ERROR_LOG_SIZE", 100, minval=1),
        )
        return cls(loop=loop, weights=weights, debug=debug, safety=safety)

    def updated(self, **sections: Dict[str, Any]) -> "EngineConfig":
        """Return a copy with the given section fields replaced.

        Example:
            config.updated(loop={"default_max_events": 5})
        """
        changes = {}
        for name, values in sections.items():
            current = getattr(self, name, None)
            if current is None:
                raise ConfigError(f"Unknown config section: {name}")
            try:
                changes[name] = replace(current, **values)
            except TypeError as e:
                raise ConfigError(f"Invalid field in section '{name}': {e}") from e
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Rebuild a configuration exported with :meth:`to_dict`.

        Raises:
            ConfigError: unknown fields or a configuration failing validation
        """
        try:
            config = cls(
                loop=LoopConfig(**data.get("loop", {})),
                weights=WeightConfig(**data.get("weights", {})),
                debug=DebugConfig(**data.get("debug", {})),
                safety=SafetyConfig(**data.get("safety", {})),
            )
        except TypeError as e:
            raise ConfigError(f"Invalid configuration data: {e}") from e
        problems = validate_config(config)
        if problems:
            raise ConfigError("; ".join(problems))
        return config


def validate_config(config: EngineConfig) -> List[str]:
    """Return the list of problems found in ``config`` (empty when valid)."""
    errors = []
    if config.loop.default_max_events <= 0:
        errors.append("default_max_events must be greater than 0")
    if config.weights.min_weight < 0:
        errors.append("min_weight must be non-negative")
    if config.weights.max_weight is not None and config.weights.max_weight <= config.weights.min_weight:
        errors.append("max_weight must be greater than min_weight")
    if not 0 < config.weights.recent_decay <= 1:
        errors.append("recent_decay must be in (0, 1]")
    if config.safety.max_recursion_depth <= 0:
        errors.append("max_recursion_depth must be greater than 0")
    if config.safety.max_retry_attempts < 0:
        errors.append("max_retry_attempts must be non-negative")
    if config.safety.error_log_size <= 0:
        errors.append("error_log_size must be greater than 0")
    if config.debug.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        errors.append(f"unknown log_level: {config.debug.log_level}")
    return errors


# ---------------- Presets ----------------

PRESETS: Dict[str, Dict[str, Dict[str, Any]]] = {
    "debug": {
        "debug": {"verbose_logging": True, "log_level": "DEBUG", "validate_events": True},
        "loop": {"default_max_events": 1, "default_use_weights": False},
    },
    "performance": {
        "debug": {"verbose_logging": False, "validate_events": False},
        "safety": {"max_recursion_depth": 5},
        "loop": {"default_max_events": 5, "default_use_weights": True},
    },
    "safe": {
        "safety": {"max_recursion_depth": 3},
        "debug": {"verbose_logging": True, "log_level": "INFO", "validate_events": True},
        "loop": {"default_max_events": 2, "default_use_weights": True},
    },
    "fast_game": {
        "loop": {"default_max_events": 7, "default_use_weights": True},
        "weights": {"min_weight": 0.5, "max_weight": 150.0},
    },
}


def preset(name: str, base: EngineConfig | None = None) -> EngineConfig:
    """Apply a named preset on top of ``base`` (defaults when omitted)."""
    if name not in PRESETS:
        raise ConfigError(f"Unknown preset '{name}'. Available: {', '.join(sorted(PRESETS))}")
    return (base or EngineConfig()).updated(**PRESETS[name])


__all__ = [
    "LoopConfig", "WeightConfig", "DebugConfig", "SafetyConfig", "EngineConfig",
    "validate_config", "preset", "PRESETS",
]
