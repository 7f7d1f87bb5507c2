"""Bootstrap utilities: configure logging, load the event library and build an event loop."""
from __future__ import annotations
import logging
import random
from pathlib import Path
from typing import Optional, Union

from .config import EngineConfig, validate_config
from .errors import ConfigError
from .events.engine import EventEngine
from .events.loader import load_event_library
from .events.loop import EventLoop

ASSETS_DIR = Path(__file__).resolve().parent / "assets"
EVENTS_FILE = ASSETS_DIR / "events.json"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(config: EngineConfig):
    """Set the ``lifeline`` logger level from the debug section."""
    level = logging.DEBUG if config.debug.verbose_logging else getattr(logging, config.debug.log_level, logging.WARNING)
    root = logging.getLogger("lifeline")
    root.setLevel(level)
    if not logging.getLogger().handlers and not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)


def create_event_loop(config: Optional[EngineConfig] = None,
                      library_path: Union[str, Path, None] = None,
                      seed: Optional[int] = None) -> EventLoop:
    """Build an EventLoop over the bundled (or given) event library.

    Raises:
        ConfigError: the configuration has problems
        EventDefinitionError: the library cannot be loaded
    """
    config = config or EngineConfig.from_env()
    problems = validate_config(config)
    if problems:
        raise ConfigError("; ".join(problems))
    configure_logging(config)

    library = load_event_library(library_path or EVENTS_FILE, validate=config.debug.validate_events)
    engine = EventEngine(library, config, rng=random.Random(seed))
    return EventLoop(engine)
