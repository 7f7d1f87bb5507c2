"""Event engine package for Lifeline."""

from .model import (
    EventDefinition, Condition, ConditionGroup, Outcome, ChainNextEvent,
    TickOptions, TickResult, TriggerResult,
)
from .dsl import check, check_all, can_trigger
from .engine import EventEngine
from .loop import EventLoop
from .history import HistoryManager
from .chains import ChainManager
from .error_handler import ErrorHandler, ErrorKind, Severity, RecoveryStrategy
from .loader import load_event_library, parse_event, event_to_dict
from .builder import EventBuilder, EventTemplates
from .journal import build_day_entries

__all__ = [
    'EventDefinition', 'Condition', 'ConditionGroup', 'Outcome', 'ChainNextEvent',
    'TickOptions', 'TickResult', 'TriggerResult',
    'check', 'check_all', 'can_trigger',
    'EventEngine', 'EventLoop',
    'HistoryManager', 'ChainManager',
    'ErrorHandler', 'ErrorKind', 'Severity', 'RecoveryStrategy',
    'load_event_library', 'parse_event', 'event_to_dict',
    'EventBuilder', 'EventTemplates',
    'build_day_entries',
]
