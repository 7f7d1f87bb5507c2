"""Day journal entries for the host UI."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List

from .model import TickResult


@dataclass
class JournalEntry:
    day: int
    event_id: str
    title: str
    text: str
    logs: List[str] = field(default_factory=list)
    chained_events: List[str] = field(default_factory=list)


def build_day_entries(tick_result: TickResult, day: int) -> List[JournalEntry]:
    """Turn a tick result into journal entries, in firing order.

    Results that did not trigger are left out.
    """
    entries = []
    for result in tick_result.results:
        if not result.triggered or result.event is None:
            continue
        event = result.event
        entries.append(JournalEntry(
            day=day,
            event_id=event.id,
            title=event.name,
            text=event.description,
            logs=list(result.logs),
            chained_events=list(result.chained_events),
        ))
    return entries
