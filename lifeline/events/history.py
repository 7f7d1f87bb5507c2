"""Per-actor history ledger.

Keeps an append-only record of every simulated day and every triggered event
and answers the history-aware conditions (history, streak, cumulative,
daysSince, eventCount).
"""
from __future__ import annotations
import copy
import logging
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

from ..core.state import ActorState
from ..errors import ComparisonTypeError, SnapshotError
from .dsl import compare
from .model import Condition, ConditionType, HistoryType

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_WINDOW = 30
DEFAULT_EVENT_COUNT_WINDOW = 999


@dataclass
class AttributeChange:
    attribute: str
    old: int
    new: int
    change: int


@dataclass
class ItemDelta:
    item_id: str
    item_name: str
    quantity: int


@dataclass
class DailyRecord:
    day: int
    events: List[str] = field(default_factory=list)
    attribute_changes: List[AttributeChange] = field(default_factory=list)
    items_gained: List[ItemDelta] = field(default_factory=list)
    items_lost: List[ItemDelta] = field(default_factory=list)
    final_stats: Dict[str, int] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


@dataclass
class EventRecord:
    event_id: str
    event_name: str
    event_type: str
    day: int
    outcomes: List[Dict[str, Any]] = field(default_factory=list)
    chain_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class PlayerHistory:
    character_id: str
    daily_records: List[DailyRecord] = field(default_factory=list)
    event_history: List[EventRecord] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    last_updated: float = field(default_factory=time.time)


class HistoryManager:
    """Append-only ledger plus the queries used by history conditions."""

    def __init__(self, character_id: str, history: Optional[PlayerHistory] = None):
        self.history = history or PlayerHistory(character_id=character_id)

    # --- Recording ---

    def _day_record(self, day: int) -> DailyRecord:
        for record in self.history.daily_records:
            if record.day == day:
                return record
        record = DailyRecord(day=day)
        self.history.daily_records.append(record)
        return record

    def _touch(self):
        self.history.last_updated = time.time()

    def record_day_start(self, day: int, actor: ActorState) -> DailyRecord:
        """Open the record for ``day`` with a snapshot of the actor's stats."""
        record = self._day_record(day)
        record.final_stats = dict(actor.stats)
        self._touch()
        return record

    def record_event(self, event_id: str, event_name: str, event_type: str, day: int,
                     outcomes: Optional[List[Dict[str, Any]]] = None,
                     chain_id: Optional[str] = None) -> EventRecord:
        entry = EventRecord(
            event_id=event_id,
            event_name=event_name,
            event_type=event_type,
            day=day,
            outcomes=list(outcomes or []),
            chain_id=chain_id,
        )
        self.history.event_history.append(entry)
        self._day_record(day).events.append(event_id)
        self._touch()
        return entry

    def record_attribute_change(self, day: int, attribute: str, old: int, new: int):
        record = self._day_record(day)
        record.attribute_changes.append(AttributeChange(attribute, old, new, new - old))
        record.final_stats[attribute] = new
        self._touch()

    def record_item_gain(self, day: int, item_id: str, item_name: str, quantity: int):
        self._day_record(day).items_gained.append(ItemDelta(item_id, item_name, quantity))
        self._touch()

    def record_item_loss(self, day: int, item_id: str, item_name: str, quantity: int):
        self._day_record(day).items_lost.append(ItemDelta(item_id, item_name, quantity))
        self._touch()

    def checkpoint(self, day: int) -> Tuple[int, int, Optional[DailyRecord]]:
        """Mark the ledger before a write that only touches ``day``."""
        record = next((r for r in self.history.daily_records if r.day == day), None)
        return len(self.history.event_history), len(self.history.daily_records), copy.deepcopy(record)

    def rollback(self, mark: Tuple[int, int, Optional[DailyRecord]]):
        """Drop everything recorded since :meth:`checkpoint` returned ``mark``."""
        events, days, record = mark
        del self.history.event_history[events:]
        del self.history.daily_records[days:]
        if record is not None:
            for i, existing in enumerate(self.history.daily_records):
                if existing.day == record.day:
                    self.history.daily_records[i] = copy.deepcopy(record)
                    break

    # --- Queries ---

    def get_current_day(self) -> int:
        """Latest recorded day (0 with an empty ledger)."""
        if not self.history.daily_records:
            return 0
        return max(record.day for record in self.history.daily_records)

    def get_recent_event_count(self, event_id: str, days: int = 5) -> int:
        """How many times ``event_id`` fired in the last ``days`` recorded days."""
        current = self.get_current_day()
        start = max(0, current - days)
        return sum(
            1 for entry in self.history.event_history
            if entry.event_id == event_id and start <= entry.day <= current
        )

    def get_last_occurrence(self, event_id: str) -> Optional[int]:
        days = [e.day for e in self.history.event_history if e.event_id == event_id]
        return max(days) if days else None

    def check_history_condition(self, condition: Condition, current_day: int) -> bool:
        """Evaluate a history-aware condition against the ledger.

        Args:
            condition: a history, streak, cumulative, daysSince or eventCount condition
            current_day: the actor's current day

        Returns:
            True if satisfied. Mismatched comparison operands evaluate to False.
        """
        handlers = {
            ConditionType.HISTORY: self._check_general,
            ConditionType.STREAK: self._check_streak,
            ConditionType.CUMULATIVE: self._check_cumulative,
            ConditionType.DAYS_SINCE: self._check_days_since,
            ConditionType.EVENT_COUNT: self._check_event_count,
        }
        handler = handlers.get(condition.type)
        if handler is None:
            return False
        try:
            return handler(condition, current_day)
        except ComparisonTypeError as e:
            logger.warning(f"History condition {condition.type.value}:{condition.key} rejected: {e}")
            return False

    def _records_between(self, from_day: int, to_day: int) -> List[DailyRecord]:
        return [r for r in self.history.daily_records if from_day <= r.day <= to_day]

    def _events_between(self, event_id: str, from_day: int, to_day: int) -> List[EventRecord]:
        return [
            e for e in self.history.event_history
            if e.event_id == event_id and from_day <= e.day <= to_day
        ]

    def _check_general(self, condition: Condition, current_day: int) -> bool:
        window = condition.time_window or DEFAULT_HISTORY_WINDOW
        from_day = max(0, current_day - window)

        if condition.history_type == HistoryType.EVENT_TRIGGERED:
            return bool(self._events_between(condition.key, from_day, current_day))

        if condition.history_type == HistoryType.ATTRIBUTE_CHANGE:
            return any(
                change.attribute == condition.key
                and compare(change.change, condition.operator, condition.value)
                for record in self._records_between(from_day, current_day)
                for change in record.attribute_changes
            )

        if condition.history_type == HistoryType.ITEM_GAINED:
            return any(
                item.item_id == condition.key
                and compare(item.quantity, condition.operator, condition.value)
                for record in self._records_between(from_day, current_day)
                for item in record.items_gained
            )

        return False

    def _check_streak(self, condition: Condition, current_day: int) -> bool:
        target = condition.value
        if isinstance(target, bool) or not isinstance(target, (int, float)):
            raise ComparisonTypeError(f"Streak length must be a number, got {target!r}")
        target = int(target)

        by_day = {r.day: r for r in self.history.daily_records}
        streak = 0
        day = current_day
        # Scan backwards and stop at the first day that breaks the streak
        while day >= max(0, current_day - target):
            if not self._day_meets(by_day.get(day), condition):
                break
            streak += 1
            day -= 1
        return streak >= target

    def _day_meets(self, record: Optional[DailyRecord], condition: Condition) -> bool:
        if record is None:
            return False
        if condition.history_type == HistoryType.EVENT_TRIGGERED:
            return condition.key in record.events
        if condition.history_type == HistoryType.ATTRIBUTE_CHANGE:
            # The streak length lives in value; the per-day delta must be positive
            return any(
                change.attribute == condition.key and change.change > 0
                for change in record.attribute_changes
            )
        return False

    def _check_cumulative(self, condition: Condition, current_day: int) -> bool:
        window = condition.time_window or DEFAULT_HISTORY_WINDOW
        from_day = max(0, current_day - window)

        if condition.history_type == HistoryType.EVENT_TRIGGERED:
            total = len(self._events_between(condition.key, from_day, current_day))
        elif condition.history_type == HistoryType.ITEM_GAINED:
            total = sum(
                item.quantity
                for record in self._records_between(from_day, current_day)
                for item in record.items_gained
                if item.item_id == condition.key
            )
        else:
            return False
        return compare(total, condition.operator, condition.value)

    def _check_days_since(self, condition: Condition, current_day: int) -> bool:
        last = self.get_last_occurrence(condition.key)
        if last is None:
            # Never happened is not "infinitely long ago"
            return False
        return compare(current_day - last, condition.operator, condition.value)

    def _check_event_count(self, condition: Condition, current_day: int) -> bool:
        window = condition.time_window or DEFAULT_EVENT_COUNT_WINDOW
        from_day = max(0, current_day - window)
        count = len(self._events_between(condition.key, from_day, current_day))
        return compare(count, condition.operator, condition.value)

    # --- Snapshots ---

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self.history)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryManager":
        """Restore a manager from :meth:`to_dict` output.

        Raises:
            SnapshotError: malformed history data
        """
        try:
            history = PlayerHistory(
                character_id=data["character_id"],
                daily_records=[
                    DailyRecord(
                        day=r["day"],
                        events=list(r.get("events", [])),
                        attribute_changes=[AttributeChange(**c) for c in r.get("attribute_changes", [])],
                        items_gained=[ItemDelta(**i) for i in r.get("items_gained", [])],
                        items_lost=[ItemDelta(**i) for i in r.get("items_lost", [])],
                        final_stats=dict(r.get("final_stats", {})),
                        timestamp=r.get("timestamp", time.time()),
                    )
                    for r in data.get("daily_records", [])
                ],
                event_history=[EventRecord(**e) for e in data.get("event_history", [])],
                created_at=data.get("created_at", time.time()),
                last_updated=data.get("last_updated", time.time()),
            )
        except (KeyError, TypeError) as e:
            raise SnapshotError(f"Invalid history data: {e}") from e
        return cls(history.character_id, history)
