"""Event chain state machine.

States per chain id: not started -> active(step k) -> complete.
A chain starts when its start event fires, advances on each further chain
event and completes on an end event or once no continuation is pending.
Continuations with a delay are stored as (event id, scheduled day) and are
handed back by ``get_scheduled_events`` once that day is reached;
zero-delay continuations are run by the engine within the same tick.
"""
from __future__ import annotations
import copy
import logging
import random
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from ..core.state import ActorState
from ..errors import ChainError, SnapshotError
from .dsl import compare, resolve_path
from .model import ChainNextEvent, Condition, ContextOperation, EventDefinition, Outcome

logger = logging.getLogger(__name__)


@dataclass
class ScheduledEvent:
    chain_id: str
    event_id: str
    scheduled_day: int
    context_update: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ActiveEventChain:
    chain_id: str
    start_day: int
    current_step: int = 0
    context: Dict[str, Any] = field(default_factory=dict)
    pending: List[ScheduledEvent] = field(default_factory=list)
    previous_event_id: Optional[str] = None
    is_complete: bool = False


class ChainManager:
    """Tracks in-flight chains and their context maps."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.active_chains: Dict[str, ActiveEventChain] = {}

    # --- Transitions ---

    def start_chain(self, chain_id: str, event: EventDefinition, actor: ActorState, day: int,
                    initial_context: Optional[Dict[str, Any]] = None) -> ActiveEventChain:
        """Open chain ``chain_id`` at step 0 and schedule the start event's delayed continuations."""
        if chain_id in self.active_chains and not self.active_chains[chain_id].is_complete:
            logger.warning(f"Chain {chain_id} restarted while still active")
        chain = ActiveEventChain(
            chain_id=chain_id,
            start_day=day,
            context=copy.deepcopy(initial_context or {}),
            previous_event_id=event.id,
        )
        self.active_chains[chain_id] = chain
        self._schedule(chain, event.next_events, day)
        logger.debug(f"Chain {chain_id} started by {event.id} (actor {actor.id}) on day {day}")
        return chain

    def advance_chain(self, chain_id: str, event: EventDefinition, actor: ActorState, day: int) -> bool:
        """Move ``chain_id`` one step forward. Returns False for unknown or finished chains."""
        chain = self.active_chains.get(chain_id)
        if chain is None or chain.is_complete:
            logger.warning(f"Chain {chain_id} is not active, cannot advance with {event.id}")
            return False

        chain.current_step += 1
        chain.previous_event_id = event.id

        if event.is_chain_end:
            self.complete_chain(chain_id)
            return True

        self._schedule(chain, event.next_events, day)
        logger.debug(f"Chain {chain_id} advanced to step {chain.current_step} by {event.id} (actor {actor.id})")
        return True

    def complete_chain(self, chain_id: str):
        chain = self.active_chains.get(chain_id)
        if chain is None:
            return
        chain.is_complete = True
        chain.pending.clear()
        logger.debug(f"Chain {chain_id} complete after {chain.current_step} steps")

    def settle(self, chain_id: str) -> bool:
        """Complete the chain if nothing is left pending. Returns True when complete."""
        chain = self.active_chains.get(chain_id)
        if chain is None:
            return True
        if not chain.is_complete and not chain.pending:
            self.complete_chain(chain_id)
        return chain.is_complete

    def is_active(self, chain_id: Optional[str]) -> bool:
        chain = self.active_chains.get(chain_id) if chain_id else None
        return chain is not None and not chain.is_complete

    def roll_continuation(self, link: ChainNextEvent) -> bool:
        """Probability gate of a single continuation."""
        if link.probability is None or link.probability >= 1:
            return True
        return self.rng.random() <= link.probability

    def _schedule(self, chain: ActiveEventChain, links: List[ChainNextEvent], day: int):
        for link in links:
            delay = link.delay or 0
            if delay <= 0:
                # Handled by the engine's immediate work queue
                continue
            if not self.roll_continuation(link):
                logger.debug(f"Continuation {link.event_id} of {chain.chain_id} dropped by probability roll")
                continue
            chain.pending.append(ScheduledEvent(
                chain_id=chain.chain_id,
                event_id=link.event_id,
                scheduled_day=day + delay,
                context_update=dict(link.context_update or {}),
            ))
            logger.debug(f"Scheduled {link.event_id} for day {day + delay} in chain {chain.chain_id}")

    # --- Scheduling queries ---

    def get_scheduled_events(self, day: int) -> List[ScheduledEvent]:
        """Pop and return every continuation due on or before ``day``."""
        due: List[ScheduledEvent] = []
        for chain in self.active_chains.values():
            if chain.is_complete:
                continue
            ready = [s for s in chain.pending if s.scheduled_day <= day]
            if ready:
                chain.pending = [s for s in chain.pending if s.scheduled_day > day]
                due.extend(ready)
        due.sort(key=lambda s: s.scheduled_day)
        return due

    def has_scheduled_events(self, day: int) -> bool:
        return any(
            s.scheduled_day <= day
            for chain in self.active_chains.values() if not chain.is_complete
            for s in chain.pending
        )

    # --- Context ---

    def get_chain_context(self, chain_id: str) -> Optional[Dict[str, Any]]:
        chain = self.active_chains.get(chain_id)
        return copy.deepcopy(chain.context) if chain else None

    def update_chain_context(self, chain_id: str, updates: Dict[str, Any]) -> bool:
        chain = self.active_chains.get(chain_id)
        if chain is None:
            return False
        chain.context.update(copy.deepcopy(updates))
        return True

    def check_chain_context_condition(self, condition: Condition, chain_id: str) -> bool:
        chain = self.active_chains.get(chain_id)
        if chain is None:
            return False
        if condition.context_path:
            value = resolve_path(chain.context, condition.context_path)
        else:
            value = chain.context.get(condition.key)
        if value is None:
            return False
        return compare(value, condition.operator, condition.value)

    def apply_chain_context_outcome(self, outcome: Outcome, chain_id: str) -> bool:
        """Apply a set/add/remove/append outcome to the chain context.

        Returns False when the chain is unknown or the operation does not fit
        the value found at the path.
        """
        chain = self.active_chains.get(chain_id)
        if chain is None:
            return False
        path = outcome.context_path or outcome.key
        operation = outcome.operation or ContextOperation.SET
        try:
            _apply_at_path(chain.context, path, operation, outcome.value)
        except ChainError as e:
            logger.warning(f"Context operation on {chain_id}.{path} failed: {e}")
            return False
        return True

    # --- Housekeeping ---

    def cleanup_completed_chains(self) -> int:
        finished = [cid for cid, chain in self.active_chains.items() if chain.is_complete]
        for cid in finished:
            del self.active_chains[cid]
        return len(finished)

    def get_active_chains(self) -> List[Dict[str, Any]]:
        return [
            {"chain_id": c.chain_id, "step": c.current_step, "start_day": c.start_day}
            for c in self.active_chains.values() if not c.is_complete
        ]

    def snapshot(self) -> Dict[str, Any]:
        return {cid: asdict(chain) for cid, chain in self.active_chains.items()}

    def restore(self, data: Dict[str, Any]):
        """Replace the chain store with a :meth:`snapshot` payload."""
        chains = {}
        try:
            for cid, raw in data.items():
                raw = dict(raw)
                raw["pending"] = [ScheduledEvent(**s) for s in raw.get("pending", [])]
                chains[cid] = ActiveEventChain(**raw)
        except TypeError as e:
            raise SnapshotError(f"Invalid chain data: {e}") from e
        self.active_chains = chains


def _apply_at_path(context: Dict[str, Any], path: str, operation: ContextOperation, value: Any):
    parts = path.split(".")
    target = context
    for part in parts[:-1]:
        nxt = target.get(part)
        if nxt is None:
            nxt = target[part] = {}
        elif not isinstance(nxt, dict):
            raise ChainError(f"'{part}' is not a mapping")
        target = nxt
    last = parts[-1]
    current = target.get(last)

    if operation == ContextOperation.SET:
        target[last] = copy.deepcopy(value)
    elif operation == ContextOperation.ADD:
        base = 0 if current is None else current
        if not _is_number(base) or not _is_number(value):
            raise ChainError(f"cannot add {value!r} to {base!r}")
        target[last] = base + value
    elif operation == ContextOperation.APPEND:
        if current is None:
            target[last] = [copy.deepcopy(value)]
        elif isinstance(current, list):
            current.append(copy.deepcopy(value))
        else:
            raise ChainError(f"cannot append to {type(current).__name__}")
    elif operation == ContextOperation.REMOVE:
        if isinstance(current, list):
            if value in current:
                current.remove(value)
        else:
            target.pop(last, None)
    else:
        raise ChainError(f"unknown context operation {operation!r}")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
