"""Single-event triggering.

``EventEngine`` owns everything that lives longer than one tick (library,
configuration, rng, chain store, error handler) and knows how to fire one
event: check conditions, validate outcomes, start or advance its chain,
apply outcomes on copies, run zero-delay continuations and record history.
"""
from __future__ import annotations
import logging
import random
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

from ..config import EngineConfig
from ..core.state import ActorState, Inventory
from ..errors import EngineFault, LifelineError
from .chains import ChainManager, ScheduledEvent
from .dsl import can_trigger
from .error_handler import ErrorHandler, ErrorKind, RecoveryResult, RecoveryStrategy, Severity
from .loader import parse_events, validate_library
from .model import ChainNextEvent, EventDefinition, OutcomeType, TriggerResult
from .outcomes import BatchResult, OutcomeProcessor, validate_outcome
from .random_values import RandomResolver

logger = logging.getLogger(__name__)


class EventEngine:
    """Fires events against actor/inventory copies.

    Args:
        library: the read-only event library
        config: engine configuration (defaults when omitted)
        rng: random source; seed it for deterministic replays
        error_handler: shared error handler (one is created when omitted)
    """

    def __init__(self, library: List[EventDefinition], config: Optional[EngineConfig] = None,
                 rng: Optional[random.Random] = None,
                 error_handler: Optional[ErrorHandler] = None):
        self.config = config or EngineConfig()
        self.rng = rng or random.Random()
        self.library: List[EventDefinition] = list(library)
        self._by_id: Dict[str, EventDefinition] = {e.id: e for e in self.library}
        self.resolver = RandomResolver(self.rng)
        self.outcomes = OutcomeProcessor(self.resolver)
        self.chains = ChainManager(self.rng)
        self.errors = error_handler or ErrorHandler(self.config)
        self.fallback_events = parse_events(self.config.safety.fallback_events)

        if self.config.debug.validate_events:
            for problem in validate_library(self.library):
                logger.warning(f"[EVENT LIBRARY] {problem}")

    def get_event(self, event_id: str) -> Optional[EventDefinition]:
        event = self._by_id.get(event_id)
        if event is None:
            for fallback in self.fallback_events:
                if fallback.id == event_id:
                    return fallback
        return event

    def validate_event_outcomes(self, event: EventDefinition) -> List[str]:
        reasons = []
        for outcome in event.outcomes:
            reason = validate_outcome(outcome)
            if reason:
                reasons.append(reason)
        return reasons

    def apply_event_outcome(self, event: EventDefinition, actor: ActorState, inventory: Inventory,
                            chain_id: Optional[str] = None) -> BatchResult:
        """Apply all outcomes of ``event``; chain context outcomes go to the chain store."""
        regular = [o for o in event.outcomes if o.type != OutcomeType.CHAIN_CONTEXT]
        context_ops = [o for o in event.outcomes if o.type == OutcomeType.CHAIN_CONTEXT]

        result = self.outcomes.apply_batch(actor, inventory, regular)
        for outcome in context_ops:
            if not chain_id or not self.chains.apply_chain_context_outcome(outcome, chain_id):
                result.errors.append(f"chain context outcome '{outcome.context_path or outcome.key}' not applied")
        return result

    # --- Triggering ---

    def try_trigger(self, event: EventDefinition, actor: ActorState, inventory: Inventory,
                    history=None, chain_id: Optional[str] = None,
                    day: Optional[int] = None, force: bool = False) -> TriggerResult:
        """Try to fire ``event``; failures are recovered according to the error handler.

        Args:
            event: event to fire
            actor: current actor (never mutated)
            inventory: current inventory (never mutated)
            history: optional HistoryManager, used by conditions and recorded into
            chain_id: chain the event is a scheduled continuation of
            day: current day, defaults to ``actor.days_lived``
            force: skip the condition check

        Raises:
            EngineFault: when recovery decides to terminate the tick
        """
        day = actor.days_lived if day is None else day
        while True:
            chains_before = self.chains.snapshot()
            history_mark = history.checkpoint(day) if history is not None else None
            try:
                result = self._trigger(event, actor, inventory, history, chain_id, day, force)
                self.errors.clear_retry(ErrorKind.EVENT_PROCESSING, event.id)
                return result
            except EngineFault:
                raise
            except Exception as e:
                # A failed attempt leaves no chain or history writes behind
                self.chains.restore(chains_before)
                if history is not None:
                    history.rollback(history_mark)
                _, recovery = self.errors.report(
                    ErrorKind.EVENT_PROCESSING, Severity.HIGH,
                    f"Failed to trigger event {event.id}: {e}",
                    details=type(e).__name__,
                    context={"event_id": event.id, "actor": actor, "inventory": inventory},
                )
                if recovery.should_retry:
                    logger.debug(f"Retrying {event.id} (logical backoff {recovery.retry_delay_ms}ms)")
                    continue
                return self._recover(event, actor, inventory, history, day, recovery, str(e))

    def _recover(self, event: EventDefinition, actor: ActorState, inventory: Inventory,
                 history, day: int, recovery: RecoveryResult, reason: str) -> TriggerResult:
        if recovery.strategy == RecoveryStrategy.TERMINATE:
            raise EngineFault(f"Processing terminated at event {event.id}: {reason}")
        if recovery.strategy == RecoveryStrategy.FALLBACK and recovery.success:
            return self.trigger_fallback(actor, inventory, history, day, reason)
        if recovery.strategy == RecoveryStrategy.RESET_STATE and recovery.success:
            return TriggerResult(event=event, triggered=False,
                                 actor=recovery.actor or actor, inventory=recovery.inventory or inventory,
                                 errors=[reason, recovery.message])
        return TriggerResult(event=event, triggered=False, errors=[f"Error applying event outcome: {reason}"])

    def trigger_fallback(self, actor: ActorState, inventory: Inventory, history, day: int,
                         reason: str = "") -> TriggerResult:
        """Apply the first configured fallback event unconditionally."""
        if not self.fallback_events:
            return TriggerResult(event=None, triggered=False, errors=[reason or "no fallback event"])
        fallback = self.fallback_events[0]
        batch = self.outcomes.apply_batch(actor, inventory, fallback.outcomes)
        if history is not None:
            self._record(history, fallback, actor, inventory, batch.actor, batch.inventory, day, None)
        errors = [reason] if reason else []
        return TriggerResult(event=fallback, triggered=True, actor=batch.actor, inventory=batch.inventory,
                             logs=batch.logs, errors=errors + batch.errors)

    def _trigger(self, event: EventDefinition, actor: ActorState, inventory: Inventory,
                 history, chain_id: Optional[str], day: int, force: bool = False) -> TriggerResult:
        try:
            # Forced events skip the condition check
            eligible = force or can_trigger(event, actor, inventory, history, chain_id, self.chains)
        except LifelineError as e:
            self.errors.report(ErrorKind.CONDITION_EVALUATION, Severity.MEDIUM,
                               f"Condition check failed for {event.id}: {e}",
                               context={"event_id": event.id})
            return TriggerResult(event=event, triggered=False, errors=[str(e)])
        if not eligible:
            logger.debug(f"Event {event.id} conditions not met")
            return TriggerResult(event=event, triggered=False)

        problems = self.validate_event_outcomes(event)
        if problems:
            message = f"Event outcome validation failed: {'; '.join(problems)}"
            self.errors.report(ErrorKind.VALIDATION, Severity.MEDIUM, message, context={"event_id": event.id})
            return TriggerResult(event=event, triggered=False, errors=[message])

        active_chain = None
        if event.is_chain_start and event.chain_id:
            self.chains.start_chain(event.chain_id, event, actor, day)
            active_chain = event.chain_id
        elif event.chain_id and chain_id == event.chain_id:
            self.chains.advance_chain(event.chain_id, event, actor, day)
            active_chain = chain_id

        batch = self.apply_event_outcome(event, actor, inventory, active_chain)
        if batch.errors:
            self.errors.report(ErrorKind.OUTCOME_PROCESSING, Severity.LOW,
                               f"Event {event.id} applied with errors: {'; '.join(batch.errors)}",
                               context={"event_id": event.id})
        if history is not None:
            self._record(history, event, actor, inventory, batch.actor, batch.inventory, day, active_chain)

        result = TriggerResult(event=event, triggered=True, actor=batch.actor, inventory=batch.inventory,
                               logs=list(batch.logs), errors=list(batch.errors), chain_id=active_chain)

        if active_chain and self.chains.is_active(active_chain):
            self._run_immediate(event, active_chain, result, history, day)
        if active_chain:
            self.chains.settle(active_chain)
        return result

    def _run_immediate(self, event: EventDefinition, chain_id: str, result: TriggerResult,
                       history, day: int):
        """Fire zero-delay continuations breadth-first with a depth cap and a visited set."""
        max_depth = self.config.safety.max_recursion_depth
        queue: Deque[Tuple[ChainNextEvent, int]] = deque((link, 1) for link in event.immediate_next)
        visited = set()

        while queue:
            link, depth = queue.popleft()
            if depth > max_depth:
                logger.warning(f"Chain {chain_id} hit the immediate continuation depth limit ({max_depth})")
                break
            if link.event_id in visited:
                logger.warning(f"Skipping repeated immediate event {link.event_id} in chain {chain_id}")
                continue
            visited.add(link.event_id)

            nxt = self.get_event(link.event_id)
            if nxt is None:
                logger.warning(f"Immediate chain event {link.event_id} not found")
                continue
            if not self.chains.roll_continuation(link):
                continue
            if link.context_update:
                self.chains.update_chain_context(chain_id, link.context_update)
            if not can_trigger(nxt, result.actor, result.inventory, history, chain_id, self.chains):
                logger.debug(f"Immediate chain event {nxt.id} conditions not met")
                continue
            if self.validate_event_outcomes(nxt):
                logger.warning(f"Immediate chain event {nxt.id} failed validation")
                continue

            if nxt.chain_id == chain_id:
                self.chains.advance_chain(chain_id, nxt, result.actor, day)
            batch = self.apply_event_outcome(nxt, result.actor, result.inventory, chain_id)
            if history is not None:
                self._record(history, nxt, result.actor, result.inventory, batch.actor, batch.inventory,
                             day, chain_id)
            result.actor, result.inventory = batch.actor, batch.inventory
            result.logs.extend(batch.logs)
            result.errors.extend(batch.errors)
            result.chained_events.append(nxt.id)

            if not self.chains.is_active(chain_id):
                break
            for follow in nxt.immediate_next:
                queue.append((follow, depth + 1))

    def trigger_scheduled(self, scheduled: ScheduledEvent, actor: ActorState, inventory: Inventory,
                          history, day: int) -> Optional[TriggerResult]:
        """Fire a chain continuation that came due today."""
        event = self.get_event(scheduled.event_id)
        if event is None:
            logger.warning(f"Scheduled chain event {scheduled.event_id} not found")
            self.chains.settle(scheduled.chain_id)
            return None
        if scheduled.context_update:
            self.chains.update_chain_context(scheduled.chain_id, scheduled.context_update)
        result = self.try_trigger(event, actor, inventory, history, scheduled.chain_id, day)
        if not result.triggered:
            # A continuation that cannot fire may leave the chain with nothing pending
            self.chains.settle(scheduled.chain_id)
        return result

    # --- History ---

    @staticmethod
    def _record(history, event: EventDefinition, before: ActorState, before_inv: Inventory,
                after: ActorState, after_inv: Inventory, day: int, chain_id: Optional[str]):
        history.record_event(
            event.id, event.name, event.type, day,
            outcomes=[{"type": o.type.value, "key": o.key} for o in event.outcomes],
            chain_id=chain_id,
        )
        for stat, old in before.stats.items():
            new = after.stats.get(stat, old)
            if new != old:
                history.record_attribute_change(day, stat, old, new)
        ids = [i.id for i in before_inv.items] + [i.id for i in after_inv.items if not before_inv.has_item(i.id)]
        for item_id in ids:
            old_q, new_q = before_inv.quantity_of(item_id), after_inv.quantity_of(item_id)
            item = after_inv.find(item_id) or before_inv.find(item_id)
            if new_q > old_q:
                history.record_item_gain(day, item_id, item.name, new_q - old_q)
            elif new_q < old_q:
                history.record_item_loss(day, item_id, item.name, old_q - new_q)
