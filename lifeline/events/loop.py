"""Day tick orchestration.

A tick advances the actor by one day: due chain continuations fire first,
then regular events are pre-filtered by probability and drawn (weighted or
uniform) until ``max_events`` have fired. When nothing was selected the
guaranteed-event policy forces a uniform pick among eligible events.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.state import ActorState, Inventory
from ..errors import EngineFault
from .dsl import can_trigger
from .engine import EventEngine
from .error_handler import EngineError, ErrorKind, Severity
from .model import EventDefinition, TickOptions, TickResult, TickSummary, TriggerResult
from .selection import calculate_event_weight, draw_weighted, shuffled

logger = logging.getLogger(__name__)


@dataclass
class _ResolvedOptions:
    max_events: int
    use_weights: bool
    guarantee_event: bool
    event_type_filter: Optional[List[str]]
    force_events: Optional[List[EventDefinition]]


class EventLoop:
    """Runs day ticks on top of an :class:`EventEngine`."""

    def __init__(self, engine: EventEngine):
        self.engine = engine

    @property
    def config(self):
        return self.engine.config

    def _options(self, options: Optional[TickOptions]) -> _ResolvedOptions:
        options = options or TickOptions()
        loop = self.config.loop
        return _ResolvedOptions(
            max_events=loop.default_max_events if options.max_events is None else options.max_events,
            use_weights=loop.default_use_weights if options.use_weights is None else options.use_weights,
            guarantee_event=(loop.default_guarantee_event if options.guarantee_event is None
                             else options.guarantee_event),
            event_type_filter=options.event_type_filter,
            # An empty force list means a regular day
            force_events=options.force_events or None,
        )

    def run_tick(self, actor: ActorState, inventory: Inventory, options: Optional[TickOptions] = None,
                 history=None) -> TickResult:
        """Advance ``actor`` by one day.

        The inputs are never mutated; the returned TickResult carries the new
        actor and inventory.

        Raises:
            EngineFault: unrecoverable failure, logged before being raised
        """
        try:
            return self._run_tick(actor, inventory, self._options(options), history)
        except EngineFault:
            raise
        except Exception as e:
            error, _ = self.engine.errors.report(
                ErrorKind.SYSTEM, Severity.CRITICAL, f"Day tick failed: {e}",
                details=type(e).__name__,
                context={"actor_id": actor.id, "day": actor.days_lived + 1},
            )
            raise EngineFault(f"Day tick failed: {e}", error) from e

    def _run_tick(self, actor: ActorState, inventory: Inventory, opts: _ResolvedOptions,
                  history) -> TickResult:
        engine = self.engine
        current_actor = actor.clone()
        current_actor.days_lived += 1
        current_inventory = inventory.clone()
        day = current_actor.days_lived
        if history is not None:
            history.record_day_start(day, current_actor)

        results: List[TriggerResult] = []

        def absorb(result: Optional[TriggerResult]) -> bool:
            nonlocal current_actor, current_inventory
            if result is None:
                return False
            results.append(result)
            if result.actor is not None:
                current_actor, current_inventory = result.actor, result.inventory
            return result.triggered

        # Due chain continuations come first
        skip_normal = False
        for scheduled in engine.chains.get_scheduled_events(day):
            result = engine.trigger_scheduled(scheduled, current_actor, current_inventory, history, day)
            if absorb(result) and result.event.skip_normal_events:
                logger.debug(f"Chain event {result.event.id} skips the regular events of day {day}")
                skip_normal = True

        selected = 0
        if not skip_normal:
            candidates = self._candidates(opts, current_actor, current_inventory, history)

            if opts.force_events:
                ordered = iter(candidates)
            elif opts.use_weights:
                def weigh(event: EventDefinition) -> float:
                    return calculate_event_weight(event, current_actor, current_inventory, history,
                                                  self.config.weights)
                ordered = draw_weighted(candidates, weigh, engine.rng)
            else:
                ordered = iter(shuffled(candidates, engine.rng))

            for event in ordered:
                if selected >= opts.max_events:
                    break
                result = engine.try_trigger(event, current_actor, current_inventory, history, day=day,
                                            force=bool(opts.force_events))
                if absorb(result):
                    selected += 1

            if selected == 0 and opts.guarantee_event and not opts.force_events:
                pool = [
                    e for e in self._regular_events()
                    if can_trigger(e, current_actor, current_inventory, history, None, engine.chains)
                ]
                if pool:
                    event = engine.rng.choice(pool)
                    logger.debug(f"Guaranteed event for day {day}: {event.id}")
                    absorb(engine.try_trigger(event, current_actor, current_inventory, history, day=day))

        engine.chains.cleanup_completed_chains()

        summary = TickSummary(
            total_events=len(results),
            triggered_events=sum(1 for r in results if r.triggered),
        )
        for result in results:
            summary.logs.extend(result.logs)
            summary.errors.extend(result.errors)
        if current_actor.level > actor.level:
            summary.new_level = current_actor.level

        if self.config.debug.verbose_logging:
            logger.info(f"Day {day} for {actor.id}: {summary.triggered_events}/{summary.total_events} events fired")
        return TickResult(actor=current_actor, inventory=current_inventory, results=results, summary=summary)

    def _regular_events(self) -> List[EventDefinition]:
        return [
            e for e in self.engine.library
            if e.is_regular and not (e.is_chain_start and self.engine.chains.is_active(e.chain_id))
        ]

    def _candidates(self, opts: _ResolvedOptions, actor: ActorState, inventory: Inventory,
                    history) -> List[EventDefinition]:
        """Eligible regular events that passed their probability roll."""
        if opts.force_events:
            events = list(opts.force_events)
        else:
            events = [
                e for e in self._regular_events()
                if can_trigger(e, actor, inventory, history, None, self.engine.chains)
            ]
        if opts.event_type_filter:
            events = [e for e in events if e.type in opts.event_type_filter]
        if opts.force_events:
            return events

        rng = self.engine.rng
        return [e for e in events if e.probability is None or rng.random() <= e.probability]

    # --- Health ---

    def get_system_health(self) -> Dict[str, Any]:
        return self.engine.errors.get_system_health()

    def get_error_log(self, limit: Optional[int] = None) -> List[EngineError]:
        return self.engine.errors.get_error_log(limit)
