"""Tests for error classification and recovery."""

import pytest

from lifeline.config import EngineConfig
from lifeline.core.state import Inventory, InventoryItem, create_character
from lifeline.errors import EngineFault
from lifeline.events.error_handler import (
    ErrorHandler, ErrorKind, RecoveryStrategy, Severity, default_strategy, safe_actor, safe_inventory,
)


@pytest.fixture
def handler():
    return ErrorHandler(EngineConfig())


class TestStrategyTable:
    def test_low_is_skip(self):
        for kind in ErrorKind:
            assert default_strategy(kind, Severity.LOW) == RecoveryStrategy.SKIP

    def test_medium(self):
        assert default_strategy(ErrorKind.VALIDATION, Severity.MEDIUM) == RecoveryStrategy.SKIP
        assert default_strategy(ErrorKind.OUTCOME_PROCESSING, Severity.MEDIUM) == RecoveryStrategy.FALLBACK
        assert default_strategy(ErrorKind.SYSTEM, Severity.MEDIUM) == RecoveryStrategy.RETRY

    def test_high_and_critical(self):
        assert default_strategy(ErrorKind.DATA_CORRUPTION, Severity.HIGH) == RecoveryStrategy.RESET_STATE
        assert default_strategy(ErrorKind.SYSTEM, Severity.HIGH) == RecoveryStrategy.FALLBACK
        assert default_strategy(ErrorKind.EVENT_PROCESSING, Severity.HIGH) == RecoveryStrategy.RETRY
        assert default_strategy(ErrorKind.SYSTEM, Severity.CRITICAL) == RecoveryStrategy.TERMINATE

    def test_categories(self):
        assert ErrorKind.CONDITION_EVALUATION.category == "VALIDATION"
        assert ErrorKind.OUTCOME_PROCESSING.category == "PROCESSING"
        assert ErrorKind.SYSTEM.category == "SYSTEM"
        assert ErrorKind.RECOVERY.category == "RECOVERY"

    def test_override(self):
        handler = ErrorHandler(strategy_overrides={(ErrorKind.VALIDATION, Severity.LOW): RecoveryStrategy.TERMINATE})
        assert handler.strategy_for(ErrorKind.VALIDATION, Severity.LOW) == RecoveryStrategy.TERMINATE


class TestRecovery:
    def test_retry_is_bounded(self, handler):
        results = []
        for _ in range(4):
            _, result = handler.report(ErrorKind.EVENT_PROCESSING, Severity.HIGH, "boom",
                                       context={"event_id": "wolf"})
            results.append(result)
        assert [r.should_retry for r in results] == [True, True, True, False]
        assert [r.retry_delay_ms for r in results[:3]] == [100, 200, 400]
        assert results[-1].success is False
        # The key is cleared once the limit is hit
        assert handler.retry_count(ErrorKind.EVENT_PROCESSING, "wolf") == 0

    def test_retry_keys_are_per_event(self, handler):
        handler.report(ErrorKind.EVENT_PROCESSING, Severity.HIGH, "boom", context={"event_id": "a"})
        handler.report(ErrorKind.EVENT_PROCESSING, Severity.HIGH, "boom", context={"event_id": "b"})
        assert handler.retry_count(ErrorKind.EVENT_PROCESSING, "a") == 1
        handler.clear_retry(ErrorKind.EVENT_PROCESSING, "a")
        assert handler.retry_count(ErrorKind.EVENT_PROCESSING, "a") == 0
        assert handler.retry_count(ErrorKind.EVENT_PROCESSING, "b") == 1

    def test_fallback_names_configured_event(self, handler):
        _, result = handler.report(ErrorKind.OUTCOME_PROCESSING, Severity.MEDIUM, "bad outcome")
        assert result.success is True
        assert result.fallback_event_id == "system_error_fallback"

    def test_fallback_without_events(self):
        config = EngineConfig().updated(safety={"fallback_events": []})
        _, result = ErrorHandler(config).report(ErrorKind.OUTCOME_PROCESSING, Severity.MEDIUM, "bad")
        assert result.success is False

    def test_reset_state_repairs(self, handler):
        actor = create_character("hero", "Hero")
        actor.stats["strength"] = -4
        actor.level = 0
        inventory = Inventory(owner_id="hero", items=[
            InventoryItem(id="ok", name="Ok"), InventoryItem(id="bad", name="Bad", quantity=0),
        ])
        _, result = handler.report(ErrorKind.DATA_CORRUPTION, Severity.HIGH, "corrupt",
                                   context={"actor": actor, "inventory": inventory})
        assert result.strategy == RecoveryStrategy.RESET_STATE
        assert result.actor.stats["strength"] == 1
        assert result.actor.level == 1
        assert [i.id for i in result.inventory.items] == ["ok"]

    def test_terminate(self, handler):
        _, result = handler.report(ErrorKind.SYSTEM, Severity.CRITICAL, "fatal")
        assert result.success is False
        assert result.strategy == RecoveryStrategy.TERMINATE

    def test_development_mode_raises(self):
        config = EngineConfig().updated(debug={"development_mode": True})
        handler = ErrorHandler(config)
        with pytest.raises(EngineFault):
            handler.report(ErrorKind.EVENT_PROCESSING, Severity.HIGH, "boom")
        # Lower severities still recover
        _, result = handler.report(ErrorKind.VALIDATION, Severity.LOW, "meh")
        assert result.success is True


class TestReporting:
    def test_ring_buffer_newest_first(self):
        handler = ErrorHandler(EngineConfig().updated(safety={"error_log_size": 3}))
        for i in range(5):
            handler.create_error(ErrorKind.VALIDATION, Severity.LOW, f"e{i}")
        assert [e.message for e in handler.get_error_log()] == ["e4", "e3", "e2"]
        assert [e.message for e in handler.get_error_log(1)] == ["e4"]

    def test_stats_and_clear(self, handler):
        handler.create_error(ErrorKind.VALIDATION, Severity.LOW, "a")
        handler.create_error(ErrorKind.SYSTEM, Severity.LOW, "b")
        stats = handler.get_error_stats()
        assert stats["validation"] == 1 and stats["system"] == 1
        handler.clear_error_log()
        assert handler.get_error_log() == []

    def test_health(self, handler):
        assert handler.get_system_health()["status"] == "healthy"
        for _ in range(3):
            handler.create_error(ErrorKind.EVENT_PROCESSING, Severity.HIGH, "x")
        assert handler.get_system_health()["status"] == "warning"
        handler.create_error(ErrorKind.SYSTEM, Severity.CRITICAL, "y")
        health = handler.get_system_health()
        assert health["status"] == "critical"
        assert health["critical_errors"] == 1

    def test_callbacks(self):
        seen, notes, recoveries = [], [], []
        handler = ErrorHandler(
            on_error=seen.append,
            on_recovery=lambda error, result: recoveries.append(result.strategy),
            on_notification=lambda message, error_id, severity: notes.append((error_id, severity)),
        )
        error, _ = handler.report(ErrorKind.VALIDATION, Severity.MEDIUM, "bad data")
        assert seen == [error]
        assert recoveries == [RecoveryStrategy.SKIP]
        assert notes == [(error.id, Severity.MEDIUM)]
        assert error.id in ErrorHandler.user_message(error)

    def test_failing_callback_does_not_propagate(self):
        def explode(error):
            raise RuntimeError("callback bug")
        handler = ErrorHandler(on_error=explode)
        handler.create_error(ErrorKind.VALIDATION, Severity.LOW, "a")
        assert len(handler.get_error_log()) == 1


def test_safe_helpers_do_not_mutate():
    actor = create_character("hero", "Hero")
    actor.stats["agility"] = 0
    fixed = safe_actor(actor)
    assert fixed.stats["agility"] == 1
    assert actor.stats["agility"] == 0
    inv = Inventory(owner_id="hero", items=[InventoryItem(id="x", name="", quantity=1)])
    assert safe_inventory(inv).items == []
    assert len(inv.items) == 1
