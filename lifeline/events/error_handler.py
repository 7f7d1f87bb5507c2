"""Error classification and recovery for the event engine.

Every failure becomes an :class:`EngineError` record with a kind, a severity
and a recovery strategy picked from a fixed lookup table. Records are kept in
a capped ring buffer (newest first) that feeds the health summary.
"""
from __future__ import annotations
import copy
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from ..config import EngineConfig
from ..core.state import ActorState, Inventory, STAT_FLOOR
from ..errors import EngineFault

logger = logging.getLogger(__name__)

HEALTH_WINDOW = 20
RETRY_BASE_DELAY_MS = 100


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    DATA_CORRUPTION = "data_corruption"
    EVENT_PROCESSING = "event_processing"
    CONDITION_EVALUATION = "condition_evaluation"
    OUTCOME_PROCESSING = "outcome_processing"
    SYSTEM = "system"
    RECOVERY = "recovery"

    @property
    def category(self) -> str:
        """Coarse taxonomy: VALIDATION, PROCESSING, SYSTEM or RECOVERY."""
        if self in (ErrorKind.VALIDATION, ErrorKind.DATA_CORRUPTION, ErrorKind.CONDITION_EVALUATION):
            return "VALIDATION"
        if self in (ErrorKind.EVENT_PROCESSING, ErrorKind.OUTCOME_PROCESSING):
            return "PROCESSING"
        if self == ErrorKind.SYSTEM:
            return "SYSTEM"
        return "RECOVERY"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecoveryStrategy(str, Enum):
    RETRY = "retry"
    SKIP = "skip"
    FALLBACK = "fallback"
    RESET_STATE = "reset_state"
    TERMINATE = "terminate"


_LOG_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}

_USER_MESSAGES = {
    Severity.CRITICAL: "A critical problem occurred (ID: {id}). The simulation may not be able to continue; save your progress and restart.",
    Severity.HIGH: "A serious problem occurred (ID: {id}). Some features may be unavailable.",
    Severity.MEDIUM: "The simulation hit a snag (ID: {id}) and tried to recover automatically.",
    Severity.LOW: "A minor problem occurred (ID: {id}) and was handled automatically.",
}


def default_strategy(kind: ErrorKind, severity: Severity) -> RecoveryStrategy:
    """Fixed (kind, severity) -> strategy lookup."""
    if severity == Severity.LOW:
        return RecoveryStrategy.SKIP
    if severity == Severity.MEDIUM:
        if kind in (ErrorKind.VALIDATION, ErrorKind.CONDITION_EVALUATION):
            return RecoveryStrategy.SKIP
        if kind in (ErrorKind.EVENT_PROCESSING, ErrorKind.OUTCOME_PROCESSING):
            return RecoveryStrategy.FALLBACK
        return RecoveryStrategy.RETRY
    if severity == Severity.HIGH:
        if kind == ErrorKind.DATA_CORRUPTION:
            return RecoveryStrategy.RESET_STATE
        if kind == ErrorKind.SYSTEM:
            return RecoveryStrategy.FALLBACK
        return RecoveryStrategy.RETRY
    return RecoveryStrategy.TERMINATE


@dataclass
class EngineError:
    """Structured record of a failure."""
    kind: ErrorKind
    severity: Severity
    message: str
    strategy: RecoveryStrategy
    details: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"err_{uuid.uuid4().hex[:12]}")
    timestamp: float = field(default_factory=time.time)

    @property
    def event_id(self) -> Optional[str]:
        return self.context.get("event_id")


@dataclass
class RecoveryResult:
    success: bool
    strategy: RecoveryStrategy
    message: str
    actor: Optional[ActorState] = None
    inventory: Optional[Inventory] = None
    should_retry: bool = False
    retry_delay_ms: int = 0
    fallback_event_id: Optional[str] = None


class ErrorHandler:
    """Creates, records and recovers from engine errors.

    Args:
        config: engine configuration (retry bound, buffer size, fallbacks, dev mode)
        strategy_overrides: per-instance replacements of the default lookup
        on_error: called with every new error
        on_recovery: called with (error, result) after each recovery
        on_notification: called with (user message, error id, severity)
    """

    def __init__(self, config: Optional[EngineConfig] = None,
                 strategy_overrides: Optional[Dict[Tuple[ErrorKind, Severity], RecoveryStrategy]] = None,
                 on_error: Optional[Callable[[EngineError], None]] = None,
                 on_recovery: Optional[Callable[[EngineError, RecoveryResult], None]] = None,
                 on_notification: Optional[Callable[[str, str, Severity], None]] = None):
        self.config = config or EngineConfig()
        self.strategy_overrides = dict(strategy_overrides or {})
        self.on_error = on_error
        self.on_recovery = on_recovery
        self.on_notification = on_notification
        self._log: Deque[EngineError] = deque(maxlen=self.config.safety.error_log_size)
        self._retry_counts: Dict[str, int] = {}

    def strategy_for(self, kind: ErrorKind, severity: Severity) -> RecoveryStrategy:
        return self.strategy_overrides.get((kind, severity)) or default_strategy(kind, severity)

    def create_error(self, kind: ErrorKind, severity: Severity, message: str,
                     details: Optional[str] = None,
                     context: Optional[Dict[str, Any]] = None) -> EngineError:
        """Build an error record, log it and notify the callbacks."""
        error = EngineError(
            kind=kind,
            severity=severity,
            message=message,
            strategy=self.strategy_for(kind, severity),
            details=details,
            context=dict(context or {}),
        )
        self._log.appendleft(error)
        logger.log(_LOG_LEVELS[severity], f"[{kind.value}/{severity.value}] {message} ({error.id})")

        if self.on_error:
            try:
                self.on_error(error)
            except Exception as e:
                logger.error(f"on_error callback failed: {e}")

        if self.on_notification and not self.config.debug.development_mode:
            try:
                self.on_notification(self.user_message(error), error.id, severity)
            except Exception as e:
                logger.error(f"on_notification callback failed: {e}")
        return error

    def handle_error(self, error: EngineError) -> RecoveryResult:
        """Run the recovery strategy of ``error``.

        Raises:
            EngineFault: in development mode, for HIGH and CRITICAL errors
        """
        if self.config.debug.development_mode and error.severity in (Severity.HIGH, Severity.CRITICAL):
            raise EngineFault(error.message, error)

        strategy = error.strategy
        if strategy == RecoveryStrategy.RETRY:
            result = self._retry(error)
        elif strategy == RecoveryStrategy.SKIP:
            result = RecoveryResult(True, strategy, "Skipped the failing operation")
        elif strategy == RecoveryStrategy.FALLBACK:
            result = self._fallback(error)
        elif strategy == RecoveryStrategy.RESET_STATE:
            result = self._reset_state(error)
        else:
            result = RecoveryResult(False, RecoveryStrategy.TERMINATE, "Error is unrecoverable, processing stopped")

        if self.on_recovery:
            try:
                self.on_recovery(error, result)
            except Exception as e:
                logger.error(f"on_recovery callback failed: {e}")
        return result

    def report(self, kind: ErrorKind, severity: Severity, message: str,
               details: Optional[str] = None,
               context: Optional[Dict[str, Any]] = None) -> Tuple[EngineError, RecoveryResult]:
        """Shortcut for create_error followed by handle_error."""
        error = self.create_error(kind, severity, message, details, context)
        return error, self.handle_error(error)

    def _retry(self, error: EngineError) -> RecoveryResult:
        key = f"{error.kind.value}-{error.event_id or 'unknown'}"
        attempts = self._retry_counts.get(key, 0)
        limit = self.config.safety.max_retry_attempts
        if attempts >= limit:
            self._retry_counts.pop(key, None)
            logger.warning(f"Retry limit reached for {key} ({limit}), giving up")
            return RecoveryResult(False, RecoveryStrategy.RETRY,
                                  f"Retry limit ({limit}) reached, giving up")
        self._retry_counts[key] = attempts + 1
        # Backoff is only reported, the engine never sleeps
        delay = RETRY_BASE_DELAY_MS * 2 ** attempts
        return RecoveryResult(True, RecoveryStrategy.RETRY, f"Retry attempt {attempts + 1}",
                              should_retry=True, retry_delay_ms=delay)

    def retry_count(self, kind: ErrorKind, event_id: Optional[str]) -> int:
        return self._retry_counts.get(f"{kind.value}-{event_id or 'unknown'}", 0)

    def clear_retry(self, kind: ErrorKind, event_id: Optional[str]):
        """Forget the retry counter once the operation succeeded."""
        self._retry_counts.pop(f"{kind.value}-{event_id or 'unknown'}", None)

    def _fallback(self, error: EngineError) -> RecoveryResult:
        fallbacks = self.config.safety.fallback_events
        if not fallbacks:
            return RecoveryResult(False, RecoveryStrategy.FALLBACK, "No fallback event available")
        fallback = fallbacks[0]
        return RecoveryResult(
            True, RecoveryStrategy.FALLBACK,
            f"Using fallback event: {fallback.get('name', fallback.get('id'))}",
            actor=error.context.get("actor"),
            inventory=error.context.get("inventory"),
            fallback_event_id=fallback.get("id"),
        )

    def _reset_state(self, error: EngineError) -> RecoveryResult:
        actor = error.context.get("actor")
        inventory = error.context.get("inventory")
        return RecoveryResult(
            True, RecoveryStrategy.RESET_STATE, "State reset to safe values",
            actor=safe_actor(actor) if actor is not None else None,
            inventory=safe_inventory(inventory) if inventory is not None else None,
        )

    # --- Reporting ---

    def get_error_log(self, limit: Optional[int] = None) -> List[EngineError]:
        errors = list(self._log)
        return errors[:limit] if limit is not None else errors

    def get_error_stats(self) -> Dict[str, int]:
        stats = {kind.value: 0 for kind in ErrorKind}
        for error in self._log:
            stats[error.kind.value] += 1
        return stats

    def clear_error_log(self):
        self._log.clear()
        self._retry_counts.clear()

    def get_system_health(self) -> Dict[str, Any]:
        """Aggregate health of the last errors for the host UI."""
        recent = self.get_error_log(HEALTH_WINDOW)
        critical = sum(1 for e in recent if e.severity == Severity.CRITICAL)
        high = sum(1 for e in recent if e.severity == Severity.HIGH)

        status = "healthy"
        recommendations = []
        if critical > 0:
            status = "critical"
            recommendations.append("Critical errors present: restart the event system")
        elif high > 2 or len(recent) > 10:
            status = "warning"
            recommendations.append("High error rate: review the event definitions")
        if any(e.kind == ErrorKind.DATA_CORRUPTION for e in recent):
            recommendations.append("Data corruption detected: validate stored snapshots")

        return {
            "status": status,
            "recent_errors": len(recent),
            "critical_errors": critical,
            "recommendations": recommendations,
        }

    @staticmethod
    def user_message(error: EngineError) -> str:
        return _USER_MESSAGES[error.severity].format(id=error.id)


def safe_actor(actor: ActorState) -> ActorState:
    """Copy of ``actor`` with stats and level clamped to their floors."""
    fixed = actor.clone()
    fixed.stats = {k: max(STAT_FLOOR, v if isinstance(v, int) else STAT_FLOOR) for k, v in fixed.stats.items()}
    fixed.level = max(1, fixed.level)
    return fixed


def safe_inventory(inventory: Inventory) -> Inventory:
    """Copy of ``inventory`` without malformed stacks."""
    fixed = copy.deepcopy(inventory)
    fixed.items = [
        item for item in fixed.items
        if item.id and item.name and item.type
        and isinstance(item.quantity, int) and item.quantity > 0
    ]
    return fixed
