"""
Circuit Breaker - fail-fast guard per operation class

One circuit exists per operation class ("spawn-agent", "dispatch-task", ...),
not per agent, so a runtime that is down trips the breaker for every target.

States:
    CLOSED     operations run; consecutive failures are counted
    OPEN       calls are rejected with CircuitOpenError until the reset timeout
    HALF_OPEN  a single trial call is let through
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..errors import CircuitOpenError

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit state"""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitStats:
    """Per operation class counters"""
    failure_count: int = 0
    success_count: int = 0
    rejected_count: int = 0
    total_calls: int = 0
    last_failure_time: Optional[float] = None
    last_success_time: Optional[float] = None


@dataclass(frozen=True)
class CircuitConfig:
    """Circuit breaker settings"""
    failure_threshold: int = 5
    reset_timeout_ms: float = 60000


StateListener = Callable[[str, CircuitState, CircuitState], None]


class CircuitBreaker:
    """
    Circuit breaker registry keyed by operation class.

    The executor calls `before_call` ahead of each guarded attempt and then
    exactly one of `record_success` / `record_failure`, passing back the
    generation `before_call` returned. The generation changes on every state
    transition; an outcome from an older generation only updates counters.

    Args:
        config: thresholds shared by every operation class
        clock: monotonic clock in seconds; injectable for tests
        on_state_change: called with (operation_class, old, new)
    """

    def __init__(
        self,
        config: Optional[CircuitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Optional[StateListener] = None,
    ):
        self._config = config or CircuitConfig()
        self._clock = clock
        self._on_state_change = on_state_change
        self._circuits: Dict[str, CircuitState] = {}
        self._stats: Dict[str, CircuitStats] = {}
        self._trial_in_flight: Dict[str, bool] = {}
        self._generation: Dict[str, int] = {}

    @property
    def config(self) -> CircuitConfig:
        return self._config

    def get_state(self, operation_class: str) -> CircuitState:
        if operation_class not in self._circuits:
            self._circuits[operation_class] = CircuitState.CLOSED
            self._stats[operation_class] = CircuitStats()
        return self._circuits[operation_class]

    def get_stats(self, operation_class: str) -> CircuitStats:
        if operation_class not in self._stats:
            self._stats[operation_class] = CircuitStats()
        return self._stats[operation_class]

    def get_generation(self, operation_class: str) -> int:
        return self._generation.get(operation_class, 0)

    def before_call(self, operation_class: str) -> int:
        """
        Admit or reject one call.

        Returns:
            The generation the call was admitted in

        Raises:
            CircuitOpenError: the circuit is OPEN and the reset timeout has not
                elapsed, or a HALF_OPEN trial is already running
        """
        state = self.get_state(operation_class)
        stats = self.get_stats(operation_class)

        if state == CircuitState.OPEN:
            if self._should_attempt_reset(operation_class):
                self._transition(operation_class, CircuitState.HALF_OPEN)
                state = CircuitState.HALF_OPEN
            else:
                stats.rejected_count += 1
                raise CircuitOpenError(operation_class, self._retry_after_ms(operation_class))

        if state == CircuitState.HALF_OPEN:
            if self._trial_in_flight.get(operation_class):
                stats.rejected_count += 1
                raise CircuitOpenError(operation_class)
            self._trial_in_flight[operation_class] = True

        stats.total_calls += 1
        return self.get_generation(operation_class)

    def record_success(self, operation_class: str, generation: Optional[int] = None) -> None:
        stats = self.get_stats(operation_class)
        stats.success_count += 1
        if self._is_stale(operation_class, generation):
            logger.debug(f"[CircuitBreaker] {operation_class}: ignoring success from generation {generation}")
            return
        stats.failure_count = 0
        stats.last_success_time = self._clock()

        if self.get_state(operation_class) == CircuitState.HALF_OPEN:
            self._trial_in_flight[operation_class] = False
            self._transition(operation_class, CircuitState.CLOSED)
            logger.info(f"[CircuitBreaker] {operation_class}: recovered")

    def record_failure(self, operation_class: str, generation: Optional[int] = None) -> None:
        stats = self.get_stats(operation_class)
        if self._is_stale(operation_class, generation):
            logger.debug(f"[CircuitBreaker] {operation_class}: ignoring failure from generation {generation}")
            return
        stats.failure_count += 1
        stats.last_failure_time = self._clock()

        state = self.get_state(operation_class)

        if state == CircuitState.CLOSED:
            if stats.failure_count >= self._config.failure_threshold:
                self._transition(operation_class, CircuitState.OPEN)
                logger.warning(
                    f"[CircuitBreaker] {operation_class}: opened after "
                    f"{stats.failure_count} consecutive failures"
                )

        elif state == CircuitState.HALF_OPEN:
            self._trial_in_flight[operation_class] = False
            self._transition(operation_class, CircuitState.OPEN)
            logger.warning(f"[CircuitBreaker] {operation_class}: trial call failed")

    def reset(self, operation_class: str) -> None:
        """Force one circuit back to CLOSED"""
        old = self._circuits.get(operation_class, CircuitState.CLOSED)
        self._circuits[operation_class] = CircuitState.CLOSED
        self._stats[operation_class] = CircuitStats()
        self._trial_in_flight.pop(operation_class, None)
        self._generation[operation_class] = self.get_generation(operation_class) + 1
        if old != CircuitState.CLOSED:
            self._notify(operation_class, old, CircuitState.CLOSED)
        logger.info(f"[CircuitBreaker] {operation_class}: reset to CLOSED")

    def reset_all(self) -> None:
        for operation_class in list(self._circuits):
            self.reset(operation_class)

    def get_summary(self) -> Dict[str, Any]:
        return {
            operation_class: {
                "state": state.value,
                "stats": {
                    "failure_count": self.get_stats(operation_class).failure_count,
                    "success_count": self.get_stats(operation_class).success_count,
                    "rejected_count": self.get_stats(operation_class).rejected_count,
                    "total_calls": self.get_stats(operation_class).total_calls,
                },
                "retry_after_ms": self._retry_after_ms(operation_class)
                if state == CircuitState.OPEN else None,
            }
            for operation_class, state in self._circuits.items()
        }

    # =========================================================================
    # Internal
    # =========================================================================

    def _is_stale(self, operation_class: str, generation: Optional[int]) -> bool:
        return generation is not None and generation != self.get_generation(operation_class)

    def _elapsed_ms(self, operation_class: str) -> Optional[float]:
        last = self.get_stats(operation_class).last_failure_time
        if last is None:
            return None
        return (self._clock() - last) * 1000

    def _should_attempt_reset(self, operation_class: str) -> bool:
        elapsed = self._elapsed_ms(operation_class)
        if elapsed is None:
            return True
        return elapsed > self._config.reset_timeout_ms

    def _retry_after_ms(self, operation_class: str) -> Optional[float]:
        elapsed = self._elapsed_ms(operation_class)
        if elapsed is None:
            return None
        return max(0.0, self._config.reset_timeout_ms - elapsed)

    def _transition(self, operation_class: str, new_state: CircuitState) -> None:
        old = self._circuits.get(operation_class, CircuitState.CLOSED)
        self._circuits[operation_class] = new_state
        if old != new_state:
            self._generation[operation_class] = self.get_generation(operation_class) + 1
            logger.info(f"[CircuitBreaker] {operation_class}: {old.value} -> {new_state.value}")
            self._notify(operation_class, old, new_state)

    def _notify(self, operation_class: str, old: CircuitState, new: CircuitState) -> None:
        if self._on_state_change is not None:
            self._on_state_change(operation_class, old, new)
