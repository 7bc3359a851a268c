"""
Resilient Operation Executor - circuit breaker + retry around agent operations

Every agent-lifecycle call (spawn, dispatch, terminate, event persistence)
goes through `execute` with an operation class. The retry loop runs inside a
single breaker attempt: the breaker sees one success or one failure per call.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from ..config import OrchestratorSettings
from ..errors import RetryExhaustedError, CircuitOpenError
from ..metrics import MetricsCollector
from ..models.events import EventType
from .circuit_breaker import CircuitBreaker, CircuitConfig, CircuitState
from .retry import ErrorClassifier, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

SPAWN_AGENT = "spawn-agent"
DISPATCH_TASK = "dispatch-task"
TERMINATE_AGENT = "terminate-agent"
PERSIST_EVENT = "persist-event"


class ResilientOperationExecutor:
    """
    Circuit breaker + exponential backoff wrapper.

    Example:
        executor = ResilientOperationExecutor()
        handle = await executor.execute(lambda: runtime.spawn(request), SPAWN_AGENT)

    Args:
        breaker: circuit registry; built from `breaker_config` when omitted
        retry_policy: backoff settings
        sleep: coroutine taking seconds; injectable for tests
        metrics: optional collector for per operation class counts
        event_bus: optional bus receiving CIRCUIT_STATE_CHANGED
    """

    def __init__(
        self,
        breaker: Optional[CircuitBreaker] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        metrics: Optional[MetricsCollector] = None,
        event_bus=None,
        breaker_config: Optional[CircuitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._event_bus = event_bus
        self._breaker = breaker or CircuitBreaker(
            breaker_config, clock=clock, on_state_change=self._publish_state_change
        )
        self._retry = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._metrics = metrics
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: OrchestratorSettings,
        metrics: Optional[MetricsCollector] = None,
        event_bus=None,
        **kwargs,
    ) -> "ResilientOperationExecutor":
        breaker_config = CircuitConfig(
            failure_threshold=settings.breaker.failure_threshold,
            reset_timeout_ms=settings.breaker.reset_timeout_ms,
        )
        retry_policy = RetryPolicy(
            max_attempts=settings.retry.max_attempts,
            base_delay_ms=settings.retry.base_delay_ms,
            max_delay_ms=settings.retry.max_delay_ms,
            jitter_ms=settings.retry.jitter_ms,
        )
        return cls(
            retry_policy=retry_policy,
            metrics=metrics,
            event_bus=event_bus,
            breaker_config=breaker_config,
            **kwargs,
        )

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_class: str,
        is_retryable: Optional[ErrorClassifier] = None,
    ) -> T:
        """
        Run `operation` under the breaker for `operation_class`.

        Args:
            operation: zero-argument coroutine factory, called once per attempt
            operation_class: breaker key, e.g. SPAWN_AGENT
            is_retryable: optional caller classification of errors

        Returns:
            The operation's result

        Raises:
            CircuitOpenError: the circuit rejected the call; operation not invoked
            RetryExhaustedError: every attempt failed with a retryable error
            Exception: a non-retryable error, unchanged
        """
        started = self._clock()

        try:
            generation = self._breaker.before_call(operation_class)
        except CircuitOpenError:
            logger.warning(f"[Executor] {operation_class}: rejected, circuit open")
            self._record(operation_class, "rejected", 0, started)
            raise

        attempt = 0
        try:
            while True:
                attempt += 1
                try:
                    result = await operation()
                except Exception as e:
                    if not self._retry.is_retryable(e, is_retryable):
                        logger.warning(
                            f"[Executor] {operation_class}: non-retryable error "
                            f"on attempt {attempt}: {e}"
                        )
                        self._breaker.record_failure(operation_class, generation)
                        self._record(operation_class, "failure", attempt, started)
                        raise

                    if not self._retry.has_attempts_left(attempt):
                        logger.error(
                            f"[Executor] {operation_class}: giving up after {attempt} attempts: {e}"
                        )
                        self._breaker.record_failure(operation_class, generation)
                        self._record(operation_class, "failure", attempt, started)
                        raise RetryExhaustedError(operation_class, attempt, e) from e

                    delay_ms = self._retry.delay_ms(attempt)
                    logger.info(
                        f"[Executor] {operation_class}: attempt {attempt} failed ({e}), "
                        f"retrying in {delay_ms:.0f}ms"
                    )
                    if self._metrics:
                        self._metrics.increment("operation_retries_total", 1, {"operation_class": operation_class})
                    await self._sleep(delay_ms / 1000)
                    continue

                self._breaker.record_success(operation_class, generation)
                self._record(operation_class, "success", attempt, started)
                return result
        except asyncio.CancelledError:
            # cancelled during the operation or the backoff sleep
            logger.warning(f"[Executor] {operation_class}: cancelled on attempt {attempt}")
            self._breaker.record_failure(operation_class, generation)
            self._record(operation_class, "failure", attempt, started)
            raise

    def get_circuit_state(self, operation_class: str) -> CircuitState:
        return self._breaker.get_state(operation_class)

    def get_summary(self) -> Dict[str, Any]:
        return self._breaker.get_summary()

    def _record(self, operation_class: str, outcome: str, attempts: int, started: float) -> None:
        if self._metrics:
            elapsed_ms = (self._clock() - started) * 1000
            self._metrics.record_operation(operation_class, outcome, attempts, elapsed_ms)

    def _publish_state_change(
        self,
        operation_class: str,
        old: CircuitState,
        new: CircuitState,
    ) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(
                EventType.CIRCUIT_STATE_CHANGED,
                {"operation_class": operation_class, "from": old.value, "to": new.value},
            )
