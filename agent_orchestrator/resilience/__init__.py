from .circuit_breaker import CircuitBreaker, CircuitConfig, CircuitState, CircuitStats
from .retry import RetryPolicy, default_is_retryable
from .executor import (
    ResilientOperationExecutor,
    SPAWN_AGENT,
    DISPATCH_TASK,
    TERMINATE_AGENT,
    PERSIST_EVENT,
)

__all__ = [
    "CircuitBreaker",
    "CircuitConfig",
    "CircuitState",
    "CircuitStats",
    "RetryPolicy",
    "default_is_retryable",
    "ResilientOperationExecutor",
    "SPAWN_AGENT",
    "DISPATCH_TASK",
    "TERMINATE_AGENT",
    "PERSIST_EVENT",
]
