"""
Retry policy - exponential backoff with jitter
"""

import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..errors import OrchestratorError, NonRetryableError

ErrorClassifier = Callable[[BaseException], bool]


def default_is_retryable(error: BaseException) -> bool:
    """
    Errors are retryable unless tagged otherwise.

    OrchestratorError subclasses declare `retryable`; NonRetryableError wraps
    anything the caller knows to be permanent.
    """
    if isinstance(error, NonRetryableError):
        return False
    if isinstance(error, OrchestratorError):
        return error.retryable
    return True


@dataclass
class RetryPolicy:
    """
    delay(attempt) = min(base * 2**(attempt - 1) + jitter, max_delay)

    `attempt` is 1-based: the delay slept after the first failed attempt is
    delay(1). Jitter is uniform in [0, jitter_ms).
    """
    max_attempts: int = 3
    base_delay_ms: float = 1000
    max_delay_ms: float = 30000
    jitter_ms: float = 1000
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def delay_ms(self, attempt: int) -> float:
        jitter = self.rng.uniform(0, self.jitter_ms) if self.jitter_ms > 0 else 0.0
        backoff = self.base_delay_ms * (2 ** (attempt - 1))
        return min(backoff + jitter, self.max_delay_ms)

    def is_retryable(
        self,
        error: BaseException,
        classifier: Optional[ErrorClassifier] = None,
    ) -> bool:
        """NonRetryableError is final even when the caller supplies a classifier"""
        if isinstance(error, NonRetryableError):
            return False
        return (classifier or default_is_retryable)(error)

    def has_attempts_left(self, attempt: int) -> bool:
        return attempt < self.max_attempts
