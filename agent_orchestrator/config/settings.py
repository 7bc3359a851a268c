"""
Settings - orchestrator configuration

Values come from the environment (optionally a .env file via python-dotenv).
Scoring weights and breaker thresholds live here instead of in the code that
uses them; none of the defaults is a load-tested optimum.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from ..errors import ConfigurationError


@dataclass(frozen=True)
class BreakerSettings:
    failure_threshold: int = 5
    reset_timeout_ms: float = 60000


@dataclass(frozen=True)
class RetrySettings:
    max_attempts: int = 3
    base_delay_ms: float = 1000
    max_delay_ms: float = 30000
    jitter_ms: float = 1000


@dataclass(frozen=True)
class OrchestratorSettings:
    """Top-level orchestrator configuration"""
    max_concurrent_agents: int = 5
    capability_weight: float = 0.7
    workload_weight: float = 0.3
    min_capability_score: float = 0.0
    default_agent_capacity: int = 1

    breaker: BreakerSettings = field(default_factory=BreakerSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)

    repository_backend: str = "memory"
    storage_dir: str = "./agent_storage"
    redis_url: str = "redis://localhost:6379/0"
    event_queue_size: int = 10000
    http_port: int = 8000
    log_level: str = "INFO"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError on the first invalid value"""
        if self.max_concurrent_agents < 1:
            raise ConfigurationError("max_concurrent_agents must be >= 1", "max_concurrent_agents")
        if self.default_agent_capacity < 1:
            raise ConfigurationError("default_agent_capacity must be >= 1", "default_agent_capacity")
        if self.capability_weight < 0 or self.workload_weight < 0:
            raise ConfigurationError("scoring weights must be non-negative", "capability_weight")
        if self.capability_weight <= self.workload_weight:
            raise ConfigurationError(
                "capability_weight must be greater than workload_weight",
                "capability_weight"
            )
        if not 0.0 <= self.min_capability_score < 1.0:
            raise ConfigurationError("min_capability_score must be in [0, 1)", "min_capability_score")
        if self.breaker.failure_threshold < 1:
            raise ConfigurationError("failure_threshold must be >= 1", "failure_threshold")
        if self.breaker.reset_timeout_ms < 0:
            raise ConfigurationError("reset_timeout_ms must be >= 0", "reset_timeout_ms")
        if self.retry.max_attempts < 1:
            raise ConfigurationError("retry max_attempts must be >= 1", "max_attempts")
        if self.retry.base_delay_ms < 0 or self.retry.max_delay_ms < 0 or self.retry.jitter_ms < 0:
            raise ConfigurationError("retry delays must be non-negative", "base_delay_ms")
        if self.event_queue_size < 1:
            raise ConfigurationError("event_queue_size must be >= 1", "event_queue_size")
        if self.repository_backend not in ("memory", "file", "redis"):
            raise ConfigurationError(
                f"Unknown repository backend: {self.repository_backend}",
                "repository_backend"
            )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", name)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}", name)


def load_settings(env_file: Optional[str] = None) -> OrchestratorSettings:
    """
    Build settings from the environment.

    Args:
        env_file: optional .env path; defaults to python-dotenv's lookup

    Returns:
        Validated OrchestratorSettings
    """
    load_dotenv(env_file)

    return OrchestratorSettings(
        max_concurrent_agents=_env_int("ORCH_MAX_CONCURRENT_AGENTS", 5),
        capability_weight=_env_float("ORCH_CAPABILITY_WEIGHT", 0.7),
        workload_weight=_env_float("ORCH_WORKLOAD_WEIGHT", 0.3),
        min_capability_score=_env_float("ORCH_MIN_CAPABILITY_SCORE", 0.0),
        default_agent_capacity=_env_int("ORCH_DEFAULT_AGENT_CAPACITY", 1),
        breaker=BreakerSettings(
            failure_threshold=_env_int("ORCH_CB_FAILURE_THRESHOLD", 5),
            reset_timeout_ms=_env_float("ORCH_CB_RESET_TIMEOUT_MS", 60000),
        ),
        retry=RetrySettings(
            max_attempts=_env_int("ORCH_RETRY_MAX_ATTEMPTS", 3),
            base_delay_ms=_env_float("ORCH_RETRY_BASE_DELAY_MS", 1000),
            max_delay_ms=_env_float("ORCH_RETRY_MAX_DELAY_MS", 30000),
            jitter_ms=_env_float("ORCH_RETRY_JITTER_MS", 1000),
        ),
        repository_backend=os.getenv("ORCH_REPOSITORY_BACKEND", "memory"),
        storage_dir=os.getenv("ORCH_STORAGE_DIR", "./agent_storage"),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        event_queue_size=_env_int("ORCH_EVENT_QUEUE_SIZE", 10000),
        http_port=_env_int("HTTP_PORT", 8000),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
