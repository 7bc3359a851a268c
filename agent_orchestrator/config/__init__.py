from .settings import (
    BreakerSettings,
    RetrySettings,
    OrchestratorSettings,
    load_settings,
)

__all__ = [
    "BreakerSettings",
    "RetrySettings",
    "OrchestratorSettings",
    "load_settings",
]
