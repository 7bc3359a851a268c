from .monitor import (
    ParallelExecutionMonitor,
    LayerOutcome,
    TaskExecutionResult,
    BLOCKED_CANCELLED,
    BLOCKED_DEPENDENCY,
)
from .coordinator import Orchestrator, validate_agent_name

__all__ = [
    "ParallelExecutionMonitor",
    "LayerOutcome",
    "TaskExecutionResult",
    "BLOCKED_CANCELLED",
    "BLOCKED_DEPENDENCY",
    "Orchestrator",
    "validate_agent_name",
]
