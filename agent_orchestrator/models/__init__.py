from .task import (
    TaskStatus,
    TaskPriority,
    TERMINAL_TASK_STATUSES,
    Task,
)
from .agent import (
    AgentStatus,
    Complexity,
    ConfigPriority,
    DeveloperConfig,
    ArchitectConfig,
    QualityConfig,
    ProcessConfig,
    AgentConfig,
    Agent,
    SpawnAgentRequest,
    AgentStats,
    AgentCapacity,
)
from .assignment import (
    ExecutionLayer,
    AssignmentCriteria,
    Assignment,
    UnassignedReason,
    UnassignedTask,
    SchedulingResult,
    TaskFailure,
    LayerSummary,
    RunResult,
)
from .events import EventType, Event

__all__ = [
    # Task
    "TaskStatus",
    "TaskPriority",
    "TERMINAL_TASK_STATUSES",
    "Task",
    # Agent
    "AgentStatus",
    "Complexity",
    "ConfigPriority",
    "DeveloperConfig",
    "ArchitectConfig",
    "QualityConfig",
    "ProcessConfig",
    "AgentConfig",
    "Agent",
    "SpawnAgentRequest",
    "AgentStats",
    "AgentCapacity",
    # Scheduling
    "ExecutionLayer",
    "AssignmentCriteria",
    "Assignment",
    "UnassignedReason",
    "UnassignedTask",
    "SchedulingResult",
    "TaskFailure",
    "LayerSummary",
    "RunResult",
    # Events
    "EventType",
    "Event",
]
