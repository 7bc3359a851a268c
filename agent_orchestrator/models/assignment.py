"""
Scheduling and execution records.

These are ephemeral value objects produced per scheduling pass or per layer;
none of them is persisted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .task import Task


@dataclass(frozen=True)
class ExecutionLayer:
    """Tasks with no dependency edges among them, in scheduling preference order"""
    index: int
    tasks: Tuple[Task, ...]

    @property
    def task_ids(self) -> List[str]:
        return [t.id for t in self.tasks]

    def __len__(self) -> int:
        return len(self.tasks)


@dataclass(frozen=True)
class AssignmentCriteria:
    """The two components (and their weights) that produced an assignment score"""
    capability_match: float
    workload_balance: float
    capability_weight: float
    workload_weight: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "capability_match": self.capability_match,
            "workload_balance": self.workload_balance,
            "capability_weight": self.capability_weight,
            "workload_weight": self.workload_weight,
        }


@dataclass(frozen=True)
class Assignment:
    task: Task
    agent_id: str
    score: float
    criteria: AssignmentCriteria

    @property
    def task_id(self) -> str:
        return self.task.id


class UnassignedReason(str, Enum):
    NO_CAPABLE_AGENT = "no_capable_agent"
    NO_CAPACITY = "no_capacity"


@dataclass(frozen=True)
class UnassignedTask:
    task: Task
    reason: UnassignedReason

    @property
    def task_id(self) -> str:
        return self.task.id


@dataclass
class SchedulingResult:
    assignments: List[Assignment] = field(default_factory=list)
    unassigned: List[UnassignedTask] = field(default_factory=list)
    # Waiting on the concurrent-reservation limit; replanned after a release
    deferred: List[Task] = field(default_factory=list)


@dataclass
class TaskFailure:
    task_id: str
    agent_id: Optional[str]
    error: Dict[str, Any]


@dataclass
class LayerSummary:
    index: int
    completed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    blocked: List[str] = field(default_factory=list)
    unassigned: List[str] = field(default_factory=list)
    duration_ms: float = 0.0
    parallel_speedup: float = 1.0
    groups: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "completed": list(self.completed),
            "failed": list(self.failed),
            "blocked": list(self.blocked),
            "unassigned": list(self.unassigned),
            "duration_ms": round(self.duration_ms, 2),
            "parallel_speedup": round(self.parallel_speedup, 2),
            "groups": {k: list(v) for k, v in self.groups.items()},
        }


@dataclass
class RunResult:
    """What the caller gets back from Orchestrator.run; partial progress is never lost"""
    succeeded: List[str] = field(default_factory=list)
    unassigned: List[UnassignedTask] = field(default_factory=list)
    failed: List[TaskFailure] = field(default_factory=list)
    blocked: List[str] = field(default_factory=list)
    layers: List[LayerSummary] = field(default_factory=list)
    results: Dict[str, Any] = field(default_factory=dict)
    cancelled: bool = False
    # Cancel-tolerant tasks blocked by cancellation; listed in `blocked` too
    tolerated: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        lost = set(self.blocked) - set(self.tolerated)
        return not (self.unassigned or self.failed or lost)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "succeeded": list(self.succeeded),
            "unassigned": [
                {"task_id": u.task_id, "reason": u.reason.value}
                for u in self.unassigned
            ],
            "failed": [
                {"task_id": f.task_id, "agent_id": f.agent_id, "error": f.error}
                for f in self.failed
            ],
            "blocked": list(self.blocked),
            "layers": [layer.to_dict() for layer in self.layers],
            "cancelled": self.cancelled,
            "tolerated": list(self.tolerated),
        }
