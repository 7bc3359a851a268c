"""
Task Scheduler - per-layer assignment planning

For each task of a layer, in layer order:
    1. fetch the pool's available agents
    2. rank them (capability match and workload balance, weighted)
    3. reserve the best; on CapacityExceededError try the next one
A task that requires capabilities no agent has is unassigned for the layer.
Reservations held by a layer are capped by `max_concurrent_agents`; tasks
past the cap are deferred until a release.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Union

from ..config import OrchestratorSettings
from ..errors import AgentNotFoundError, CapacityExceededError
from ..models.agent import AgentStatus
from ..models.assignment import (
    Assignment,
    ExecutionLayer,
    SchedulingResult,
    UnassignedReason,
    UnassignedTask,
)
from ..models.events import EventType
from ..models.task import Task, TaskStatus
from .agent_pool import AgentPool
from .capability_matcher import CapabilityMatcher, ScoredCandidate

logger = logging.getLogger(__name__)


class TaskScheduler:
    """
    Assignment planner.

    Args:
        max_concurrent_agents: reservations a layer may hold at once
        min_capability_score: a candidate must match strictly more than this
            fraction of a task's required capabilities
        event_bus: optional EventBus for TASK_ASSIGNED
    """

    def __init__(
        self,
        max_concurrent_agents: int = 5,
        min_capability_score: float = 0.0,
        event_bus=None,
    ):
        self.max_concurrent_agents = max_concurrent_agents
        self.min_capability_score = min_capability_score
        self._event_bus = event_bus

    @classmethod
    def from_settings(cls, settings: OrchestratorSettings, event_bus=None) -> "TaskScheduler":
        return cls(
            max_concurrent_agents=settings.max_concurrent_agents,
            min_capability_score=settings.min_capability_score,
            event_bus=event_bus,
        )

    def plan_layer(
        self,
        layer: Union[ExecutionLayer, Sequence[Task]],
        pool: AgentPool,
        matcher: CapabilityMatcher,
        existing_assignments: Optional[Iterable[Assignment]] = None,
    ) -> SchedulingResult:
        """
        Plan assignments for the tasks of one layer.

        Args:
            layer: the layer, or the subset of its tasks still to place
            pool: agent pool; successful picks are reserved in it
            matcher: scoring, with weights fixed for the run
            existing_assignments: in-flight assignments of this layer; they
                count toward `max_concurrent_agents`

        Returns:
            SchedulingResult with assignments, unassigned and deferred tasks
        """
        tasks = layer.tasks if isinstance(layer, ExecutionLayer) else tuple(layer)
        held = len(list(existing_assignments or ()))
        result = SchedulingResult()

        for task in tasks:
            if held >= self.max_concurrent_agents:
                result.deferred.append(task)
                continue

            assignment = self._assign(task, pool, matcher)
            if isinstance(assignment, UnassignedTask):
                result.unassigned.append(assignment)
                continue

            result.assignments.append(assignment)
            held += 1

        if result.unassigned or result.deferred:
            logger.info(
                f"[Scheduler] planned {len(result.assignments)}, "
                f"unassigned {[u.task_id for u in result.unassigned]}, "
                f"deferred {[t.id for t in result.deferred]}"
            )
        return result

    def _assign(
        self,
        task: Task,
        pool: AgentPool,
        matcher: CapabilityMatcher,
    ) -> Union[Assignment, UnassignedTask]:
        candidates = [
            c for c in matcher.rank(pool.available_agents(), task)
            if self._is_viable(task, c)
        ]

        for candidate in candidates:
            try:
                pool.reserve(candidate.agent.id, task.id)
            except (CapacityExceededError, AgentNotFoundError) as e:
                logger.debug(f"[Scheduler] {task.id}: {candidate.agent.id} unavailable ({e.code})")
                continue

            task.status = TaskStatus.ASSIGNED
            task.assigned_agent_id = candidate.agent.id
            assignment = Assignment(
                task=task,
                agent_id=candidate.agent.id,
                score=candidate.score,
                criteria=candidate.criteria,
            )
            logger.info(
                f"[Scheduler] {task.id} -> {candidate.agent.id} (score {candidate.score:.3f})"
            )
            if self._event_bus is not None:
                self._event_bus.publish(EventType.TASK_ASSIGNED, {
                    "task_id": task.id,
                    "agent_id": candidate.agent.id,
                    "score": candidate.score,
                    "criteria": candidate.criteria.to_dict(),
                })
            return assignment

        reason = self._unassigned_reason(task, pool, matcher)
        logger.warning(f"[Scheduler] {task.id} unassigned: {reason.value}")
        return UnassignedTask(task=task, reason=reason)

    def _is_viable(self, task: Task, candidate: ScoredCandidate) -> bool:
        if not task.required_capabilities:
            return True
        return candidate.criteria.capability_match > self.min_capability_score

    def _unassigned_reason(
        self,
        task: Task,
        pool: AgentPool,
        matcher: CapabilityMatcher,
    ) -> UnassignedReason:
        """NO_CAPACITY when some accepting agent could take the task once freed"""
        accepting = [
            a for a in pool.agents()
            if a.status in (AgentStatus.IDLE, AgentStatus.WORKING)
        ]
        for candidate in matcher.rank(accepting, task):
            if self._is_viable(task, candidate):
                return UnassignedReason.NO_CAPACITY
        return UnassignedReason.NO_CAPABLE_AGENT
