"""
Parallel Execution Monitor - runs one layer's assignments concurrently

Per task: assigned -> running -> completed | failed. The agent slot is
released as soon as a task finishes, and the still-unplaced tasks of the layer
(deferred by the concurrency cap, or waiting for a free capable agent) are
replanned after every release. A layer is resolved once every task is
completed, failed, blocked or finally unassigned.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..errors import ErrorResponse
from ..metrics import MetricsCollector
from ..models.assignment import (
    Assignment,
    ExecutionLayer,
    LayerSummary,
    SchedulingResult,
    TaskFailure,
    UnassignedReason,
    UnassignedTask,
)
from ..models.events import EventType
from ..models.task import Task, TaskStatus
from ..scheduling.agent_pool import AgentPool

logger = logging.getLogger(__name__)

PlanFunc = Callable[[Sequence[Task], List[Assignment]], SchedulingResult]
DispatchFunc = Callable[[Assignment], Awaitable[Any]]

BLOCKED_CANCELLED = "cancelled"
BLOCKED_DEPENDENCY = "dependency_unresolved"


@dataclass
class TaskExecutionResult:
    """Outcome of one dispatched assignment"""
    task_id: str
    agent_id: str
    success: bool
    output: Any = None
    error: Optional[Dict[str, Any]] = None
    execution_time_ms: float = 0.0


@dataclass
class LayerOutcome:
    """Everything a resolved layer hands back to the coordinator"""
    summary: LayerSummary
    results: List[TaskExecutionResult] = field(default_factory=list)
    failures: List[TaskFailure] = field(default_factory=list)
    unassigned: List[UnassignedTask] = field(default_factory=list)
    tolerated: List[str] = field(default_factory=list)

    @property
    def unresolved_ids(self) -> List[str]:
        """Tasks whose dependents can no longer run"""
        return (
            [f.task_id for f in self.failures]
            + list(self.summary.blocked)
            + [u.task_id for u in self.unassigned]
        )


def error_payload(error: BaseException) -> Dict[str, Any]:
    """The `error` object of the standard error response for `error`"""
    return ErrorResponse.from_exception(error).to_dict()["error"]


class ParallelExecutionMonitor:
    """
    Layer executor.

    Args:
        pool: agent pool holding the layer's reservations
        event_bus: optional EventBus for TASK_COMPLETED / TASK_FAILED / TASK_BLOCKED
        metrics: optional collector for task durations and layer speedup
        clock: monotonic clock in seconds
    """

    def __init__(
        self,
        pool: AgentPool,
        event_bus=None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._pool = pool
        self._event_bus = event_bus
        self._metrics = metrics
        self._clock = clock

    async def run_layer(
        self,
        layer: ExecutionLayer,
        plan: PlanFunc,
        dispatch: DispatchFunc,
        is_cancelled: Callable[[], bool] = lambda: False,
    ) -> LayerOutcome:
        """
        Execute one layer to resolution.

        Args:
            layer: tasks of the layer; those already BLOCKED are only reported
            plan: scheduler pass over (tasks, in-flight assignments)
            dispatch: runs one assignment on its agent; raising marks it failed
            is_cancelled: checked before every planning pass

        Returns:
            LayerOutcome with the summary and per-task records
        """
        started = self._clock()
        outcome = LayerOutcome(summary=LayerSummary(index=layer.index))
        summary = outcome.summary
        order = {task.id: i for i, task in enumerate(layer.tasks)}

        pending: List[Task] = []
        for task in layer.tasks:
            if task.status == TaskStatus.BLOCKED:
                summary.blocked.append(task.id)
            else:
                task.status = TaskStatus.READY
                pending.append(task)

        in_flight: Dict[asyncio.Task, Assignment] = {}

        while True:
            if pending and is_cancelled():
                for task in pending:
                    self._block(task, BLOCKED_CANCELLED, summary)
                    if task.cancel_tolerant:
                        outcome.tolerated.append(task.id)
                pending = []

            if pending:
                planned = plan(pending, list(in_flight.values()))
                for assignment in planned.assignments:
                    in_flight[asyncio.create_task(self._run(assignment, dispatch))] = assignment

                waiting = list(planned.deferred)
                for unassigned in planned.unassigned:
                    if unassigned.reason == UnassignedReason.NO_CAPACITY and in_flight:
                        waiting.append(unassigned.task)
                    else:
                        self._unassign(unassigned, outcome)

                pending = sorted(waiting, key=lambda t: order[t.id])

            if not in_flight:
                # Nothing will free a slot, so leftovers can never be placed
                for task in pending:
                    self._unassign(UnassignedTask(task, UnassignedReason.NO_CAPACITY), outcome)
                break

            done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            for finished in done:
                assignment = in_flight.pop(finished)
                self._collect(assignment.task, finished.result(), outcome)

        wall_ms = (self._clock() - started) * 1000
        busy_ms = sum(r.execution_time_ms for r in outcome.results)
        summary.duration_ms = wall_ms
        summary.parallel_speedup = busy_ms / wall_ms if wall_ms > 0 and busy_ms > 0 else 1.0
        summary.groups = self._groups(layer)

        if self._metrics:
            self._metrics.observe("layer_duration_ms", wall_ms)
            self._metrics.observe("layer_parallel_speedup", summary.parallel_speedup)

        logger.info(
            f"[Monitor] layer {layer.index} resolved in {wall_ms:.0f}ms: "
            f"completed={len(summary.completed)} failed={len(summary.failed)} "
            f"blocked={len(summary.blocked)} unassigned={len(summary.unassigned)} "
            f"speedup={summary.parallel_speedup:.2f}"
        )
        return outcome

    def block_task(self, task: Task, reason: str) -> None:
        """Mark a task of a later layer BLOCKED before it is ever scheduled"""
        if task.status == TaskStatus.BLOCKED:
            return
        task.status = TaskStatus.BLOCKED
        task.completed_at = datetime.now()
        self._publish(EventType.TASK_BLOCKED, {"task_id": task.id, "reason": reason})

    # =========================================================================
    # Internal
    # =========================================================================

    async def _run(self, assignment: Assignment, dispatch: DispatchFunc) -> TaskExecutionResult:
        task = assignment.task
        task.status = TaskStatus.RUNNING
        task.started_at = datetime.now()
        started = self._clock()

        try:
            output = await dispatch(assignment)
        except Exception as e:
            elapsed_ms = (self._clock() - started) * 1000
            logger.warning(f"[Monitor] {task.id} failed on {assignment.agent_id}: {e}")
            return TaskExecutionResult(
                task_id=task.id,
                agent_id=assignment.agent_id,
                success=False,
                error=error_payload(e),
                execution_time_ms=elapsed_ms,
            )
        finally:
            self._pool.release(assignment.agent_id, task.id)
            task.completed_at = datetime.now()

        return TaskExecutionResult(
            task_id=task.id,
            agent_id=assignment.agent_id,
            success=True,
            output=output,
            execution_time_ms=(self._clock() - started) * 1000,
        )

    def _collect(self, task: Task, result: TaskExecutionResult, outcome: LayerOutcome) -> None:
        outcome.results.append(result)
        if self._metrics:
            self._metrics.record_task_execution(
                result.task_id, result.agent_id, result.execution_time_ms, result.success
            )

        task.status = TaskStatus.COMPLETED if result.success else TaskStatus.FAILED

        if result.success:
            outcome.summary.completed.append(result.task_id)
            self._publish(EventType.TASK_COMPLETED, {
                "task_id": result.task_id,
                "agent_id": result.agent_id,
                "execution_time_ms": result.execution_time_ms,
            })
        else:
            outcome.summary.failed.append(result.task_id)
            outcome.failures.append(TaskFailure(result.task_id, result.agent_id, result.error or {}))
            self._publish(EventType.TASK_FAILED, {
                "task_id": result.task_id,
                "agent_id": result.agent_id,
                "error": result.error,
            })

    def _unassign(self, unassigned: UnassignedTask, outcome: LayerOutcome) -> None:
        outcome.unassigned.append(unassigned)
        outcome.summary.unassigned.append(unassigned.task_id)
        unassigned.task.status = TaskStatus.PENDING
        unassigned.task.assigned_agent_id = None

    def _block(self, task: Task, reason: str, summary: LayerSummary) -> None:
        self.block_task(task, reason)
        summary.blocked.append(task.id)

    @staticmethod
    def _groups(layer: ExecutionLayer) -> Dict[str, List[str]]:
        groups: Dict[str, List[str]] = {}
        for task in layer.tasks:
            if task.parallel_group:
                groups.setdefault(task.parallel_group, []).append(task.id)
        return groups

    def _publish(self, event_type: EventType, payload: Dict[str, Any]) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, payload)
