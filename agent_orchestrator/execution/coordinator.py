"""
Orchestrator - the single coordinator of a run

Built with explicit collaborators (runtime, event bus, repository, executor);
there is no module-level instance. Scheduling decisions happen sequentially on
the event loop; only the dispatches of a layer run concurrently.

Flow of `run`:
    tasks -> TaskDependencyGraph.build -> for each layer:
        ParallelExecutionMonitor.run_layer(plan=TaskScheduler.plan_layer,
                                           dispatch=executor(runtime.dispatch))
        -> block dependents of failed / blocked / unassigned tasks
        -> checkpoint agents
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from ..config import OrchestratorSettings
from ..errors import AgentNotFoundError, AgentSpawnError, DuplicateAgentError, RunInProgressError
from ..metrics import MetricsCollector
from ..models.agent import Agent, AgentCapacity, AgentStats, SpawnAgentRequest
from ..models.assignment import Assignment, RunResult, SchedulingResult
from ..models.task import Task
from ..resilience import (
    DISPATCH_TASK,
    SPAWN_AGENT,
    TERMINATE_AGENT,
    ResilientOperationExecutor,
)
from ..runtime import AgentHandle, AgentRuntime
from ..scheduling import AgentPool, CapabilityMatcher, TaskScheduler
from ..services.event_bus import EventBus
from ..services.repository import AgentRepository
from ..task_graph import TaskDependencyGraph
from .monitor import BLOCKED_DEPENDENCY, LayerOutcome, ParallelExecutionMonitor

logger = logging.getLogger(__name__)

AGENT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9\-_\s]{1,50}$")
DANGEROUS_PATTERNS = [
    re.compile(r"script\s*>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"expression\s*\(", re.IGNORECASE),
]


def validate_agent_name(name: Optional[str]) -> List[str]:
    """Validation errors for an agent name; empty when valid"""
    if not name or not name.strip():
        return ["Agent name is required"]
    if any(p.search(name) for p in DANGEROUS_PATTERNS):
        return ["Agent name contains potentially dangerous content"]
    if not AGENT_NAME_PATTERN.match(name):
        return ["Agent name contains invalid characters or is too long"]
    return []


class Orchestrator:
    """
    Scheduling and resilient-dispatch coordinator.

    Example:
        bus = EventBus()
        orchestrator = Orchestrator(LocalAgentRuntime(), event_bus=bus)
        await orchestrator.spawn_agent(SpawnAgentRequest(name="dev", extra_capabilities={"python"}))
        result = await orchestrator.run(tasks)

    Args:
        runtime: host runtime that spawns agents and runs tasks
        settings: weights, limits and resilience settings
        event_bus: observer registry shared by pool, scheduler and monitor
        repository: agent persistence; checkpoints are skipped when None
        executor: resilient executor; built from settings when None
        metrics: optional collector
    """

    def __init__(
        self,
        runtime: AgentRuntime,
        settings: Optional[OrchestratorSettings] = None,
        event_bus: Optional[EventBus] = None,
        repository: Optional[AgentRepository] = None,
        executor: Optional[ResilientOperationExecutor] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self._settings = settings or OrchestratorSettings()
        self._runtime = runtime
        self._event_bus = event_bus if event_bus is not None else EventBus()
        self._repository = repository
        self._metrics = metrics
        self._executor = executor or ResilientOperationExecutor.from_settings(
            self._settings, metrics=metrics, event_bus=self._event_bus
        )

        self._pool = AgentPool(event_bus=self._event_bus)
        self._matcher = CapabilityMatcher(
            capability_weight=self._settings.capability_weight,
            workload_weight=self._settings.workload_weight,
        )
        self._scheduler = TaskScheduler.from_settings(self._settings, event_bus=self._event_bus)
        self._monitor = ParallelExecutionMonitor(
            self._pool, event_bus=self._event_bus, metrics=metrics
        )

        self._handles: Dict[str, AgentHandle] = {}
        self._cancelled = False
        self._running = False

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> OrchestratorSettings:
        return self._settings

    @property
    def pool(self) -> AgentPool:
        return self._pool

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def executor(self) -> ResilientOperationExecutor:
        return self._executor

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # Agent lifecycle
    # =========================================================================

    async def spawn_agent(self, request: SpawnAgentRequest, checkpoint: bool = True) -> Agent:
        """
        Validate, spawn through the runtime and register a new agent.

        Raises:
            AgentSpawnError: invalid name; nothing is spawned
            DuplicateAgentError: `request.agent_id` is already registered; nothing is spawned
            CircuitOpenError: spawns are currently failing fast
            RetryExhaustedError: the runtime kept failing
        """
        errors = validate_agent_name(request.name)
        if errors:
            logger.warning(f"[Orchestrator] Rejected spawn of {request.name!r}: {errors}")
            raise AgentSpawnError(
                f"Invalid agent spawn request: {'; '.join(errors)}",
                errors=errors,
                name=request.name,
            )
        if request.agent_id is not None and request.agent_id in self._pool:
            logger.warning(f"[Orchestrator] Rejected spawn of {request.name!r}: id {request.agent_id} is taken")
            raise DuplicateAgentError(request.agent_id)

        handle = await self._executor.execute(
            lambda: self._runtime.spawn(request), SPAWN_AGENT
        )

        try:
            agent = self._pool.add_agent(Agent(
                id=handle.agent_id,
                name=request.name,
                capabilities=request.resolve_capabilities(),
                max_capacity=request.max_capacity or self._settings.default_agent_capacity,
                config=request.config,
            ))
        except DuplicateAgentError:
            logger.error(f"[Orchestrator] Runtime returned id {handle.agent_id}, which is already registered")
            raise
        self._handles[agent.id] = handle
        logger.info(
            f"[Orchestrator] Spawned {agent.name} ({agent.id}) "
            f"capabilities={sorted(agent.capabilities)} capacity={agent.max_capacity}"
        )

        if checkpoint:
            await self.checkpoint()
        return agent

    async def remove_agent(self, agent_id: str) -> None:
        """
        Terminate and unregister an agent.

        The agent leaves the pool even when termination fails; the
        termination error is then re-raised.

        Raises:
            AgentNotFoundError: unknown agent
        """
        if agent_id not in self._pool:
            raise AgentNotFoundError(agent_id)

        handle = self._handles.pop(agent_id, None)
        try:
            if handle is not None:
                await self._executor.execute(
                    lambda: self._runtime.terminate(handle), TERMINATE_AGENT
                )
        finally:
            self._pool.remove_agent(agent_id)
            await self.checkpoint()

    async def restore_agents(self) -> List[Agent]:
        """
        Re-spawn every persisted agent with its id.

        Agents whose spawn fails are logged and left out; the rest are
        restored.
        """
        if self._repository is None:
            return []

        restored = []
        for saved in await self._repository.load_agents():
            if saved.id in self._pool:
                continue
            request = SpawnAgentRequest(
                name=saved.name,
                config=saved.config,
                extra_capabilities=saved.capabilities,
                max_capacity=saved.max_capacity,
                agent_id=saved.id,
            )
            try:
                restored.append(await self.spawn_agent(request, checkpoint=False))
            except Exception as e:
                logger.error(f"[Orchestrator] Could not restore agent {saved.id}: {e}")

        logger.info(f"[Orchestrator] Restored {len(restored)} agents")
        if restored:
            await self.checkpoint()
        return restored

    async def checkpoint(self) -> None:
        """Save the pool to the repository; a failed save is logged"""
        if self._repository is None:
            return
        try:
            await self._repository.save_agents(self._pool.agents())
        except Exception:
            logger.exception("[Orchestrator] Agent checkpoint failed")

    # =========================================================================
    # Runs
    # =========================================================================

    async def run(self, tasks: Sequence[Task]) -> RunResult:
        """
        Layer, schedule and execute a task set.

        Args:
            tasks: the whole batch; dependencies must stay inside it

        Returns:
            RunResult separating succeeded, unassigned, failed and blocked

        Raises:
            DependencyCycleError: the batch has a cycle; nothing was scheduled
            TaskValidationError: duplicate ids or unknown dependencies
            RunInProgressError: another run has not finished yet
        """
        if self._running:
            raise RunInProgressError()

        graph = TaskDependencyGraph()
        layers = graph.build(tasks)

        self._cancelled = False
        self._running = True
        result = RunResult()
        logger.info(f"[Orchestrator] Run started: {len(tasks)} tasks in {len(layers)} layers")

        try:
            for layer in layers:
                outcome = await self._monitor.run_layer(
                    layer,
                    plan=self._plan,
                    dispatch=self._dispatch,
                    is_cancelled=lambda: self._cancelled,
                )
                self._merge(outcome, result)

                if not self._cancelled:
                    for task_id in outcome.unresolved_ids:
                        for dependent_id in graph.dependents_of(task_id):
                            self._monitor.block_task(graph.get_task(dependent_id), BLOCKED_DEPENDENCY)

                await self.checkpoint()
                self._update_gauges()
        finally:
            self._running = False

        result.cancelled = self._cancelled
        logger.info(
            f"[Orchestrator] Run finished: succeeded={len(result.succeeded)} "
            f"failed={len(result.failed)} unassigned={len(result.unassigned)} "
            f"blocked={len(result.blocked)} cancelled={result.cancelled}"
        )
        return result

    def cancel(self) -> None:
        """
        Stop scheduling. In-flight dispatches finish; every task not yet
        dispatched ends up BLOCKED.
        """
        if self._running and not self._cancelled:
            logger.info("[Orchestrator] Run cancelled")
        self._cancelled = True

    def _plan(self, tasks: Sequence[Task], in_flight: List[Assignment]) -> SchedulingResult:
        return self._scheduler.plan_layer(tasks, self._pool, self._matcher, in_flight)

    async def _dispatch(self, assignment: Assignment) -> Any:
        handle = self._handles.get(assignment.agent_id)
        if handle is None:
            raise AgentNotFoundError(assignment.agent_id)
        return await self._executor.execute(
            lambda: self._runtime.dispatch(handle, assignment.task), DISPATCH_TASK
        )

    @staticmethod
    def _merge(outcome: LayerOutcome, result: RunResult) -> None:
        summary = outcome.summary
        result.layers.append(summary)
        result.succeeded.extend(summary.completed)
        result.failed.extend(outcome.failures)
        result.unassigned.extend(outcome.unassigned)
        result.blocked.extend(summary.blocked)
        result.tolerated.extend(outcome.tolerated)
        for r in outcome.results:
            if r.success:
                result.results[r.task_id] = r.output

    def _update_gauges(self) -> None:
        if self._metrics:
            self._metrics.set_gauge("pool_load", self._pool.total_load())
            self._metrics.set_gauge("pool_capacity", self._pool.total_capacity())

    # =========================================================================
    # Query surface
    # =========================================================================

    def get_agent_stats(self) -> AgentStats:
        return self._pool.get_agent_stats()

    def get_agent_capacity(self, agent_id: str) -> AgentCapacity:
        return self._pool.get_agent_capacity(agent_id)

    def get_circuit_summary(self) -> Dict[str, Any]:
        return self._executor.get_summary()
