"""
Orchestrator Unit Tests

End-to-end runs over LocalAgentRuntime.
"""

import asyncio

import pytest

from agent_orchestrator.config import OrchestratorSettings
from agent_orchestrator.errors import (
    AgentNotFoundError,
    AgentSpawnError,
    CircuitOpenError,
    DependencyCycleError,
    DuplicateAgentError,
    NonRetryableError,
    RunInProgressError,
    TaskValidationError,
)
from agent_orchestrator.execution import Orchestrator, validate_agent_name
from agent_orchestrator.models import (
    AgentStatus,
    DeveloperConfig,
    EventType,
    SpawnAgentRequest,
    TaskStatus,
    UnassignedReason,
)
from agent_orchestrator.runtime import LocalAgentRuntime
from agent_orchestrator.services import InMemoryAgentRepository

from conftest import make_task


def request(name, caps=(), capacity=None, **kwargs):
    return SpawnAgentRequest(name=name, extra_capabilities=set(caps), max_capacity=capacity, **kwargs)


@pytest.fixture
def repository():
    return InMemoryAgentRepository()


@pytest.fixture
def runtime():
    return LocalAgentRuntime()


@pytest.fixture
def orchestrator(runtime, event_bus, repository, executor, metrics):
    return Orchestrator(
        runtime,
        settings=OrchestratorSettings(max_concurrent_agents=5),
        event_bus=event_bus,
        repository=repository,
        executor=executor,
        metrics=metrics,
    )


class TestValidateAgentName:
    """Spawn name rules"""

    @pytest.mark.parametrize("name", ["frontend-dev", "QA_bot 2", "a" * 50])
    def test_valid_names(self, name):
        assert validate_agent_name(name) == []

    @pytest.mark.parametrize("name", ["", "   ", None, "a" * 51, "<script>", "dev;rm"])
    def test_invalid_names(self, name):
        assert validate_agent_name(name) != []

    def test_dangerous_content(self):
        assert validate_agent_name("onload = x") == ["Agent name contains potentially dangerous content"]


class TestAgentLifecycle:
    """spawn / remove / restore"""

    @pytest.mark.asyncio
    async def test_spawn_registers_agent(self, orchestrator, runtime, repository):
        agent = await orchestrator.spawn_agent(
            request("dev", config=DeveloperConfig(primary_domain="backend", languages=["Python"]), capacity=2)
        )

        assert agent.id in runtime.handles
        assert agent.max_capacity == 2
        assert {"backend", "python"} <= agent.capabilities
        assert [a.id for a in await repository.load_agents()] == [agent.id]

    @pytest.mark.asyncio
    async def test_spawn_uses_default_capacity(self, runtime, event_bus, executor):
        orchestrator = Orchestrator(
            runtime,
            settings=OrchestratorSettings(default_agent_capacity=3),
            event_bus=event_bus,
            executor=executor,
        )
        agent = await orchestrator.spawn_agent(request("dev"))
        assert agent.max_capacity == 3

    @pytest.mark.asyncio
    async def test_invalid_name_is_rejected_without_spawning(self, orchestrator, runtime):
        with pytest.raises(AgentSpawnError) as exc_info:
            await orchestrator.spawn_agent(request("<script>alert(1)</script>"))

        assert exc_info.value.errors
        assert runtime.handles == {}
        assert len(orchestrator.pool) == 0

    @pytest.mark.asyncio
    async def test_duplicate_agent_id_is_rejected_without_spawning(self, orchestrator, runtime):
        await orchestrator.spawn_agent(request("dev", capacity=1, agent_id="a1"))
        orchestrator.pool.reserve("a1", "t1")

        spawned = []
        original_spawn = runtime.spawn

        async def recording_spawn(req):
            spawned.append(req.agent_id)
            return await original_spawn(req)

        runtime.spawn = recording_spawn

        with pytest.raises(DuplicateAgentError):
            await orchestrator.spawn_agent(request("dev", capacity=1, agent_id="a1"))

        assert spawned == []
        capacity = orchestrator.get_agent_capacity("a1")
        assert capacity.current_load == 1
        assert capacity.is_available is False

    @pytest.mark.asyncio
    async def test_failing_runtime_opens_spawn_circuit(self, runtime, event_bus, executor):
        async def broken_spawn(req):
            raise NonRetryableError(ConnectionError("runtime unavailable"))

        runtime.spawn = broken_spawn
        orchestrator = Orchestrator(runtime, event_bus=event_bus, executor=executor)

        for _ in range(5):
            with pytest.raises(NonRetryableError):
                await orchestrator.spawn_agent(request("dev"))

        with pytest.raises(CircuitOpenError):
            await orchestrator.spawn_agent(request("dev"))
        assert orchestrator.get_circuit_summary()["spawn-agent"]["state"] == "open"

    @pytest.mark.asyncio
    async def test_remove_agent(self, orchestrator, runtime, repository):
        agent = await orchestrator.spawn_agent(request("dev"))

        await orchestrator.remove_agent(agent.id)

        assert agent.id not in orchestrator.pool
        assert runtime.handles == {}
        assert await repository.load_agents() == []

    @pytest.mark.asyncio
    async def test_remove_unknown_agent(self, orchestrator):
        with pytest.raises(AgentNotFoundError):
            await orchestrator.remove_agent("missing")

    @pytest.mark.asyncio
    async def test_restore_agents_keeps_ids(self, repository, event_bus, executor):
        first = Orchestrator(LocalAgentRuntime(), event_bus=event_bus, repository=repository, executor=executor)
        spawned = await first.spawn_agent(request("dev", caps={"python"}, capacity=2))

        runtime = LocalAgentRuntime()
        second = Orchestrator(runtime, repository=repository)
        restored = await second.restore_agents()

        assert [a.id for a in restored] == [spawned.id]
        assert restored[0].capabilities == {"python"}
        assert restored[0].max_capacity == 2
        assert restored[0].current_load == 0
        assert spawned.id in runtime.handles

    @pytest.mark.asyncio
    async def test_restore_without_repository(self, runtime):
        assert await Orchestrator(runtime).restore_agents() == []


class TestRun:
    """Layered execution"""

    @pytest.mark.asyncio
    async def test_diamond_runs_in_three_layers(self, orchestrator, recorder):
        await orchestrator.spawn_agent(request("one", capacity=2))
        tasks = [
            make_task("A"),
            make_task("B", deps={"A"}),
            make_task("C", deps={"A"}),
            make_task("D", deps={"B", "C"}),
        ]

        result = await orchestrator.run(tasks)

        assert result.success is True
        assert [layer.completed for layer in result.layers][0] == ["A"]
        assert sorted(result.layers[1].completed) == ["B", "C"]
        assert result.layers[2].completed == ["D"]
        assert result.results["D"]["task_id"] == "D"
        assert all(t.status == TaskStatus.COMPLETED for t in tasks)
        assert orchestrator.pool.total_load() == 0
        assert len(recorder.of_type(EventType.TASK_COMPLETED)) == 4

    @pytest.mark.asyncio
    async def test_dispatch_follows_capabilities(self, event_bus, executor):
        seen = {}

        async def work(handle, task):
            seen[task.id] = handle.name
            return None

        orchestrator = Orchestrator(LocalAgentRuntime(work), event_bus=event_bus, executor=executor)
        await orchestrator.spawn_agent(request("web", caps={"react"}))
        await orchestrator.spawn_agent(request("api", caps={"python"}))

        await orchestrator.run([make_task("ui", caps={"react"}), make_task("svc", caps={"python"})])

        assert seen == {"ui": "web", "svc": "api"}

    @pytest.mark.asyncio
    async def test_single_capacity_agent_finishes_whole_layer(self, orchestrator):
        await orchestrator.spawn_agent(request("only", caps={"x"}, capacity=1))

        result = await orchestrator.run([make_task("t1", caps={"x"}), make_task("t2", caps={"x"})])

        assert sorted(result.succeeded) == ["t1", "t2"]
        assert result.unassigned == []

    @pytest.mark.asyncio
    async def test_failure_blocks_transitive_dependents(self, event_bus, executor):
        async def work(handle, task):
            if task.id == "B":
                raise NonRetryableError(ValueError("bad input"))
            return task.id

        orchestrator = Orchestrator(LocalAgentRuntime(work), event_bus=event_bus, executor=executor)
        await orchestrator.spawn_agent(request("dev", capacity=2))
        tasks = [
            make_task("A"),
            make_task("B", deps={"A"}),
            make_task("C", deps={"A"}),
            make_task("D", deps={"B"}),
            make_task("E", deps={"D"}),
        ]

        result = await orchestrator.run(tasks)

        assert result.success is False
        assert sorted(result.succeeded) == ["A", "C"]
        assert [f.task_id for f in result.failed] == ["B"]
        assert result.failed[0].error["code"] == "NON_RETRYABLE"
        assert sorted(result.blocked) == ["D", "E"]
        assert tasks[4].status == TaskStatus.BLOCKED

    @pytest.mark.asyncio
    async def test_retryable_dispatch_failure_is_retried(self, event_bus, executor, sleep):
        attempts = []

        async def flaky(handle, task):
            attempts.append(task.id)
            if len(attempts) < 2:
                raise ConnectionError("transient")
            return "ok"

        orchestrator = Orchestrator(LocalAgentRuntime(flaky), event_bus=event_bus, executor=executor)
        await orchestrator.spawn_agent(request("dev"))

        result = await orchestrator.run([make_task("t1")])

        assert result.succeeded == ["t1"]
        assert attempts == ["t1", "t1"]
        assert sleep.calls == [1.0]

    @pytest.mark.asyncio
    async def test_unassigned_task_blocks_its_dependents(self, orchestrator):
        await orchestrator.spawn_agent(request("dev", caps={"python"}))

        result = await orchestrator.run([
            make_task("legacy", caps={"cobol"}),
            make_task("report", deps={"legacy"}),
        ])

        assert result.success is False
        assert [(u.task_id, u.reason) for u in result.unassigned] == [
            ("legacy", UnassignedReason.NO_CAPABLE_AGENT)
        ]
        assert result.blocked == ["report"]

    @pytest.mark.asyncio
    async def test_cycle_aborts_before_scheduling(self, orchestrator, recorder):
        await orchestrator.spawn_agent(request("dev"))

        with pytest.raises(DependencyCycleError) as exc_info:
            await orchestrator.run([make_task("A", deps={"B"}), make_task("B", deps={"A"})])

        assert set(exc_info.value.task_ids) == {"A", "B"}
        assert recorder.of_type(EventType.TASK_ASSIGNED) == []
        assert orchestrator.is_running is False

    @pytest.mark.asyncio
    async def test_unknown_dependency_is_rejected(self, orchestrator):
        with pytest.raises(TaskValidationError):
            await orchestrator.run([make_task("A", deps={"ghost"})])

    @pytest.mark.asyncio
    async def test_run_updates_gauges_and_checkpoints(self, orchestrator, repository, metrics):
        agent = await orchestrator.spawn_agent(request("dev"))

        await orchestrator.run([make_task("t1")])

        assert metrics.get_gauge("pool_load") == 0
        assert metrics.get_gauge("pool_capacity") == 1
        saved = await repository.load_agents()
        assert saved[0].id == agent.id
        assert saved[0].status == AgentStatus.IDLE


class TestCancel:
    """Cancellation between layers"""

    @pytest.fixture
    def gate(self):
        return asyncio.Event()

    @pytest.fixture
    def gated_orchestrator(self, gate, event_bus, executor):
        async def work(handle, task):
            if task.id == "A":
                await gate.wait()
            return task.id

        return Orchestrator(LocalAgentRuntime(work), event_bus=event_bus, executor=executor)

    async def _run_and_cancel(self, orchestrator, gate, tasks):
        run = asyncio.create_task(orchestrator.run(tasks))
        while tasks[0].status != TaskStatus.RUNNING:
            await asyncio.sleep(0)

        orchestrator.cancel()
        gate.set()
        return await run

    @pytest.mark.asyncio
    async def test_in_flight_task_finishes_and_the_rest_is_blocked(self, gated_orchestrator, gate):
        await gated_orchestrator.spawn_agent(request("dev", capacity=2))
        tasks = [make_task("A"), make_task("B", deps={"A"}), make_task("C", deps={"B"})]

        result = await self._run_and_cancel(gated_orchestrator, gate, tasks)

        assert result.cancelled is True
        assert result.succeeded == ["A"]
        assert result.blocked == ["B", "C"]
        assert result.success is False
        assert gated_orchestrator.pool.total_load() == 0

    @pytest.mark.asyncio
    async def test_cancel_tolerant_tasks_do_not_fail_the_run(self, gated_orchestrator, gate):
        await gated_orchestrator.spawn_agent(request("dev", capacity=2))
        tasks = [
            make_task("A"),
            make_task("notify", deps={"A"}, cancel_tolerant=True),
        ]

        result = await self._run_and_cancel(gated_orchestrator, gate, tasks)

        assert result.blocked == ["notify"]
        assert result.tolerated == ["notify"]
        assert result.success is True

    @pytest.mark.asyncio
    async def test_second_run_is_rejected_while_running(self, gated_orchestrator, gate):
        await gated_orchestrator.spawn_agent(request("dev"))
        tasks = [make_task("A")]
        first = asyncio.create_task(gated_orchestrator.run(tasks))
        while tasks[0].status != TaskStatus.RUNNING:
            await asyncio.sleep(0)

        with pytest.raises(RunInProgressError):
            await gated_orchestrator.run([make_task("X")])
        assert gated_orchestrator.is_running is True

        gate.set()
        result = await first

        assert result.succeeded == ["A"]
        assert result.cancelled is False
        assert gated_orchestrator.is_running is False

    @pytest.mark.asyncio
    async def test_cancel_outside_a_run_is_harmless(self, orchestrator):
        orchestrator.cancel()
        await orchestrator.spawn_agent(request("dev"))

        result = await orchestrator.run([make_task("t1")])

        assert result.cancelled is False
        assert result.succeeded == ["t1"]


class TestQueries:
    """Stats and capacity queries"""

    @pytest.mark.asyncio
    async def test_agent_stats_and_capacity(self, orchestrator):
        agent = await orchestrator.spawn_agent(request("dev", capacity=4))

        stats = orchestrator.get_agent_stats()
        capacity = orchestrator.get_agent_capacity(agent.id)

        assert stats.total == 1
        assert stats.idle == 1
        assert capacity.max_capacity == 4
        assert capacity.is_available is True
