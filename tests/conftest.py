"""
Pytest Configuration and Fixtures

Shared fixtures for the unit tests.
"""

import pytest
from typing import Any, Iterable, List, Optional

from agent_orchestrator.metrics import MetricsCollector
from agent_orchestrator.models import Agent, Task, TaskPriority
from agent_orchestrator.resilience import (
    CircuitConfig,
    ResilientOperationExecutor,
    RetryPolicy,
)
from agent_orchestrator.scheduling import AgentPool, CapabilityMatcher
from agent_orchestrator.services import EventBus


class FakeClock:
    """Manually advanced monotonic clock (seconds)"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


class RecordingSleep:
    """Async sleep replacement that records requested delays"""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class EventRecorder:
    """Collects every event published on a bus"""

    def __init__(self, bus: EventBus):
        self.events = []
        bus.subscribe(self.events.append)

    def of_type(self, event_type) -> List[Any]:
        return [e for e in self.events if e.type == event_type]


def make_task(
    task_id: str,
    deps: Iterable[str] = (),
    caps: Iterable[str] = (),
    priority: TaskPriority = TaskPriority.MEDIUM,
    group: Optional[str] = None,
    **kwargs,
) -> Task:
    return Task(
        id=task_id,
        title=f"Task {task_id}",
        depends_on=set(deps),
        required_capabilities=set(caps),
        priority=priority,
        parallel_group=group,
        **kwargs,
    )


def make_agent(agent_id: str, caps: Iterable[str] = (), capacity: int = 1, **kwargs) -> Agent:
    return Agent(
        id=agent_id,
        name=f"Agent {agent_id}",
        capabilities=set(caps),
        max_capacity=capacity,
        **kwargs,
    )


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(event_bus) -> EventRecorder:
    return EventRecorder(event_bus)


@pytest.fixture
def pool(event_bus) -> AgentPool:
    return AgentPool(event_bus=event_bus)


@pytest.fixture
def matcher() -> CapabilityMatcher:
    return CapabilityMatcher(capability_weight=0.7, workload_weight=0.3)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def executor(clock, sleep, metrics, event_bus) -> ResilientOperationExecutor:
    """Executor with the default thresholds, a fake clock and no real sleeping"""
    return ResilientOperationExecutor(
        retry_policy=RetryPolicy(max_attempts=3, base_delay_ms=1000, max_delay_ms=30000, jitter_ms=0),
        sleep=sleep,
        metrics=metrics,
        event_bus=event_bus,
        breaker_config=CircuitConfig(failure_threshold=5, reset_timeout_ms=60000),
        clock=clock,
    )
