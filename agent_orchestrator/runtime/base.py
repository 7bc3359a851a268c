"""
Agent runtime - the host capability that spawns agents and runs tasks on them

The orchestrator never talks to processes or terminals directly; it goes
through an AgentRuntime, and every call is wrapped by the resilient executor.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import uuid4

from ..models.agent import SpawnAgentRequest
from ..models.task import Task

logger = logging.getLogger(__name__)


@dataclass
class AgentHandle:
    """Runtime-side reference to a spawned agent"""
    agent_id: str
    name: str
    spawned_at: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)


class AgentRuntime(ABC):
    """Host runtime interface"""

    @abstractmethod
    async def spawn(self, request: SpawnAgentRequest) -> AgentHandle:
        """Start an agent; raise on failure"""
        pass

    @abstractmethod
    async def dispatch(self, handle: AgentHandle, task: Task) -> Any:
        """Run `task` on the agent and return its result; raise on failure"""
        pass

    @abstractmethod
    async def terminate(self, handle: AgentHandle) -> None:
        """Stop the agent"""
        pass


WorkFunc = Callable[[AgentHandle, Task], Awaitable[Any]]


async def _echo_work(handle: AgentHandle, task: Task) -> Any:
    await asyncio.sleep(0)
    return {"task_id": task.id, "agent_id": handle.agent_id, "title": task.title}


class LocalAgentRuntime(AgentRuntime):
    """
    In-process runtime.

    Agents are plain handles; dispatch awaits `work(handle, task)`.

    Args:
        work: coroutine doing the actual work for a task
    """

    def __init__(self, work: Optional[WorkFunc] = None):
        self._work = work or _echo_work
        self._handles: Dict[str, AgentHandle] = {}

    @property
    def handles(self) -> Dict[str, AgentHandle]:
        return dict(self._handles)

    async def spawn(self, request: SpawnAgentRequest) -> AgentHandle:
        agent_id = request.agent_id or str(uuid4())
        handle = AgentHandle(
            agent_id=agent_id,
            name=request.name,
            metadata={"category": request.config.category if request.config else None},
        )
        self._handles[agent_id] = handle
        logger.info(f"[LocalRuntime] Spawned {request.name} ({agent_id})")
        return handle

    async def dispatch(self, handle: AgentHandle, task: Task) -> Any:
        if handle.agent_id not in self._handles:
            raise RuntimeError(f"Agent {handle.agent_id} is not running")
        return await self._work(handle, task)

    async def terminate(self, handle: AgentHandle) -> None:
        self._handles.pop(handle.agent_id, None)
        logger.info(f"[LocalRuntime] Terminated {handle.name} ({handle.agent_id})")
