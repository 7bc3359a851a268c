"""
Agent Pool - live agents, their status and load

The pool is the only owner of Agent records. Callers get deep copies, and
load only changes through `reserve` / `release`, both taken under one lock so
concurrent dispatches in a layer cannot over-assign an agent.
"""

import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional, Set

from ..errors import AgentNotFoundError, CapacityExceededError, DuplicateAgentError
from ..models.agent import Agent, AgentCapacity, AgentStats, AgentStatus
from ..models.events import EventType

logger = logging.getLogger(__name__)


class AgentPool:
    """
    Registry of agents with capacity accounting.

    An agent whose load reaches its capacity becomes WORKING; releasing it
    below capacity returns it to IDLE. ERROR and OFFLINE agents take no work
    and keep their status across releases.

    Args:
        event_bus: optional EventBus for AGENT_* events
    """

    def __init__(self, event_bus=None):
        self._lock = threading.RLock()
        self._agents: Dict[str, Agent] = {}
        # agent id -> task ids currently holding a slot
        self._reservations: Dict[str, Set[str]] = {}
        self._event_bus = event_bus

    # =========================================================================
    # Registry
    # =========================================================================

    def add_agent(self, agent: Agent) -> Agent:
        """
        Register an agent with zero load.

        Raises:
            DuplicateAgentError: the id is already registered
        """
        with self._lock:
            if agent.id in self._agents:
                raise DuplicateAgentError(agent.id)
            stored = agent.model_copy(deep=True)
            stored.current_load = 0
            if stored.status == AgentStatus.WORKING:
                stored.status = AgentStatus.IDLE
            self._agents[stored.id] = stored
            self._reservations[stored.id] = set()
            logger.info(f"[AgentPool] Agent added: {stored.name} ({stored.id})")
            self._publish(EventType.AGENT_CREATED, {"agent": stored.model_dump(mode="json")})
            return stored.model_copy(deep=True)

    def remove_agent(self, agent_id: str) -> Agent:
        with self._lock:
            agent = self._require(agent_id)
            del self._agents[agent_id]
            pending = self._reservations.pop(agent_id, set())
            if pending:
                logger.warning(
                    f"[AgentPool] Agent {agent_id} removed with {len(pending)} reserved tasks"
                )
            logger.info(f"[AgentPool] Agent removed: {agent.name} ({agent_id})")
            self._publish(EventType.AGENT_REMOVED, {"agent_id": agent_id})
            return agent

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        with self._lock:
            agent = self._agents.get(agent_id)
            return agent.model_copy(deep=True) if agent else None

    def agents(self) -> List[Agent]:
        with self._lock:
            return [a.model_copy(deep=True) for a in self._agents.values()]

    def __contains__(self, agent_id: str) -> bool:
        with self._lock:
            return agent_id in self._agents

    def __len__(self) -> int:
        with self._lock:
            return len(self._agents)

    def set_status(self, agent_id: str, status: AgentStatus) -> None:
        with self._lock:
            agent = self._require(agent_id)
            self._change_status(agent, status)

    # =========================================================================
    # Capacity
    # =========================================================================

    def available_agents(self) -> List[Agent]:
        """Agents that are IDLE with load below capacity"""
        with self._lock:
            return [
                a.model_copy(deep=True)
                for a in self._agents.values()
                if a.is_available
            ]

    def reserve(self, agent_id: str, task_id: str) -> None:
        """
        Take one slot on the agent for `task_id`.

        Reserving the same pair twice is a no-op.

        Raises:
            AgentNotFoundError: unknown agent
            CapacityExceededError: the agent is full or not accepting work
        """
        with self._lock:
            agent = self._require(agent_id)
            held = self._reservations[agent_id]
            if task_id in held:
                return

            accepting = agent.status in (AgentStatus.IDLE, AgentStatus.WORKING)
            if not accepting or agent.current_load >= agent.max_capacity:
                raise CapacityExceededError(
                    agent_id, agent.current_load, agent.max_capacity, task_id=task_id
                )

            held.add(task_id)
            agent.current_load += 1
            agent.last_activity = datetime.now()
            logger.debug(
                f"[AgentPool] Reserved {agent_id} for {task_id} "
                f"({agent.current_load}/{agent.max_capacity})"
            )
            if agent.current_load >= agent.max_capacity:
                self._change_status(agent, AgentStatus.WORKING)

    def release(self, agent_id: str, task_id: str) -> None:
        """Free the slot held by `task_id`; idempotent per (agent, task) pair"""
        with self._lock:
            agent = self._agents.get(agent_id)
            held = self._reservations.get(agent_id)
            if agent is None or held is None or task_id not in held:
                return

            held.discard(task_id)
            agent.current_load = max(0, agent.current_load - 1)
            agent.last_activity = datetime.now()
            logger.debug(
                f"[AgentPool] Released {agent_id} from {task_id} "
                f"({agent.current_load}/{agent.max_capacity})"
            )
            if agent.status == AgentStatus.WORKING and agent.current_load < agent.max_capacity:
                self._change_status(agent, AgentStatus.IDLE)

    def reserved_tasks(self, agent_id: str) -> Set[str]:
        with self._lock:
            return set(self._reservations.get(agent_id, ()))

    def total_load(self) -> int:
        with self._lock:
            return sum(a.current_load for a in self._agents.values())

    def total_capacity(self) -> int:
        with self._lock:
            return sum(a.max_capacity for a in self._agents.values())

    # =========================================================================
    # Query surface
    # =========================================================================

    def get_agent_stats(self) -> AgentStats:
        with self._lock:
            stats = AgentStats(total=len(self._agents))
            for agent in self._agents.values():
                field_name = agent.status.value
                setattr(stats, field_name, getattr(stats, field_name) + 1)
            return stats

    def get_agent_capacity(self, agent_id: str) -> AgentCapacity:
        with self._lock:
            agent = self._require(agent_id)
            return AgentCapacity(
                current_load=agent.current_load,
                max_capacity=agent.max_capacity,
                is_available=agent.is_available,
            )

    # =========================================================================
    # Internal
    # =========================================================================

    def _require(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    def _change_status(self, agent: Agent, status: AgentStatus) -> None:
        # Called with the lock held so one agent's changes publish in order
        if agent.status == status:
            return
        old = agent.status
        agent.status = status
        logger.debug(f"[AgentPool] {agent.id}: {old.value} -> {status.value}")
        self._publish(EventType.AGENT_STATUS_CHANGED, {
            "agent_id": agent.id,
            "from": old.value,
            "to": status.value,
            "current_load": agent.current_load,
            "max_capacity": agent.max_capacity,
        })

    def _publish(self, event_type: EventType, payload: dict) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, payload)
