"""
Agent Repository - agent persistence

Agents are loaded once at startup and checkpointed after spawn, removal and
every executed layer. Memory, JSON file and Redis backends.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..errors import ConfigurationError
from ..models.agent import Agent
from .redis_service import RedisService

logger = logging.getLogger(__name__)


class AgentRepository(ABC):
    """Agent storage interface"""

    @abstractmethod
    async def load_agents(self) -> List[Agent]:
        pass

    @abstractmethod
    async def save_agents(self, agents: List[Agent]) -> None:
        pass


def _deserialize(records: List[Dict[str, Any]], source: str) -> List[Agent]:
    agents = []
    for record in records:
        try:
            agents.append(Agent.model_validate(record))
        except ValidationError as e:
            logger.warning(f"[{source}] Skipping invalid agent record {record.get('id')}: {e}")
    return agents


class InMemoryAgentRepository(AgentRepository):
    """Keeps serialized snapshots; used in tests and development"""

    def __init__(self):
        self._storage: Dict[str, Dict[str, Any]] = {}

    async def load_agents(self) -> List[Agent]:
        return _deserialize(list(self._storage.values()), "InMemoryAgentRepository")

    async def save_agents(self, agents: List[Agent]) -> None:
        self._storage = {a.id: a.model_dump(mode="json") for a in agents}


class FileAgentRepository(AgentRepository):
    """
    One JSON document with every agent.

    Args:
        storage_dir: directory holding agents.json
    """

    def __init__(self, storage_dir: str = "./agent_storage"):
        self._storage_dir = storage_dir
        os.makedirs(storage_dir, exist_ok=True)

    @property
    def file_path(self) -> str:
        return os.path.join(self._storage_dir, "agents.json")

    async def load_agents(self) -> List[Agent]:
        if not os.path.exists(self.file_path):
            logger.info(f"[FileAgentRepository] No agents file at {self.file_path}")
            return []

        with open(self.file_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        agents = _deserialize(data.get("agents", []), "FileAgentRepository")
        logger.info(f"[FileAgentRepository] Loaded {len(agents)} agents")
        return agents

    async def save_agents(self, agents: List[Agent]) -> None:
        tmp_path = f"{self.file_path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump({
                "version": "1.0",
                "updatedAt": datetime.now().isoformat(),
                "agents": [a.model_dump(mode="json") for a in agents],
            }, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.file_path)
        logger.debug(f"[FileAgentRepository] Saved {len(agents)} agents")


class RedisAgentRepository(AgentRepository):
    """Agents in a Redis hash keyed by agent id"""

    def __init__(self, redis_service: RedisService):
        self._redis = redis_service

    async def load_agents(self) -> List[Agent]:
        return _deserialize(await self._redis.load_agents(), "RedisAgentRepository")

    async def save_agents(self, agents: List[Agent]) -> None:
        await self._redis.save_agents({a.id: a.model_dump(mode="json") for a in agents})


def create_agent_repository(
    backend: str = "memory",
    storage_dir: str = "./agent_storage",
    redis_service: Optional[RedisService] = None,
) -> AgentRepository:
    """
    Build a repository for `backend`.

    Raises:
        ConfigurationError: unknown backend, or redis without a RedisService
    """
    if backend == "memory":
        return InMemoryAgentRepository()
    if backend == "file":
        return FileAgentRepository(storage_dir)
    if backend == "redis":
        if redis_service is None:
            raise ConfigurationError("redis backend requires a RedisService", "repository_backend")
        return RedisAgentRepository(redis_service)
    raise ConfigurationError(f"Unknown repository backend: {backend}", "repository_backend")
