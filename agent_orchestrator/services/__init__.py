from .event_bus import EventBus, EventHandler
from .event_store import EventStore
from .redis_service import RedisService
from .repository import (
    AgentRepository,
    InMemoryAgentRepository,
    FileAgentRepository,
    RedisAgentRepository,
    create_agent_repository,
)

__all__ = [
    "EventBus",
    "EventHandler",
    "EventStore",
    "RedisService",
    "AgentRepository",
    "InMemoryAgentRepository",
    "FileAgentRepository",
    "RedisAgentRepository",
    "create_agent_repository",
]
