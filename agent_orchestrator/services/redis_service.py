"""
Redis Service - shared async Redis connection

Holds the event timeline (sorted set scored by milliseconds) and the agent
snapshot hash used by RedisAgentRepository.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)

EVENTS_TIMELINE_KEY = "orchestrator:events:timeline"
AGENTS_KEY = "orchestrator:agents"


class RedisService:
    """
    Async Redis client with connection pooling.

    Args:
        url: redis URL, e.g. redis://localhost:6379/0
        client: pre-built client; used by tests
    """

    def __init__(self, url: str = "redis://localhost:6379/0", client=None, max_connections: int = 50):
        self.url = url
        self.client: Optional[redis.Redis] = client
        self._max_connections = max_connections

    async def connect(self) -> None:
        if self.client is None:
            self.client = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=self._max_connections,
            )
        await self.client.ping()
        logger.info(f"[Redis] Connected to {self.url}")

    async def disconnect(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
            logger.info("[Redis] Disconnected")

    async def health_check(self) -> bool:
        if self.client is None:
            return False
        try:
            await self.client.ping()
            return True
        except redis.RedisError as e:
            logger.warning(f"[Redis] Health check failed: {e}")
            return False

    # ===== Event Timeline =====

    async def add_event(self, event: Dict[str, Any]) -> float:
        """Append to the timeline; returns the score (ms)"""
        timestamp = time.time() * 1000
        await self._require().zadd(EVENTS_TIMELINE_KEY, {json.dumps(event): timestamp})
        return timestamp

    async def get_recent_events(self, count: int = 100) -> List[Dict[str, Any]]:
        """Newest first"""
        events = await self._require().zrevrange(EVENTS_TIMELINE_KEY, 0, count - 1)
        return [json.loads(e) for e in events]

    async def get_events_since(self, timestamp_ms: float, limit: int = 100) -> List[Dict[str, Any]]:
        events = await self._require().zrangebyscore(
            EVENTS_TIMELINE_KEY, timestamp_ms, "+inf", start=0, num=limit
        )
        return [json.loads(e) for e in events]

    async def cleanup_old_events(self, days: int = 7) -> int:
        cutoff = (time.time() - days * 24 * 3600) * 1000
        removed = await self._require().zremrangebyscore(EVENTS_TIMELINE_KEY, "-inf", cutoff)
        logger.info(f"[Redis] Cleaned up {removed} old events")
        return removed

    # ===== Agent snapshots =====

    async def save_agents(self, agents: Dict[str, Dict[str, Any]]) -> None:
        client = self._require()
        async with client.pipeline(transaction=True) as pipe:
            pipe.delete(AGENTS_KEY)
            if agents:
                pipe.hset(AGENTS_KEY, mapping={k: json.dumps(v) for k, v in agents.items()})
            await pipe.execute()

    async def load_agents(self) -> List[Dict[str, Any]]:
        raw = await self._require().hgetall(AGENTS_KEY)
        return [json.loads(v) for v in raw.values()]

    def _require(self) -> redis.Redis:
        if self.client is None:
            raise RuntimeError("RedisService is not connected")
        return self.client
