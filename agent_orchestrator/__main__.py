"""
Agent Orchestrator server entry point

    python -m agent_orchestrator
    agent-orchestrator
"""

import asyncio
import logging
import sys
from typing import Optional

import uvicorn
from redis.exceptions import RedisError

from .api import create_app
from .config import OrchestratorSettings, load_settings
from .errors import ConfigurationError
from .execution import Orchestrator
from .metrics import MetricsCollector
from .resilience import ResilientOperationExecutor
from .runtime import LocalAgentRuntime
from .services import EventBus, EventStore, RedisService, create_agent_repository
from .utils import setup_logging

logger = logging.getLogger("agent_orchestrator")


async def _connect_redis(settings: OrchestratorSettings) -> Optional[RedisService]:
    redis_service = RedisService(settings.redis_url)
    try:
        await redis_service.connect()
    except (RedisError, OSError) as e:
        if settings.repository_backend == "redis":
            raise ConfigurationError(f"Redis backend unavailable: {e}", "redis_url") from e
        logger.warning(f"Redis connection failed ({e}); continuing without the event store")
        await redis_service.disconnect()
        return None
    return redis_service


async def main(settings: Optional[OrchestratorSettings] = None) -> None:
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    logger.info("=" * 50)
    logger.info("Agent Orchestrator starting")
    logger.info("=" * 50)

    event_bus = EventBus()
    metrics = MetricsCollector()
    executor = ResilientOperationExecutor.from_settings(settings, metrics=metrics, event_bus=event_bus)

    # 1. Redis (event store, optional agent backend)
    redis_service = await _connect_redis(settings)
    event_store = None
    if redis_service is not None:
        event_store = EventStore(redis_service, executor, max_queue_size=settings.event_queue_size)
        event_store.attach(event_bus)
        await event_store.start()

    # 2. Orchestrator and restored agents
    repository = create_agent_repository(
        settings.repository_backend,
        storage_dir=settings.storage_dir,
        redis_service=redis_service,
    )
    orchestrator = Orchestrator(
        LocalAgentRuntime(),
        settings=settings,
        event_bus=event_bus,
        repository=repository,
        executor=executor,
        metrics=metrics,
    )
    await orchestrator.restore_agents()

    # 3. HTTP query surface
    app = create_app(orchestrator, event_store=event_store)
    config = uvicorn.Config(
        app, host="0.0.0.0", port=settings.http_port, log_level=settings.log_level.lower()
    )
    server = uvicorn.Server(config)
    logger.info(f"HTTP API: http://localhost:{settings.http_port}")

    try:
        await server.serve()
    finally:
        orchestrator.cancel()
        await orchestrator.checkpoint()
        if event_store is not None:
            await event_store.stop()
        if redis_service is not None:
            await redis_service.disconnect()
        logger.info("Agent Orchestrator stopped")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server stopped")
    except ConfigurationError as error:
        logger.error(f"Failed to start server: {error}")
        sys.exit(1)


if __name__ == "__main__":
    run()
