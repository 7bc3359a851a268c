"""
Event Store - persists bus events to the Redis timeline

The bus delivers synchronously, so the store only enqueues; a background
worker writes each event through the resilient executor ("persist-event").
An event that cannot be written stays at the head of the queue and is retried
after `retry_interval`, which makes delivery at-least-once. The queue is
bounded by `max_queue_size`; when it is full the oldest queued event is
dropped to make room.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..errors import CircuitOpenError, RetryExhaustedError
from ..models.events import Event
from ..resilience import PERSIST_EVENT, ResilientOperationExecutor
from .redis_service import RedisService

logger = logging.getLogger(__name__)


class EventStore:
    """
    Redis-backed event timeline.

    Example:
        store = EventStore(redis_service, executor)
        store.attach(event_bus)
        await store.start()
        ...
        await store.stop()
    """

    def __init__(
        self,
        redis_service: RedisService,
        executor: ResilientOperationExecutor,
        retry_interval: float = 1.0,
        max_queue_size: int = 10000,
    ):
        self.redis_service = redis_service
        self._executor = executor
        self._retry_interval = retry_interval
        self._queue: "asyncio.Queue[Event]" = asyncio.Queue(maxsize=max_queue_size)
        self._dropped = 0
        self._worker: Optional[asyncio.Task] = None
        self._unsubscribe = None

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        """Events discarded because the queue was full"""
        return self._dropped

    def attach(self, event_bus) -> None:
        """Subscribe to every event type on `event_bus`"""
        self._unsubscribe = event_bus.subscribe(self._enqueue)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
            logger.info("[EventStore] Started")

    async def stop(self, flush_timeout: float = 5.0) -> None:
        """Detach, try to drain the queue, then stop the worker"""
        self.detach()
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=flush_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[EventStore] Stopping with {self.pending_count} unsaved events")
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("[EventStore] Stopped")

    async def store_event(self, event: Event) -> float:
        """Write one event now; returns its timeline score in ms"""
        return await self._executor.execute(
            lambda: self.redis_service.add_event(event.to_dict()),
            PERSIST_EVENT,
        )

    async def get_recent_events(self, count: int = 100) -> List[Dict[str, Any]]:
        """Newest first"""
        return await self.redis_service.get_recent_events(count)

    async def get_events_since(self, timestamp_ms: float, limit: int = 1000) -> List[Dict[str, Any]]:
        return await self.redis_service.get_events_since(timestamp_ms, limit)

    async def get_agent_events(self, agent_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        events = await self.get_recent_events(limit * 2)
        matched = []
        for event in events:
            payload = event.get("payload", {})
            agent = payload.get("agent") if isinstance(payload.get("agent"), dict) else {}
            if payload.get("agent_id") == agent_id or agent.get("id") == agent_id:
                matched.append(event)
                if len(matched) >= limit:
                    break
        return matched

    def _enqueue(self, event: Event) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            oldest = self._queue.get_nowait()
            self._queue.task_done()
            self._dropped += 1
            logger.warning(
                f"[EventStore] Queue full ({self._queue.maxsize}); dropped {oldest.type.value} "
                f"({self._dropped} dropped so far)"
            )
            self._queue.put_nowait(event)

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._persist(event)
            finally:
                self._queue.task_done()

    async def _persist(self, event: Event) -> None:
        while True:
            try:
                await self.store_event(event)
                return
            except (CircuitOpenError, RetryExhaustedError) as e:
                logger.warning(
                    f"[EventStore] Could not persist {event.type.value} ({e.code}); "
                    f"retrying in {self._retry_interval}s"
                )
                await asyncio.sleep(self._retry_interval)
            except Exception:
                logger.exception(f"[EventStore] Dropping unpersistable event {event.type.value}")
                return
