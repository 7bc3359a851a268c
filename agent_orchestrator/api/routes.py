"""
HTTP query surface.

Read-only views over the orchestrator: agent stats, per-agent capacity,
circuit states and the persisted event timeline.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from ..errors import AgentNotFoundError, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _orchestrator(request: Request):
    return request.app.state.orchestrator


@router.get("/health")
async def health(request: Request):
    event_store = getattr(request.app.state, "event_store", None)
    redis_ok: Optional[bool] = None
    if event_store is not None:
        redis_ok = await event_store.redis_service.health_check()
    return {
        "status": "ok",
        "running": _orchestrator(request).is_running,
        "redis": redis_ok,
    }


@router.get("/api/agents/stats")
async def get_agent_stats(request: Request):
    return _orchestrator(request).get_agent_stats().model_dump()


@router.get("/api/agents/{agent_id}/capacity")
async def get_agent_capacity(agent_id: str, request: Request):
    try:
        capacity = _orchestrator(request).get_agent_capacity(agent_id)
    except AgentNotFoundError:
        return JSONResponse(
            status_code=404,
            content=ErrorResponse.not_found("agent", agent_id).to_dict(),
        )
    return capacity.model_dump()


@router.get("/api/circuits")
async def get_circuits(request: Request):
    return _orchestrator(request).get_circuit_summary()


@router.get("/api/events")
async def get_events(request: Request, count: int = Query(100, ge=1, le=1000)):
    event_store = getattr(request.app.state, "event_store", None)
    if event_store is not None:
        events = await event_store.get_recent_events(count)
    else:
        # Without Redis, serve the bus history (oldest first -> newest first)
        recent = _orchestrator(request).event_bus.recent(count)
        events = [e.to_dict() for e in reversed(recent)]
    return {"events": events, "count": len(events)}
