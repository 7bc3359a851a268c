"""
FastAPI application factory.
"""

from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..errors import ErrorResponse, OrchestratorError
from .routes import router


def create_app(
    orchestrator,
    event_store=None,
    title: str = "Agent Orchestrator API",
    allow_origins: Optional[List[str]] = None,
) -> FastAPI:
    """
    Build the app around an existing orchestrator.

    Args:
        orchestrator: Orchestrator served by the routes
        event_store: optional EventStore backing /api/events
        title: API title
        allow_origins: CORS origins (default: ["*"])
    """
    app = FastAPI(title=title)
    app.state.orchestrator = orchestrator
    app.state.event_store = event_store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(OrchestratorError)
    async def orchestrator_error_handler(request: Request, exc: OrchestratorError):
        return JSONResponse(
            status_code=400,
            content=ErrorResponse.from_exception(exc).to_dict(),
        )

    app.include_router(router)
    return app
