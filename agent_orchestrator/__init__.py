"""
Agent Orchestrator - scheduling and resilient dispatch for a pool of agents.
"""

from .execution import Orchestrator
from .models import Task, Agent, SpawnAgentRequest, RunResult
from .services import EventBus

__version__ = "0.1.0"

__all__ = [
    "Orchestrator",
    "Task",
    "Agent",
    "SpawnAgentRequest",
    "RunResult",
    "EventBus",
    "__version__",
]
