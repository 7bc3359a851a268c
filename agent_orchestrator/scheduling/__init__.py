from .capability_matcher import CapabilityMatcher, ScoredCandidate, normalize_capabilities
from .agent_pool import AgentPool
from .scheduler import TaskScheduler

__all__ = [
    "CapabilityMatcher",
    "ScoredCandidate",
    "normalize_capabilities",
    "AgentPool",
    "TaskScheduler",
]
