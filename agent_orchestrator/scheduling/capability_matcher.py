"""
Capability Matcher - scores agents against task requirements

Capability names are a controlled vocabulary, so matching is exact set overlap
after normalisation (strip + lowercase). All functions here are pure.
"""

from dataclasses import dataclass
from typing import Iterable, List, Set

from ..models.agent import Agent
from ..models.assignment import AssignmentCriteria
from ..models.task import Task


def normalize_capabilities(capabilities: Iterable[str]) -> Set[str]:
    return {c.strip().lower() for c in capabilities if c and c.strip()}


@dataclass(frozen=True)
class ScoredCandidate:
    agent: Agent
    score: float
    criteria: AssignmentCriteria


class CapabilityMatcher:
    """
    Agent/task scoring.

    Example:
        matcher = CapabilityMatcher()
        matcher.score(agent, task)       # 0.5 when half the requirements match
        matcher.rank(agents, task)       # best candidate first
    """

    def __init__(self, capability_weight: float = 0.7, workload_weight: float = 0.3):
        self.capability_weight = capability_weight
        self.workload_weight = workload_weight

    def score(self, agent: Agent, task: Task) -> float:
        """Fraction of the task's required capabilities the agent has, in [0, 1]"""
        required = normalize_capabilities(task.required_capabilities)
        if not required:
            return 1.0
        have = normalize_capabilities(agent.capabilities)
        return len(required & have) / len(required)

    def workload_balance(self, agent: Agent) -> float:
        """1.0 for an unloaded agent, 0.0 for a full one"""
        if agent.max_capacity <= 0:
            return 0.0
        return max(0.0, 1.0 - agent.current_load / agent.max_capacity)

    def criteria(self, agent: Agent, task: Task) -> AssignmentCriteria:
        return AssignmentCriteria(
            capability_match=self.score(agent, task),
            workload_balance=self.workload_balance(agent),
            capability_weight=self.capability_weight,
            workload_weight=self.workload_weight,
        )

    def combined_score(self, criteria: AssignmentCriteria) -> float:
        return (
            criteria.capability_match * criteria.capability_weight
            + criteria.workload_balance * criteria.workload_weight
        )

    def rank(self, agents: Iterable[Agent], task: Task) -> List[ScoredCandidate]:
        """
        Score every agent for `task`, best first.

        Ties keep the input order, so the pool's ordering decides between
        otherwise identical agents.
        """
        scored = []
        for agent in agents:
            criteria = self.criteria(agent, task)
            scored.append(ScoredCandidate(agent, self.combined_score(criteria), criteria))
        scored.sort(key=lambda c: c.score, reverse=True)
        return scored
