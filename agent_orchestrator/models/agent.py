from enum import Enum
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Set, Union
from uuid import uuid4
from pydantic import BaseModel, Field


class AgentStatus(str, Enum):
    IDLE = "idle"
    WORKING = "working"
    ERROR = "error"
    OFFLINE = "offline"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConfigPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# =============================================================================
# AgentConfig variants
#
# The natural-language resolver produces one of these. Each variant knows
# which capability names it contributes, so matching never inspects types.
# =============================================================================

class _BaseAgentConfig(BaseModel):
    complexity: Complexity = Complexity.MEDIUM
    priority: ConfigPriority = ConfigPriority.MEDIUM

    def capabilities(self) -> Set[str]:
        raise NotImplementedError


class DeveloperConfig(_BaseAgentConfig):
    category: Literal["developer"] = "developer"
    primary_domain: Literal["frontend", "backend", "fullstack", "mobile", "ai-ml", "data"] = "fullstack"
    languages: List[str] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=list)
    specializations: List[str] = Field(default_factory=list)
    toolchain: List[str] = Field(default_factory=list)

    def capabilities(self) -> Set[str]:
        caps = {self.primary_domain, "development"}
        if self.primary_domain == "fullstack":
            caps.update({"frontend", "backend"})
        caps.update(self.languages, self.frameworks, self.specializations, self.toolchain)
        return caps


class ArchitectConfig(_BaseAgentConfig):
    category: Literal["architect"] = "architect"
    scope: Literal["software", "database", "cloud", "integration", "performance", "security"] = "software"
    focus_areas: List[str] = Field(default_factory=list)
    decision_level: Literal["tactical", "strategic", "operational"] = "tactical"
    system_types: List[str] = Field(default_factory=list)

    def capabilities(self) -> Set[str]:
        caps = {"architecture", f"{self.scope}-architecture", self.scope}
        caps.update(self.focus_areas, self.system_types)
        return caps


class QualityConfig(_BaseAgentConfig):
    category: Literal["quality"] = "quality"
    primary_focus: Literal["testing", "security", "performance", "accessibility", "audit"] = "testing"
    testing_types: List[str] = Field(default_factory=list)
    security_scope: List[str] = Field(default_factory=list)
    audit_areas: List[str] = Field(default_factory=list)
    toolchain: List[str] = Field(default_factory=list)

    def capabilities(self) -> Set[str]:
        caps = {"quality", self.primary_focus}
        caps.update(f"{t}-testing" for t in self.testing_types)
        caps.update(self.security_scope, self.audit_areas, self.toolchain)
        return caps


class ProcessConfig(_BaseAgentConfig):
    category: Literal["process"] = "process"
    role: Literal["product-manager", "scrum-master", "release-manager", "technical-writer", "designer"] = "product-manager"
    methodologies: List[str] = Field(default_factory=list)
    stakeholders: List[str] = Field(default_factory=list)
    deliverables: List[str] = Field(default_factory=list)
    communication_style: Literal["technical", "business", "user-focused"] = "technical"

    def capabilities(self) -> Set[str]:
        caps = {"process", self.role}
        caps.update(self.methodologies, self.deliverables)
        return caps


AgentConfig = Annotated[
    Union[DeveloperConfig, ArchitectConfig, QualityConfig, ProcessConfig],
    Field(discriminator="category"),
]


class Agent(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    capabilities: Set[str] = Field(default_factory=set)

    status: AgentStatus = AgentStatus.IDLE
    current_load: int = 0
    max_capacity: int = Field(default=1, ge=1)

    config: Optional[AgentConfig] = None

    created_at: datetime = Field(default_factory=datetime.now)
    last_activity: datetime = Field(default_factory=datetime.now)

    @property
    def has_capacity(self) -> bool:
        return self.current_load < self.max_capacity

    @property
    def is_available(self) -> bool:
        return self.status == AgentStatus.IDLE and self.has_capacity


class SpawnAgentRequest(BaseModel):
    """Input of Orchestrator.spawn_agent and AgentRuntime.spawn"""
    name: str
    config: Optional[AgentConfig] = None
    extra_capabilities: Set[str] = Field(default_factory=set)
    max_capacity: Optional[int] = Field(default=None, ge=1)
    agent_id: Optional[str] = None

    def resolve_capabilities(self) -> Set[str]:
        caps = set(self.extra_capabilities)
        if self.config is not None:
            caps.update(self.config.capabilities())
        return {c.strip().lower() for c in caps if c and c.strip()}


class AgentStats(BaseModel):
    total: int = 0
    idle: int = 0
    working: int = 0
    error: int = 0
    offline: int = 0


class AgentCapacity(BaseModel):
    current_load: int
    max_capacity: int
    is_available: bool
