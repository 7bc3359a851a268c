from .base import AgentHandle, AgentRuntime, LocalAgentRuntime

__all__ = ["AgentHandle", "AgentRuntime", "LocalAgentRuntime"]
