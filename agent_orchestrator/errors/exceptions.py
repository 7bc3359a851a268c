"""
Exceptions - orchestrator error taxonomy

Every error raised by the scheduling and dispatch engine derives from
OrchestratorError so callers can surface a code and structured details.
"""

from typing import Optional, Dict, Any, Iterable, List


class OrchestratorError(Exception):
    """Base error for the orchestrator"""

    # Errors flagged False are never retried by the resilient executor
    retryable: bool = True

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Args:
            message: human readable message
            code: stable error code
            details: extra structured context
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert the error to a dictionary"""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class DependencyCycleError(OrchestratorError):
    """The submitted task set contains a dependency cycle"""

    retryable = False

    def __init__(self, task_ids: Iterable[str], cycle: Optional[List[str]] = None):
        self.task_ids = sorted(task_ids)
        self.cycle = list(cycle or [])
        path = " -> ".join(self.cycle) if self.cycle else ", ".join(self.task_ids)
        super().__init__(
            message=f"Circular dependency detected involving tasks: {path}",
            code="DEPENDENCY_CYCLE",
            details={"task_ids": self.task_ids, "cycle": self.cycle}
        )


class TaskValidationError(OrchestratorError):
    """The submitted task set is malformed (duplicate ids, unknown dependencies)"""

    retryable = False

    def __init__(self, message: str, task_id: Optional[str] = None, **details):
        if task_id:
            details["task_id"] = task_id
        super().__init__(
            message=message,
            code="TASK_VALIDATION_ERROR",
            details=details
        )


class CapacityExceededError(OrchestratorError):
    """Reserving the agent would exceed its max capacity"""

    def __init__(self, agent_id: str, current_load: int, max_capacity: int, task_id: Optional[str] = None):
        super().__init__(
            message=(
                f"Agent '{agent_id}' is at capacity "
                f"({current_load}/{max_capacity})"
            ),
            code="CAPACITY_EXCEEDED",
            details={
                "agent_id": agent_id,
                "task_id": task_id,
                "current_load": current_load,
                "max_capacity": max_capacity,
            }
        )


class AgentNotFoundError(OrchestratorError):
    """No agent with the given id is registered in the pool"""

    retryable = False

    def __init__(self, agent_id: str):
        super().__init__(
            message=f"Agent '{agent_id}' not found",
            code="AGENT_NOT_FOUND",
            details={"agent_id": agent_id}
        )


class CircuitOpenError(OrchestratorError):
    """The circuit for an operation class is OPEN; the operation was not invoked"""

    retryable = False

    def __init__(self, operation_class: str, retry_after_ms: Optional[float] = None):
        super().__init__(
            message=f"Circuit is OPEN for operation: {operation_class}",
            code="CIRCUIT_OPEN",
            details={
                "operation_class": operation_class,
                "retry_after_ms": retry_after_ms,
            }
        )
        self.operation_class = operation_class


class RetryExhaustedError(OrchestratorError):
    """All retry attempts of an operation failed"""

    retryable = False

    def __init__(self, operation_class: str, attempts: int, last_error: BaseException):
        super().__init__(
            message=(
                f"Operation {operation_class} failed after {attempts} attempts: "
                f"{last_error}"
            ),
            code="MAX_RETRIES_EXCEEDED",
            details={
                "operation_class": operation_class,
                "attempts": attempts,
                "last_error": str(last_error),
                "last_error_type": type(last_error).__name__,
            }
        )
        self.operation_class = operation_class
        self.attempts = attempts
        self.last_error = last_error


class AgentSpawnError(OrchestratorError):
    """Spawn request failed validation; never retried"""

    retryable = False

    def __init__(self, message: str, errors: Optional[List[str]] = None, name: Optional[str] = None):
        super().__init__(
            message=message,
            code="AGENT_SPAWN_ERROR",
            details={"errors": errors or [], "name": name}
        )
        self.errors = errors or []


class DuplicateAgentError(OrchestratorError):
    """An agent with the same id is already registered in the pool"""

    retryable = False

    def __init__(self, agent_id: str):
        super().__init__(
            message=f"Agent '{agent_id}' already exists",
            code="DUPLICATE_AGENT",
            details={"agent_id": agent_id}
        )
        self.agent_id = agent_id


class RunInProgressError(OrchestratorError):
    """`run` was called while another run is still executing"""

    retryable = False

    def __init__(self):
        super().__init__(
            message="A run is already in progress",
            code="RUN_IN_PROGRESS",
        )


class NonRetryableError(OrchestratorError):
    """
    Tags an arbitrary error as non-retryable.

    Runtime adapters raise this (usually `raise NonRetryableError(e) from e`)
    when they know a failure is permanent.
    """

    retryable = False

    def __init__(self, error: BaseException):
        super().__init__(
            message=str(error),
            code="NON_RETRYABLE",
            details={"error_type": type(error).__name__}
        )
        self.error = error


class ConfigurationError(OrchestratorError):
    """Invalid orchestrator configuration"""

    retryable = False

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(
            message=message,
            code="INVALID_CONFIG",
            details={"setting": setting} if setting else {}
        )
