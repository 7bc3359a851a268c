"""
Errors - error taxonomy and standard error payloads.
"""

from .exceptions import (
    OrchestratorError,
    DependencyCycleError,
    TaskValidationError,
    CapacityExceededError,
    AgentNotFoundError,
    CircuitOpenError,
    RetryExhaustedError,
    AgentSpawnError,
    DuplicateAgentError,
    RunInProgressError,
    NonRetryableError,
    ConfigurationError,
)

from .error_response import ErrorResponse, ErrorType, ErrorSeverity

__all__ = [
    # Exceptions
    "OrchestratorError",
    "DependencyCycleError",
    "TaskValidationError",
    "CapacityExceededError",
    "AgentNotFoundError",
    "CircuitOpenError",
    "RetryExhaustedError",
    "AgentSpawnError",
    "DuplicateAgentError",
    "RunInProgressError",
    "NonRetryableError",
    "ConfigurationError",

    # Response
    "ErrorResponse",
    "ErrorType",
    "ErrorSeverity",
]
