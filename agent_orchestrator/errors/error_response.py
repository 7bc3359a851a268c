"""
ErrorResponse - standard error payload

Shared by the HTTP query surface and by RunResult failure records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from uuid import uuid4


class ErrorType(str, Enum):
    """Error category"""
    VALIDATION = "validation"
    CAPACITY = "capacity"
    RESILIENCE = "resilience"
    BUSINESS = "business"
    SYSTEM = "system"


class ErrorSeverity(str, Enum):
    """Error severity"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


_TYPE_BY_CODE = {
    "DEPENDENCY_CYCLE": (ErrorType.VALIDATION, ErrorSeverity.CRITICAL),
    "TASK_VALIDATION_ERROR": (ErrorType.VALIDATION, ErrorSeverity.ERROR),
    "AGENT_SPAWN_ERROR": (ErrorType.VALIDATION, ErrorSeverity.WARNING),
    "INVALID_CONFIG": (ErrorType.VALIDATION, ErrorSeverity.CRITICAL),
    "CAPACITY_EXCEEDED": (ErrorType.CAPACITY, ErrorSeverity.WARNING),
    "DUPLICATE_AGENT": (ErrorType.VALIDATION, ErrorSeverity.WARNING),
    "AGENT_NOT_FOUND": (ErrorType.BUSINESS, ErrorSeverity.WARNING),
    "RUN_IN_PROGRESS": (ErrorType.BUSINESS, ErrorSeverity.WARNING),
    "CIRCUIT_OPEN": (ErrorType.RESILIENCE, ErrorSeverity.ERROR),
    "MAX_RETRIES_EXCEEDED": (ErrorType.RESILIENCE, ErrorSeverity.ERROR),
}


@dataclass
class ErrorResponse:
    """Standard error response"""
    error_code: str
    message: str
    error_type: ErrorType = ErrorType.SYSTEM
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Optional[Dict[str, Any]] = None
    trace_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to a dictionary"""
        return {
            "success": False,
            "error": {
                "code": self.error_code,
                "type": self.error_type.value,
                "severity": self.severity.value,
                "message": self.message,
                "details": self.details,
                "traceId": self.trace_id,
                "timestamp": self.timestamp.isoformat()
            }
        }

    @classmethod
    def from_exception(cls, exception: BaseException, trace_id: Optional[str] = None):
        """Build an ErrorResponse from any exception"""
        from .exceptions import OrchestratorError

        if isinstance(exception, OrchestratorError):
            error_type, severity = _TYPE_BY_CODE.get(
                exception.code, (ErrorType.SYSTEM, ErrorSeverity.ERROR)
            )
            return cls(
                error_code=exception.code,
                message=exception.message,
                error_type=error_type,
                severity=severity,
                details=exception.details,
                trace_id=trace_id or str(uuid4())
            )

        return cls(
            error_code="INTERNAL_ERROR",
            message=str(exception) or type(exception).__name__,
            error_type=ErrorType.SYSTEM,
            severity=ErrorSeverity.ERROR,
            details={"error_type": type(exception).__name__},
            trace_id=trace_id or str(uuid4())
        )

    @classmethod
    def not_found(cls, resource: str, resource_id: str):
        """Resource not found"""
        return cls(
            error_code=f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} '{resource_id}' not found",
            error_type=ErrorType.BUSINESS,
            severity=ErrorSeverity.WARNING,
            details={"resource": resource, "id": resource_id}
        )
