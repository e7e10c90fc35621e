"""
cohortdesk/errors.py
Centralized error taxonomy for the core operations.

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional)
}

ORDER OF REJECTION:
- ValidationError: malformed input, raised before any guard runs
- GuardError: business rule violated, raised after guards, before mutation
- ConsistencyError: a relationship update left the two views disagreeing.
  Never expected in correct operation; logged and rolled back.
"""

import logging
import uuid
from typing import Optional, Dict, Any
from fastapi import status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    CONSISTENCY_ERROR = "CONSISTENCY_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CohortDeskError(Exception):
    """Base exception with consistent structure"""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class ValidationError(CohortDeskError):
    """422 - malformed input (missing field, out-of-range number)"""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error="Validation Error",
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            details=details
        )

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Wrap a pydantic.ValidationError, keeping its field errors."""
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "message": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in exc.errors()
        ]
        return cls("Invalid input data", details={"errors": errors})


class NotFoundError(CohortDeskError):
    """404 - entity does not exist"""
    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message += f": {resource_id}"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="Not Found",
            message=message,
            code=ErrorCode.NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class GuardError(CohortDeskError):
    """409 - business rule rejected the operation; code is the guard reason"""
    def __init__(self, reason: str, message: str, details: Optional[Dict] = None):
        self.reason = reason
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="Guard Rejected",
            message=message,
            code=reason,
            details=details
        )


class ConcurrentModificationError(CohortDeskError):
    """409 - another writer changed the same rows first"""
    def __init__(self, message: str = "The record was modified by another request. Reload and try again."):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="Conflict",
            message=message,
            code=ErrorCode.CONCURRENT_MODIFICATION
        )


class ConsistencyError(CohortDeskError):
    """500 - internal invariant broken; the transaction is rolled back"""
    def __init__(self, message: str, details: Optional[Dict] = None):
        self.log_id = str(uuid.uuid4())[:8]
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal Server Error",
            message=message,
            code=ErrorCode.CONSISTENCY_ERROR,
            details={**(details or {}), "log_id": self.log_id}
        )
        logger.error(f"[CONSISTENCY ERROR] [{self.log_id}] {message} | {details or {}}")
