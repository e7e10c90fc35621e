"""
Error Handler

Maps the core's error taxonomy onto JSON responses:
{
    "success": false,
    "error": "...",
    "message": "...",
    "code": "...",
    "details": {...}
}
Unexpected exceptions become a 500 carrying only a log id, unless debug.
"""
import logging
import traceback
import uuid
from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cohortdesk.errors import CohortDeskError, ErrorCode

logger = logging.getLogger(__name__)

INTERNAL_MESSAGE = "An internal error occurred. Please try again or contact support."


def _request_context(request: Request, log_id: Optional[str] = None) -> dict:
    return {
        "log_id": log_id,
        "method": request.method,
        "path": request.url.path,
        "actor": request.headers.get("x-actor"),
    }


def setup_error_handlers(app, debug: bool = False):
    """
    Setup error handlers for FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Include exception text and traceback in 500 responses
    """

    @app.exception_handler(CohortDeskError)
    async def cohortdesk_error_handler(request: Request, exc: CohortDeskError):
        content = exc.to_dict()

        if exc.status_code >= 500:
            log_id = getattr(exc, "log_id", None) or str(uuid.uuid4())[:8]
            logger.error(f"Internal error [{log_id}]: {exc.message} | {_request_context(request, log_id)}")
            if not debug:
                content["message"] = INTERNAL_MESSAGE
                content["details"] = {"log_id": log_id}
        else:
            logger.warning(f"Handled error {exc.code}: {exc.message} | {_request_context(request)}")

        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "message": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "error": "Validation Error",
                "message": "Invalid input data",
                "code": ErrorCode.VALIDATION_ERROR,
                "details": {"errors": errors},
            }
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        log_id = str(uuid.uuid4())[:8]
        logger.exception(f"Unhandled exception [{log_id}] | {_request_context(request, log_id)}")

        details = {"log_id": log_id}
        if debug:
            details["traceback"] = traceback.format_exc()
            details["type"] = type(exc).__name__

        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal Server Error",
                "message": str(exc) if debug else INTERNAL_MESSAGE,
                "code": ErrorCode.INTERNAL_ERROR,
                "details": details,
            }
        )

    logger.info("Error handlers configured")
