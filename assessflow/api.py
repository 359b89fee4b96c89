"""
Central API router and exception handlers.

This module provides:
- ``main_router`` including every feature router
- The handlers that render ``AssessFlowError``, database failures and request
  validation failures as the standard error body
"""

import logging

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from assessflow.assessments.controller import router as attempts_router
from assessflow.common.error_handling import AssessFlowError, convert_exception, error_response, log_error
from assessflow.common.logger import app_logger
from assessflow.dashboard.controller import router as dashboard_router
from assessflow.reporting.controller import router as reports_router

logger = app_logger.getChild("api")

# Create main API router
main_router = APIRouter()
main_router.include_router(attempts_router, tags=["attempts"])
main_router.include_router(dashboard_router, tags=["dashboard"])
main_router.include_router(reports_router, tags=["reports"])


async def assessflow_exception_handler(request: Request, exc: AssessFlowError) -> JSONResponse:
    """Render a domain error with the HTTP status of its class."""
    level = logging.ERROR if exc.http_status >= 500 else logging.INFO
    log_error(exc, level=level, context={"path": request.url.path, "method": request.method})
    return JSONResponse(status_code=exc.http_status, content=error_response(exc))


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Render an unexpected persistence failure as a 500 error body."""
    error = convert_exception(exc, context={"path": request.url.path, "method": request.method})
    log_error(error, include_stack_trace=True)
    return JSONResponse(status_code=error.http_status, content=error_response(error, include_details=False))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle validation errors and return a standardized response.

    Args:
        request: The incoming request
        exc: The validation exception

    Returns:
        A JSON response with error details
    """
    error_details = []
    for error in exc.errors():
        error_details.append({
            "location": list(error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "status": "error",
            "message": "Validation error",
            "details": error_details
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AssessFlowError, assessflow_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
