import logging
import traceback
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException
from tortoise.exceptions import DoesNotExist, IntegrityError

from kitchen_orders.core.errors import AppError
from kitchen_orders.schemas.response import ErrorResponse

log = logging.getLogger("uvicorn")


# ----------- Exception Handlers (called by FastAPI) -----------

def app_error_handler(request: Request, exc: AppError):
    """Handles the domain errors raised by services and dependencies."""
    if exc.status_code >= 500:
        log.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse.build(exc.code, exc.message))


def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404, 405)."""
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse.build("http_error", str(exc.detail)))


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles Pydantic validation errors (422 Unprocessable Entity)."""
    body = ErrorResponse.build("validation_error", "Invalid input data", jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=422, content=body)


def integrity_error_handler(request: Request, exc: IntegrityError):
    """Unique constraint hits (duplicate email, unit name, ...) are client errors."""
    log.warning(f"Integrity error on path {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content=ErrorResponse.build("validation_error", "Duplicate or conflicting record"))


def does_not_exist_handler(request: Request, exc: DoesNotExist):
    return JSONResponse(status_code=404, content=ErrorResponse.build("not_found", "Resource not found"))


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    # Log the full traceback for debugging purposes
    log.error(f"Unhandled exception on path: {request.url.path}\n{traceback.format_exc()}")
    return JSONResponse(status_code=500, content=ErrorResponse.build("server_error", "Internal Server Error"))


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""

    # Register handlers
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(DoesNotExist, does_not_exist_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app
