# opsconsole/logging/exception_handlers.py

import json
import logging
import traceback
from datetime import datetime

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from opsconsole.core.config import APPLICATION_ID
from opsconsole.logging.middleware import current_hostname, current_username
from opsconsole.logging.models import Log
from opsconsole.query.exceptions import (
    NothingToExecuteError,
    QueryBuilderError,
    QueryExecutionError,
    QueryReferenceError,
    QueryTimeoutError,
    QueryValidationError,
    SessionBusyError,
)

logger = logging.getLogger(__name__)

USERNAME = current_username()
HOSTNAME = current_hostname()

# Most specific class first
QUERY_ERROR_STATUS = (
    (QueryReferenceError, 404),
    (QueryValidationError, 422),
    (NothingToExecuteError, 400),
    (SessionBusyError, 409),
    (QueryTimeoutError, 504),
    (QueryExecutionError, 502),
)


def status_for(exc: QueryBuilderError) -> int:
    for error_type, status_code in QUERY_ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 400


def safe_json_dumps(obj):
    return json.dumps(obj, indent=2, default=str)


def _log_error(request: Request, status_code: int, response_body: str) -> None:
    """Persist an error response to the log table; never let logging break the response."""
    try:
        with request.app.state.session_factory() as session:
            session.add(Log(
                timestamp=datetime.now(),
                method=request.method,
                path=str(request.url.path),
                status_code=status_code,
                client_ip=request.client.host if request.client else None,
                response_body=response_body,
                processing_time=None,
                user_agent=request.headers.get("user-agent"),
                username=USERNAME,
                hostname=HOSTNAME,
                application_id=APPLICATION_ID,
            ))
            session.commit()
    except Exception as log_error:
        logger.error(f"Error logging exception: {log_error}")


async def query_builder_exception_handler(request: Request, exc: QueryBuilderError):
    """Map query builder errors to HTTP responses."""
    status_code = status_for(exc)
    content = {"detail": str(exc), "error_type": type(exc).__name__}
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
        _log_error(request, status_code, safe_json_dumps(content))
    return JSONResponse(status_code=status_code, content=content)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""

    # Convert errors to a safe format for JSON response
    def convert_error(error):
        if isinstance(error, dict):
            return {k: convert_error(v) for k, v in error.items()}
        elif isinstance(error, list):
            return [convert_error(item) for item in error]
        elif isinstance(error, (str, int, float, bool)) or error is None:
            return error
        else:
            return str(error)

    safe_errors = convert_error(exc.errors())
    return JSONResponse(status_code=422, content={"detail": safe_errors})


async def general_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions and log them to database"""
    error_traceback = traceback.format_exc()
    logger.error(f"Unhandled {type(exc).__name__} on {request.url.path}: {exc}")
    _log_error(request, 500, safe_json_dumps({
        "error": str(exc),
        "type": type(exc).__name__,
        "traceback": error_traceback,
    }))
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
