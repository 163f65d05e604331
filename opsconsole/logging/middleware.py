# opsconsole/logging/middleware.py
"""Request logging middleware persisting every API call to the log table."""

import getpass
import os
import platform
import socket
import time
from datetime import datetime
from typing import Callable

from fastapi import Request
from starlette.background import BackgroundTask
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from opsconsole.core.config import APPLICATION_ID
from opsconsole.logging.models import Log

# Paths that should be excluded from logging
EXCLUDED_PATHS = ("/api/docs", "/api/redoc", "/api/openapi.json")

MAX_BODY_LENGTH = 10000


def current_username() -> str:
    try:
        return os.environ.get("USER") or os.environ.get("USERNAME") or getpass.getuser() or "unknown_user"
    except Exception:
        return "unknown_user"


def current_hostname() -> str:
    try:
        return socket.gethostname() or platform.node() or "unknown_host"
    except Exception:
        return "unknown_host"


def truncate(text: str, limit: int = MAX_BODY_LENGTH) -> str:
    if text and len(text) > limit:
        return text[: limit - 3] + "..."
    return text


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Times each request and writes a Log row in a background task.

    Rows are written through ``app.state.session_factory`` so the application
    and its tests decide which database receives them.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.username = current_username()
        self.hostname = current_hostname()
        self.application_id = APPLICATION_ID

    async def dispatch(self, request: Request, call_next: Callable):
        if request.url.path.startswith(EXCLUDED_PATHS):
            return await call_next(request)

        start_time = time.time()

        body_bytes = await request.body()
        request_body = body_bytes.decode("utf-8", errors="ignore")

        # Reconstruct stream
        async def receive() -> dict:
            return {"type": "http.request", "body": body_bytes}

        request = Request(request.scope, receive=receive)

        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000
        session_factory = request.app.state.session_factory

        def log_to_db():
            with session_factory() as session:
                log = Log(
                    timestamp=datetime.now(),
                    method=request.method,
                    path=str(request.url.path),
                    status_code=response.status_code,
                    client_ip=request.client.host if request.client else None,
                    request_body=truncate(request_body),
                    processing_time=duration_ms,
                    user_agent=request.headers.get("user-agent"),
                    username=self.username,
                    hostname=self.hostname,
                    application_id=self.application_id,
                )
                session.add(log)
                session.commit()

        response.background = getattr(response, "background", None) or BackgroundTask(log_to_db)
        return response
