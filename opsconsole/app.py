"""FastAPI application factory for the operations console."""

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from opsconsole.core.database import SessionLocal, init_db
from opsconsole.core.router import register_routes
from opsconsole.logging.exception_handlers import (
    general_exception_handler,
    query_builder_exception_handler,
    request_validation_exception_handler,
)
from opsconsole.logging.middleware import LoggingMiddleware
from opsconsole.query.exceptions import QueryBuilderError
from opsconsole.query_builder.service import QuerySessionRegistry


def create_app(session_factory: sessionmaker = SessionLocal) -> FastAPI:
    """
    Build the application.

    ``session_factory`` produces sessions for the application database, where
    request logs are written outside of request dependencies.
    """
    app = FastAPI(docs_url="/api/docs", redoc_url="/api/redoc", openapi_url="/api/openapi.json")
    init_db(bind=session_factory.kw.get("bind"))

    app.state.session_factory = session_factory
    app.state.query_sessions = QuerySessionRegistry()

    # Add request logger middleware
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(QueryBuilderError, query_builder_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    return app
