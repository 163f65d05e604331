"""
Module for registering routes in the FastAPI application.
"""

from fastapi import FastAPI

from opsconsole.query_builder.router import router as query_builder_router


def register_routes(app: FastAPI) -> None:
    """
    Registers all the routes for the FastAPI application.

    Args:
        app (FastAPI): The FastAPI application instance.
    """
    app.include_router(query_builder_router, prefix="/api")
