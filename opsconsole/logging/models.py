"""
Request log table for the ops console.

LoggingMiddleware writes one row per API call. Query builder edits can be
traced here next to the execution audit kept in query_builder.models.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float
from opsconsole.core.database import Base


class Log(Base):
    """One API request to the console with its response and timing."""

    __tablename__ = "log"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime, default=datetime.now)
    method = Column(String, nullable=False)
    path = Column(String, nullable=False)
    status_code = Column(Integer, nullable=False)
    client_ip = Column(String, nullable=True)
    request_body = Column(String, nullable=True)
    response_body = Column(String, nullable=True)
    processing_time = Column(Float, nullable=True)
    user_agent = Column(String, nullable=True)
    username = Column(String, nullable=True)
    hostname = Column(String, nullable=True)
    application_id = Column(String, nullable=True)
