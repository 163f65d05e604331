# opsconsole/query_builder/models.py

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Float
from datetime import datetime
from opsconsole.core.database import Base


class QueryExecutionLog(Base):
    """Log of visual query executions with the exact SQL that ran."""

    __tablename__ = "query_execution_logs"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, nullable=False, index=True)
    query_id = Column(String, nullable=False)
    query_name = Column(String, nullable=True)
    sql_text = Column(Text, nullable=False)
    row_count = Column(Integer, nullable=True)
    execution_time_ms = Column(Float, nullable=True)
    success = Column(Boolean, nullable=False)
    error_type = Column(String, nullable=True)
    error_message = Column(String, nullable=True)
    executed_at = Column(DateTime, default=datetime.now)
