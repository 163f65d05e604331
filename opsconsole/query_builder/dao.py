"""Data Access Object for query execution logs."""

from typing import List

from sqlalchemy.orm import Session

from opsconsole.core.base_dao import BaseDAO
from opsconsole.query_builder.models import QueryExecutionLog


class QueryExecutionLogDAO(BaseDAO[QueryExecutionLog]):
    """DAO for query execution log operations."""

    def __init__(self, db_session: Session):
        super().__init__(QueryExecutionLog, db_session)

    def get_by_session_id(self, session_id: str, limit: int = 50) -> List[QueryExecutionLog]:
        """Get execution logs for a session, most recent first."""
        return self.get_all_by_field("session_id", session_id, limit=limit, order_by="executed_at")
