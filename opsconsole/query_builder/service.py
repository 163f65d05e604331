# opsconsole/query_builder/service.py
"""Service layer for the visual query builder API."""

import logging
from typing import Dict, List, Optional

from sqlalchemy.engine import Engine

from opsconsole.core.config import MAX_SESSIONS
from opsconsole.query import (
    NothingToExecuteError,
    QueryBuilder,
    QueryExecutionError,
    QueryJoin,
    QueryResult,
    QuerySession,
    SessionBusyError,
    SQLAlchemyExecutor,
    SQLAlchemyIntrospector,
)
from opsconsole.query_builder.dao import QueryExecutionLogDAO
from opsconsole.query_builder.models import QueryExecutionLog
from opsconsole.query_builder.schemas import (
    CatalogRead,
    CatalogWarningRead,
    ExecutionSummaryRead,
    QueryModelRead,
    QuerySessionRead,
    TableInfoRead,
)

logger = logging.getLogger(__name__)


class QuerySessionRegistry:
    """
    In-memory store of open query sessions.

    When full, the least recently used idle session is evicted to make room.
    """

    def __init__(self, max_sessions: int = MAX_SESSIONS):
        self.max_sessions = max_sessions
        self._sessions: Dict[str, QuerySession] = {}

    def add(self, session: QuerySession) -> QuerySession:
        if len(self._sessions) >= self.max_sessions:
            self._evict_one()
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> Optional[QuerySession]:
        session = self._sessions.get(session_id)
        if session is not None:
            session.touch()
        return session

    def remove(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.cancel()
        return True

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict_one(self) -> None:
        idle = [s for s in self._sessions.values() if not s.is_executing]
        if not idle:
            raise SessionBusyError("Too many sessions are executing queries, try again later")
        oldest = min(idle, key=lambda s: s.last_used_at)
        logger.info(f"Evicting idle query session {oldest.id}")
        del self._sessions[oldest.id]


class QueryBuilderService:
    """Starts sessions, reports their state and runs their queries with an audit trail."""

    def __init__(self, registry: QuerySessionRegistry, execution_log_dao: QueryExecutionLogDAO, warehouse_engine: Engine):
        self.registry = registry
        self.execution_log_dao = execution_log_dao
        self.warehouse_engine = warehouse_engine

    # ===== SESSIONS =====

    async def start_session(self) -> QuerySession:
        """Load the warehouse catalog and open a session that compiles for the warehouse dialect."""
        session = await QuerySession.start(
            SQLAlchemyIntrospector(self.warehouse_engine),
            builder=QueryBuilder.for_dialect(self.warehouse_engine.dialect),
        )
        self.registry.add(session)
        logger.info(f"Started query session {session.id} with {len(session.catalog)} tables")
        return session

    def get_session(self, session_id: str) -> Optional[QuerySession]:
        return self.registry.get(session_id)

    def end_session(self, session_id: str) -> bool:
        return self.registry.remove(session_id)

    # ===== READ MODELS =====

    def describe(self, session: QuerySession) -> QuerySessionRead:
        sql = session.current_sql()
        return QuerySessionRead(
            session_id=session.id,
            query=QueryModelRead(**session.model.to_dict()),
            sql=sql,
            executable=session.is_executable(),
            is_executing=session.is_executing,
            catalog_table_count=len(session.catalog),
            catalog_warnings=self._warnings(session),
        )

    def catalog(self, session: QuerySession) -> CatalogRead:
        return CatalogRead(
            tables=[TableInfoRead.model_validate(table) for table in session.catalog.tables.values()],
            warnings=self._warnings(session),
        )

    def suggest_joins(self, session: QuerySession, left_table: str, right_table: str) -> List[QueryJoin]:
        return session.catalog.suggest_joins(left_table, right_table)

    @staticmethod
    def _warnings(session: QuerySession) -> List[CatalogWarningRead]:
        return [CatalogWarningRead.model_validate(w) for w in session.catalog.warnings]

    # ===== EXECUTION =====

    async def execute(self, session: QuerySession) -> QueryResult:
        """Execute the session's query and record the outcome in the execution log."""
        sql = session.current_sql()
        try:
            result = await session.execute(SQLAlchemyExecutor(self.warehouse_engine))
        except (NothingToExecuteError, SessionBusyError):
            # Rejected before reaching the warehouse
            raise
        except QueryExecutionError as e:
            self._log_execution(session, sql, success=False, error=e)
            raise

        self._log_execution(
            session,
            result.sql,
            success=True,
            row_count=result.row_count,
            execution_time_ms=result.execution_time_ms,
        )
        return result

    def cancel(self, session: QuerySession) -> bool:
        return session.cancel()

    def get_execution_logs(self, session_id: str, limit: int = 50) -> List[QueryExecutionLog]:
        return self.execution_log_dao.get_by_session_id(session_id, limit)

    def get_execution_summary(self, session_id: str) -> ExecutionSummaryRead:
        """Count logged executions for a session by outcome."""
        total = self.execution_log_dao.count(session_id=session_id)
        failed = self.execution_log_dao.count(session_id=session_id, success=False)
        return ExecutionSummaryRead(session_id=session_id, total=total, succeeded=total - failed, failed=failed)

    def _log_execution(
        self,
        session: QuerySession,
        sql: str,
        success: bool,
        row_count: Optional[int] = None,
        execution_time_ms: Optional[float] = None,
        error: Optional[Exception] = None,
    ) -> None:
        error_message = str(error) if error else None
        # Truncate error message if too long
        if error_message and len(error_message) > 1000:
            error_message = error_message[:997] + "..."

        try:
            self.execution_log_dao.create(
                session_id=session.id,
                query_id=session.model.id,
                query_name=session.model.name,
                sql_text=sql,
                row_count=row_count,
                execution_time_ms=execution_time_ms,
                success=success,
                error_type=type(error).__name__ if error else None,
                error_message=error_message,
            )
        except Exception as log_error:
            self.execution_log_dao.db.rollback()
            logger.error(f"Failed to record execution log for session {session.id}: {log_error}")
