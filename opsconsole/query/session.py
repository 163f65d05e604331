# opsconsole/query/session.py
"""Query session: one catalog, one model and the latest execution result."""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from opsconsole.core.config import EXECUTION_TIMEOUT

from .builder import QueryBuilder, is_executable
from .catalog import SchemaCatalog
from .collaborators import QueryExecutor, SchemaIntrospector
from .exceptions import (
    NothingToExecuteError,
    QueryCancelledError,
    QueryExecutionError,
    QueryTimeoutError,
    SessionBusyError,
)
from .model import DEFAULT_QUERY_NAME, VisualQueryModel
from .schemas import QueryResult, new_item_id

logger = logging.getLogger(__name__)


class QuerySession:
    """
    Orchestrates catalog, model, compiler and execution for one user.

    SQL is recompiled from the live model on every ``current_sql`` call. Only
    one execution may be outstanding at a time; a second ``execute`` fails
    with SessionBusyError instead of queueing.
    """

    def __init__(self, catalog: SchemaCatalog, timeout: Optional[float] = None, builder: Optional[QueryBuilder] = None):
        self.id = new_item_id()
        self.catalog = catalog
        self.model = VisualQueryModel(catalog)
        self.builder = builder or QueryBuilder()
        self.timeout = timeout or EXECUTION_TIMEOUT
        self.last_result: Optional[QueryResult] = None
        self.created_at = datetime.now()
        self.last_used_at = self.created_at
        self._pending: Optional[asyncio.Future] = None
        self._cancel_requested = False

    @classmethod
    async def start(
        cls,
        introspector: SchemaIntrospector,
        timeout: Optional[float] = None,
        builder: Optional[QueryBuilder] = None,
        **catalog_options: Any,
    ) -> "QuerySession":
        """Load the catalog and open a session with an empty model."""
        catalog = await SchemaCatalog.load(introspector, **catalog_options)
        return cls(catalog, timeout=timeout, builder=builder)

    # ===== MODEL =====

    def current_sql(self) -> str:
        return self.builder.build_sql(self.model, self.catalog)

    def is_executable(self) -> bool:
        return is_executable(self.current_sql())

    def new_query(self, name: str = DEFAULT_QUERY_NAME) -> VisualQueryModel:
        """Discard the current model and start an empty one."""
        self.model = VisualQueryModel(self.catalog, name=name)
        self.last_result = None
        self.touch()
        return self.model

    def touch(self) -> None:
        self.last_used_at = datetime.now()

    # ===== EXECUTION =====

    @property
    def is_executing(self) -> bool:
        return self._pending is not None

    def cancel(self) -> bool:
        """Abandon the outstanding execution. Returns False if nothing was running."""
        if self._pending is None or self._pending.done():
            return False
        self._cancel_requested = True
        self._pending.cancel()
        return True

    async def execute(self, executor: QueryExecutor) -> QueryResult:
        """
        Run the current SQL through the executor and keep the rows.

        Raises:
            NothingToExecuteError: the model has no tables; the executor is not called.
            SessionBusyError: another execution on this session is still outstanding.
            QueryTimeoutError: the executor did not answer within ``timeout`` seconds.
            QueryCancelledError: ``cancel`` was called while waiting.
            QueryExecutionError: the executor failed.
        """
        sql = self.current_sql()
        if not is_executable(sql):
            raise NothingToExecuteError("No tables selected, nothing to execute")
        if self._pending is not None:
            raise SessionBusyError("A query is already executing in this session")

        self.touch()
        self._cancel_requested = False
        logger.info(f"Executing query '{self.model.name}' in session {self.id}: {sql}")
        start_time = time.perf_counter()
        task = asyncio.ensure_future(executor.run(sql))
        self._pending = task
        try:
            rows = await asyncio.wait_for(task, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Query in session {self.id} timed out after {self.timeout}s")
            raise QueryTimeoutError(f"Query did not complete within {self.timeout} seconds")
        except asyncio.CancelledError:
            if not self._cancel_requested:
                raise
            logger.info(f"Query in session {self.id} was cancelled")
            raise QueryCancelledError("Query execution was cancelled")
        except QueryExecutionError:
            raise
        except Exception as e:
            logger.error(f"Query in session {self.id} failed: {e}")
            raise QueryExecutionError(str(e) or type(e).__name__) from e
        finally:
            self._pending = None
            self._cancel_requested = False

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        rows = list(rows or [])
        self.last_result = QueryResult(
            sql=sql,
            rows=rows,
            columns=_columns_of(rows),
            execution_time_ms=elapsed_ms,
        )
        logger.info(f"Query in session {self.id} returned {len(rows)} rows in {elapsed_ms:.1f}ms")
        return self.last_result


def _columns_of(rows: List[Dict[str, Any]]) -> List[str]:
    return list(rows[0].keys()) if rows else []
