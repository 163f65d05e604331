"""API router for the visual query builder."""

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from opsconsole.core.dependencies import SessionDep, WarehouseEngineDep
from opsconsole.query import QuerySession
from opsconsole.query_builder.dao import QueryExecutionLogDAO
from opsconsole.query_builder.schemas import (
    AggregateCreate,
    CatalogRead,
    ColumnToggle,
    CompiledSqlRead,
    ExecutionSummaryRead,
    FilterCreate,
    GroupCreate,
    JoinCreate,
    JoinRead,
    LimitUpdate,
    QueryExecutionLogRead,
    QueryExecutionRead,
    QueryRename,
    QueryReset,
    QuerySessionRead,
    SortCreate,
    TableAdd,
)
from opsconsole.query_builder.service import QueryBuilderService, QuerySessionRegistry

router = APIRouter(prefix="/query-builder", tags=["Query Builder"])


# ===== DEPENDENCY INJECTION =====


def get_session_registry(request: Request) -> QuerySessionRegistry:
    """Sessions live on the application instance."""
    return request.app.state.query_sessions


def get_execution_log_dao(db: SessionDep) -> QueryExecutionLogDAO:
    return QueryExecutionLogDAO(db)


def get_query_builder_service(
    warehouse_engine: WarehouseEngineDep,
    registry: QuerySessionRegistry = Depends(get_session_registry),
    execution_log_dao: QueryExecutionLogDAO = Depends(get_execution_log_dao),
) -> QueryBuilderService:
    return QueryBuilderService(registry, execution_log_dao, warehouse_engine)


def get_query_session(
    session_id: str, service: QueryBuilderService = Depends(get_query_builder_service)
) -> QuerySession:
    session = service.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Query session not found")
    return session


# ===== SESSION ENDPOINTS =====


@router.post("/sessions", response_model=QuerySessionRead, status_code=201)
async def start_session(service: QueryBuilderService = Depends(get_query_builder_service)) -> QuerySessionRead:
    """Load the schema catalog and open a session with an empty query."""
    session = await service.start_session()
    return service.describe(session)


@router.get("/sessions/{session_id}", response_model=QuerySessionRead)
def get_session(
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    return service.describe(session)


@router.delete("/sessions/{session_id}")
def end_session(session_id: str, service: QueryBuilderService = Depends(get_query_builder_service)) -> Dict[str, str]:
    if not service.end_session(session_id):
        raise HTTPException(status_code=404, detail="Query session not found")
    return {"message": "Query session ended"}


@router.get("/sessions/{session_id}/catalog", response_model=CatalogRead)
def get_catalog(
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> CatalogRead:
    return service.catalog(session)


@router.get("/sessions/{session_id}/catalog/joins", response_model=List[JoinRead])
def suggest_joins(
    left: str = Query(...),
    right: str = Query(...),
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> List[JoinRead]:
    """Foreign-key joins between two catalog tables."""
    return [
        JoinRead(
            id=join.id,
            left_table=join.left_table,
            left_column=join.left_column,
            right_table=join.right_table,
            right_column=join.right_column,
            join_kind=join.join_kind,
        )
        for join in service.suggest_joins(session, left, right)
    ]


# ===== QUERY MUTATION ENDPOINTS =====


@router.post("/sessions/{session_id}/reset", response_model=QuerySessionRead)
def reset_query(
    request: QueryReset,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    """Discard the current query and start a new empty one."""
    if request.name is not None:
        session.new_query(request.name)
    else:
        session.new_query()
    return service.describe(session)


@router.put("/sessions/{session_id}/name", response_model=QuerySessionRead)
def rename_query(
    request: QueryRename,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    session.model.rename(request.name)
    return service.describe(session)


@router.post("/sessions/{session_id}/tables", response_model=QuerySessionRead)
def add_table(
    request: TableAdd,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    session.model.add_table(request.table)
    return service.describe(session)


@router.delete("/sessions/{session_id}/tables/{table}", response_model=QuerySessionRead)
def remove_table(
    table: str,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    """Remove a table and everything that references it."""
    session.model.remove_table(table)
    return service.describe(session)


@router.post("/sessions/{session_id}/columns/toggle", response_model=QuerySessionRead)
def toggle_column(
    request: ColumnToggle,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    session.model.toggle_column(request.table, request.column, request.alias)
    return service.describe(session)


@router.post("/sessions/{session_id}/joins", response_model=QuerySessionRead)
def add_join(
    request: JoinCreate,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    session.model.add_join(
        request.left_table, request.left_column, request.right_table, request.right_column, request.join_kind
    )
    return service.describe(session)


@router.post("/sessions/{session_id}/filters", response_model=QuerySessionRead)
def add_filter(
    request: FilterCreate,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    session.model.add_filter(request.table, request.column, request.operator, request.value, request.logical_connective)
    return service.describe(session)


@router.post("/sessions/{session_id}/sorts", response_model=QuerySessionRead)
def add_sort(
    request: SortCreate,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    session.model.add_sort(request.table, request.column, request.direction)
    return service.describe(session)


@router.post("/sessions/{session_id}/groups", response_model=QuerySessionRead)
def add_group(
    request: GroupCreate,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    session.model.add_group(request.table, request.column)
    return service.describe(session)


@router.post("/sessions/{session_id}/aggregates", response_model=QuerySessionRead)
def add_aggregate(
    request: AggregateCreate,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    session.model.add_aggregate(request.function, request.table, request.column, request.alias)
    return service.describe(session)


REMOVERS = {
    "joins": "remove_join",
    "filters": "remove_filter",
    "sorts": "remove_sort",
    "groups": "remove_group",
    "aggregates": "remove_aggregate",
}


@router.delete("/sessions/{session_id}/{kind}/{item_id}", response_model=QuerySessionRead)
def remove_item(
    kind: str,
    item_id: str,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    """Remove a join, filter, sort, group or aggregate by id."""
    remover = REMOVERS.get(kind)
    if remover is None:
        raise HTTPException(status_code=404, detail=f"Unknown query part '{kind}'")
    getattr(session.model, remover)(item_id)
    return service.describe(session)


@router.put("/sessions/{session_id}/limit", response_model=QuerySessionRead)
def set_limit(
    request: LimitUpdate,
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QuerySessionRead:
    session.model.set_limit(request.limit)
    return service.describe(session)


# ===== SQL & EXECUTION ENDPOINTS =====


@router.get("/sessions/{session_id}/sql", response_model=CompiledSqlRead)
def get_sql(session: QuerySession = Depends(get_query_session)) -> CompiledSqlRead:
    """Current compiled SQL, including the no-tables placeholder."""
    sql = session.current_sql()
    return CompiledSqlRead(sql=sql, executable=session.is_executable())


@router.post("/sessions/{session_id}/execute", response_model=QueryExecutionRead)
async def execute_query(
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> QueryExecutionRead:
    result = await service.execute(session)
    return QueryExecutionRead(
        sql=result.sql,
        columns=result.columns,
        rows=result.rows,
        row_count=result.row_count,
        execution_time_ms=result.execution_time_ms,
    )


@router.post("/sessions/{session_id}/cancel")
def cancel_query(
    session: QuerySession = Depends(get_query_session),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> Dict[str, bool]:
    return {"cancelled": service.cancel(session)}


@router.get("/sessions/{session_id}/executions", response_model=List[QueryExecutionLogRead])
def get_executions(
    session_id: str,
    limit: int = Query(50, ge=1, le=500),
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> List[QueryExecutionLogRead]:
    """Execution history for a session, most recent first."""
    return service.get_execution_logs(session_id, limit)


@router.get("/sessions/{session_id}/executions/summary", response_model=ExecutionSummaryRead)
def get_execution_summary(
    session_id: str,
    service: QueryBuilderService = Depends(get_query_builder_service),
) -> ExecutionSummaryRead:
    """Number of logged executions for a session by outcome."""
    return service.get_execution_summary(session_id)
