"""Pydantic schemas for the query builder API."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from opsconsole.query.schemas import (
    AggregationFunction,
    FilterOperator,
    JoinKind,
    LogicalConnective,
    SortDirection,
)


# ===== CATALOG SCHEMAS =====


class ColumnInfoRead(BaseModel):
    name: str
    declared_type: str
    is_primary_key: bool
    is_foreign_key: bool
    is_nullable: bool
    referenced_table: Optional[str] = None
    referenced_column: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TableInfoRead(BaseModel):
    name: str
    columns: List[ColumnInfoRead]

    model_config = ConfigDict(from_attributes=True)


class CatalogWarningRead(BaseModel):
    table: str
    reason: str

    model_config = ConfigDict(from_attributes=True)


class CatalogRead(BaseModel):
    tables: List[TableInfoRead]
    warnings: List[CatalogWarningRead] = []


# ===== MODEL STATE SCHEMAS =====


class SelectedColumnRead(BaseModel):
    table: str
    column: str
    alias: Optional[str] = None


class JoinRead(BaseModel):
    id: str
    left_table: str
    left_column: str
    right_table: str
    right_column: str
    join_kind: JoinKind


class FilterRead(BaseModel):
    id: str
    table: str
    column: str
    operator: FilterOperator
    value: Any = None
    logical_connective: Optional[LogicalConnective] = None


class SortRead(BaseModel):
    id: str
    table: str
    column: str
    direction: SortDirection


class GroupRead(BaseModel):
    id: str
    table: str
    column: str


class AggregateRead(BaseModel):
    id: str
    function: AggregationFunction
    table: str
    column: str
    alias: Optional[str] = None


class QueryModelRead(BaseModel):
    """Full state of a visual query."""

    id: str
    name: str
    tables: List[str] = []
    selected_columns: List[SelectedColumnRead] = []
    joins: List[JoinRead] = []
    filters: List[FilterRead] = []
    sorts: List[SortRead] = []
    groups: List[GroupRead] = []
    aggregates: List[AggregateRead] = []
    limit: Optional[int] = None


class QuerySessionRead(BaseModel):
    session_id: str
    query: QueryModelRead
    sql: str
    executable: bool
    is_executing: bool = False
    catalog_table_count: int = 0
    catalog_warnings: List[CatalogWarningRead] = []


class CompiledSqlRead(BaseModel):
    sql: str
    executable: bool


# ===== MUTATION REQUESTS =====


class QueryRename(BaseModel):
    name: str = Field(..., min_length=1)


class QueryReset(BaseModel):
    name: Optional[str] = None


class TableAdd(BaseModel):
    table: str


class ColumnToggle(BaseModel):
    table: str
    column: str
    alias: Optional[str] = None


class JoinCreate(BaseModel):
    left_table: str
    left_column: str
    right_table: str
    right_column: str
    join_kind: JoinKind = JoinKind.INNER


class FilterCreate(BaseModel):
    """
    Filter creation request.

    The value shape depends on the operator and is checked by the query model:
    scalar, list for ``in``, ``{"min", "max"}`` for ``between``, none for null checks.
    """

    table: str
    column: str
    operator: str
    value: Any = None
    logical_connective: Optional[LogicalConnective] = None


class SortCreate(BaseModel):
    table: str
    column: str
    direction: SortDirection = SortDirection.ASC


class GroupCreate(BaseModel):
    table: str
    column: str


class AggregateCreate(BaseModel):
    function: AggregationFunction
    table: str
    column: str
    alias: Optional[str] = None


class LimitUpdate(BaseModel):
    limit: Optional[int] = None


# ===== EXECUTION SCHEMAS =====


class QueryExecutionRead(BaseModel):
    sql: str
    columns: List[str]
    rows: List[Dict[str, Any]]
    row_count: int
    execution_time_ms: float


class QueryExecutionLogRead(BaseModel):
    id: int
    session_id: str
    query_id: str
    query_name: Optional[str] = None
    sql_text: str
    row_count: Optional[int] = None
    execution_time_ms: Optional[float] = None
    success: bool
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    executed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExecutionSummaryRead(BaseModel):
    session_id: str
    total: int
    succeeded: int
    failed: int
