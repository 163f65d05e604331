"""
Query module for the visual query builder.

This module turns a graphical query description into SQL text:
- Catalog: read-only snapshot of tables and columns from introspection
- VisualQueryModel: the mutable query under construction, validated on every change
- QueryBuilder: pure compiler from model to SQL
- QuerySession: catalog loading, compilation and guarded execution
"""

from .builder import NO_TABLES_SENTINEL, QueryBuilder, compile_query, is_executable
from .catalog import ColumnInfo, SchemaCatalog, TableInfo
from .collaborators import QueryExecutor, SchemaIntrospector, SQLAlchemyExecutor, SQLAlchemyIntrospector
from .exceptions import (
    NothingToExecuteError,
    PartialCatalogWarning,
    QueryBuilderError,
    QueryCancelledError,
    QueryExecutionError,
    QueryReferenceError,
    QueryTimeoutError,
    QueryValidationError,
    ReadOnlyViolationError,
    SessionBusyError,
)
from .model import VisualQueryModel
from .schemas import (
    # Query parts
    SelectedColumn,
    QueryJoin,
    QueryFilter,
    QuerySort,
    QueryGroup,
    QueryAggregate,
    QueryResult,
    # Filter values
    ScalarValue,
    ListValue,
    RangeValue,
    NoValue,
    # Enums
    AggregationFunction,
    FilterOperator,
    JoinKind,
    LogicalConnective,
    SortDirection,
)
from .session import QuerySession

__all__ = [
    # Main classes
    "QueryBuilder",
    "QuerySession",
    "VisualQueryModel",
    "SchemaCatalog",
    "TableInfo",
    "ColumnInfo",
    "compile_query",
    "is_executable",
    "NO_TABLES_SENTINEL",
    # Collaborators
    "SchemaIntrospector",
    "QueryExecutor",
    "SQLAlchemyIntrospector",
    "SQLAlchemyExecutor",
    # Query parts
    "SelectedColumn",
    "QueryJoin",
    "QueryFilter",
    "QuerySort",
    "QueryGroup",
    "QueryAggregate",
    "QueryResult",
    "ScalarValue",
    "ListValue",
    "RangeValue",
    "NoValue",
    # Enums
    "AggregationFunction",
    "FilterOperator",
    "JoinKind",
    "LogicalConnective",
    "SortDirection",
    # Errors
    "QueryBuilderError",
    "QueryReferenceError",
    "QueryValidationError",
    "QueryExecutionError",
    "QueryTimeoutError",
    "QueryCancelledError",
    "SessionBusyError",
    "NothingToExecuteError",
    "ReadOnlyViolationError",
    "PartialCatalogWarning",
]
