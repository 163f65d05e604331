# opsconsole/query/model.py
"""
Visual query model: the mutable description of one query under construction.

Every mutator validates before it changes anything, so a failed call leaves the
model exactly as it was. The model is not thread-safe; one model belongs to
one interactive session.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Set, Type, TypeVar

from .catalog import ColumnInfo, SchemaCatalog
from .exceptions import QueryReferenceError, QueryValidationError
from .schemas import (
    AggregationFunction,
    FilterOperator,
    JoinKind,
    LogicalConnective,
    QueryAggregate,
    QueryFilter,
    QueryGroup,
    QueryJoin,
    QuerySort,
    SelectedColumn,
    SortDirection,
    filter_value_for,
    new_item_id,
    validate_alias,
)

DEFAULT_QUERY_NAME = "New Query"

E = TypeVar("E", bound=Enum)


def _coerce_enum(enum_cls: Type[E], value: Any, what: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise QueryValidationError(f"Invalid {what} '{value}'. Expected one of: {allowed}")


class VisualQueryModel:
    """Tables, columns, joins, filters, sorts, groups, aggregates and a limit."""

    def __init__(self, catalog: SchemaCatalog, name: str = DEFAULT_QUERY_NAME, query_id: Optional[str] = None):
        self.catalog = catalog
        self.id = query_id or new_item_id()
        self.name = name
        self.tables: List[str] = []
        self.selected_columns: List[SelectedColumn] = []
        self.joins: List[QueryJoin] = []
        self.filters: List[QueryFilter] = []
        self.sorts: List[QuerySort] = []
        self.groups: List[QueryGroup] = []
        self.aggregates: List[QueryAggregate] = []
        self.limit: Optional[int] = None

    # ===== VALIDATION =====

    def _require_query_table(self, table: str) -> None:
        if table not in self.tables:
            raise QueryReferenceError(table, message=f"Table '{table}' is not part of the query")

    def _require_column(self, table: str, column: str) -> ColumnInfo:
        """Table must be on the canvas and the column must exist on it in the catalog."""
        self._require_query_table(table)
        table_info = self.catalog.lookup(table)
        if table_info is None:
            raise QueryReferenceError(table)
        column_info = table_info.column(column)
        if column_info is None:
            raise QueryReferenceError(table, column)
        return column_info

    # ===== TABLES =====

    def add_table(self, table: str) -> bool:
        """Place a catalog table on the canvas. Returns False if it was already there."""
        if table in self.tables:
            return False
        if table not in self.catalog:
            raise QueryReferenceError(table)
        self.tables.append(table)
        return True

    def remove_table(self, table: str) -> None:
        """Remove a table and every column, join, filter, sort, group and aggregate referring to it."""
        self._require_query_table(table)
        self.tables = [t for t in self.tables if t != table]
        self.selected_columns = [c for c in self.selected_columns if c.table != table]
        self.joins = [j for j in self.joins if table not in j.tables()]
        self.filters = [f for f in self.filters if f.table != table]
        self.sorts = [s for s in self.sorts if s.table != table]
        self.groups = [g for g in self.groups if g.table != table]
        self.aggregates = [a for a in self.aggregates if a.table != table]

        # The first remaining filter no longer has anything to connect to
        if self.filters and self.filters[0].logical_connective is not None:
            first = self.filters[0]
            self.filters[0] = QueryFilter(first.table, first.column, first.operator, first.value, None, first.id)

    # ===== COLUMNS =====

    def _selected_index(self, table: str, column: str) -> int:
        for index, selected in enumerate(self.selected_columns):
            if selected.table == table and selected.column == column:
                return index
        return -1

    def toggle_column(self, table: str, column: str, alias: Optional[str] = None) -> bool:
        """Select the column if absent, deselect it if present. Returns True when now selected."""
        self._require_column(table, column)
        index = self._selected_index(table, column)
        if index >= 0:
            del self.selected_columns[index]
            return False
        self.selected_columns.append(SelectedColumn(table, column, validate_alias(alias)))
        return True

    def set_column_alias(self, table: str, column: str, alias: Optional[str]) -> SelectedColumn:
        self._require_column(table, column)
        index = self._selected_index(table, column)
        if index < 0:
            raise QueryReferenceError(table, column, f"Column '{table}.{column}' is not selected")
        updated = SelectedColumn(table, column, validate_alias(alias))
        self.selected_columns[index] = updated
        return updated

    # ===== JOINS / FILTERS / SORTS / GROUPS / AGGREGATES =====

    def add_join(
        self,
        left_table: str,
        left_column: str,
        right_table: str,
        right_column: str,
        join_kind: Any = JoinKind.INNER,
    ) -> QueryJoin:
        kind = _coerce_enum(JoinKind, join_kind, "join kind")
        self._require_column(left_table, left_column)
        self._require_column(right_table, right_column)
        join = QueryJoin(left_table, left_column, right_table, right_column, kind)
        self.joins.append(join)
        return join

    def add_filter(
        self,
        table: str,
        column: str,
        operator: Any,
        value: Any = None,
        logical_connective: Any = None,
    ) -> QueryFilter:
        """
        Add a filter condition.

        ``value`` is shaped by the operator: a scalar for comparisons and like,
        a non-empty list for ``in``, ``{"min": .., "max": ..}`` for ``between``
        and nothing for the null checks. The connective of the first filter is
        ignored; later filters default to AND.
        """
        op = _coerce_enum(FilterOperator, operator, "filter operator")
        connective = None
        if logical_connective is not None:
            connective = _coerce_enum(LogicalConnective, logical_connective, "logical connective")
        self._require_column(table, column)
        filter_value = filter_value_for(op, value)

        if not self.filters:
            connective = None
        elif connective is None:
            connective = LogicalConnective.AND

        query_filter = QueryFilter(table, column, op, filter_value, connective)
        self.filters.append(query_filter)
        return query_filter

    def add_sort(self, table: str, column: str, direction: Any = SortDirection.ASC) -> QuerySort:
        sort_direction = _coerce_enum(SortDirection, direction, "sort direction")
        self._require_column(table, column)
        sort = QuerySort(table, column, sort_direction)
        self.sorts.append(sort)
        return sort

    def add_group(self, table: str, column: str) -> QueryGroup:
        self._require_column(table, column)
        group = QueryGroup(table, column)
        self.groups.append(group)
        return group

    def add_aggregate(self, function: Any, table: str, column: str, alias: Optional[str] = None) -> QueryAggregate:
        agg_function = _coerce_enum(AggregationFunction, function, "aggregation function")
        self._require_column(table, column)
        aggregate = QueryAggregate(agg_function, table, column, validate_alias(alias))
        self.aggregates.append(aggregate)
        return aggregate

    def _remove_by_id(self, collection_name: str, item_id: str, what: str) -> None:
        items = getattr(self, collection_name)
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) == len(items):
            raise QueryValidationError(f"No {what} with id '{item_id}'")
        if collection_name == "filters" and remaining and remaining[0].logical_connective is not None:
            first = remaining[0]
            remaining[0] = QueryFilter(first.table, first.column, first.operator, first.value, None, first.id)
        setattr(self, collection_name, remaining)

    def remove_join(self, item_id: str) -> None:
        self._remove_by_id("joins", item_id, "join")

    def remove_filter(self, item_id: str) -> None:
        self._remove_by_id("filters", item_id, "filter")

    def remove_sort(self, item_id: str) -> None:
        self._remove_by_id("sorts", item_id, "sort")

    def remove_group(self, item_id: str) -> None:
        self._remove_by_id("groups", item_id, "group")

    def remove_aggregate(self, item_id: str) -> None:
        self._remove_by_id("aggregates", item_id, "aggregate")

    # ===== LIMIT / NAME =====

    def set_limit(self, limit: Optional[int]) -> None:
        """Set the row limit, or clear it with None."""
        if limit is None:
            self.limit = None
            return
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise QueryValidationError(f"Limit must be an integer, got {limit!r}")
        if limit < 0:
            raise QueryValidationError(f"Limit must not be negative, got {limit}")
        self.limit = limit

    def rename(self, name: str) -> None:
        if name is None or not name.strip():
            raise QueryValidationError("Query name must not be blank")
        self.name = name.strip()

    # ===== INSPECTION =====

    @property
    def is_empty(self) -> bool:
        return len(self.tables) == 0

    def referenced_tables(self) -> Set[str]:
        """Every table named by a column, join, filter, sort, group or aggregate."""
        referenced = set()
        referenced.update(c.table for c in self.selected_columns)
        for join in self.joins:
            referenced.update(join.tables())
        referenced.update(f.table for f in self.filters)
        referenced.update(s.table for s in self.sorts)
        referenced.update(g.table for g in self.groups)
        referenced.update(a.table for a in self.aggregates)
        return referenced

    # ===== SERIALIZATION =====

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "tables": list(self.tables),
            "selected_columns": [
                {"table": c.table, "column": c.column, "alias": c.alias} for c in self.selected_columns
            ],
            "joins": [
                {
                    "id": j.id,
                    "left_table": j.left_table,
                    "left_column": j.left_column,
                    "right_table": j.right_table,
                    "right_column": j.right_column,
                    "join_kind": j.join_kind.value,
                }
                for j in self.joins
            ],
            "filters": [
                {
                    "id": f.id,
                    "table": f.table,
                    "column": f.column,
                    "operator": f.operator.value,
                    "value": f.value.to_raw(),
                    "logical_connective": f.logical_connective.value if f.logical_connective else None,
                }
                for f in self.filters
            ],
            "sorts": [
                {"id": s.id, "table": s.table, "column": s.column, "direction": s.direction.value} for s in self.sorts
            ],
            "groups": [{"id": g.id, "table": g.table, "column": g.column} for g in self.groups],
            "aggregates": [
                {"id": a.id, "function": a.function.value, "table": a.table, "column": a.column, "alias": a.alias}
                for a in self.aggregates
            ],
            "limit": self.limit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], catalog: SchemaCatalog) -> "VisualQueryModel":
        """
        Rebuild a model by replaying the serialized parts through the mutators.

        Every invariant is checked again against ``catalog``; item ids are
        freshly assigned.
        """
        model = cls(catalog, name=data.get("name") or DEFAULT_QUERY_NAME, query_id=data.get("id"))
        for table in data.get("tables", []):
            model.add_table(table)
        for column in data.get("selected_columns", []):
            model.toggle_column(column["table"], column["column"], column.get("alias"))
        for join in data.get("joins", []):
            model.add_join(
                join["left_table"], join["left_column"], join["right_table"], join["right_column"],
                join.get("join_kind", JoinKind.INNER),
            )
        for query_filter in data.get("filters", []):
            model.add_filter(
                query_filter["table"], query_filter["column"], query_filter["operator"],
                query_filter.get("value"), query_filter.get("logical_connective"),
            )
        for sort in data.get("sorts", []):
            model.add_sort(sort["table"], sort["column"], sort.get("direction", SortDirection.ASC))
        for group in data.get("groups", []):
            model.add_group(group["table"], group["column"])
        for aggregate in data.get("aggregates", []):
            model.add_aggregate(aggregate["function"], aggregate["table"], aggregate["column"], aggregate.get("alias"))
        model.set_limit(data.get("limit"))
        return model
