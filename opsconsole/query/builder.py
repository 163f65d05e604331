"""
Core QueryBuilder class for compiling a visual query model into SQL text.

This is the single source of truth for SQL generation. The text shown to the
user and the text sent to the execution endpoint come from the same call, and
the same model always compiles to byte-identical SQL.
"""

import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import literal
from sqlalchemy.engine import Dialect
from sqlalchemy.engine.default import DefaultDialect

from .catalog import ColumnInfo, SchemaCatalog
from .model import VisualQueryModel
from .schemas import (
    FilterOperator,
    ListValue,
    LogicalConnective,
    QueryFilter,
    RangeValue,
    ScalarValue,
)

NO_TABLES_SENTINEL = "-- No tables selected"

_INTEGER_TEXT = re.compile(r"^[+-]?\d+$")
_DECIMAL_TEXT = re.compile(r"^[+-]?(\d+\.\d*|\.\d+)$")

_COMPARISON_SQL = {
    FilterOperator.EQUALS: "=",
    FilterOperator.NOT_EQUALS: "!=",
    FilterOperator.GREATER_THAN: ">",
    FilterOperator.LESS_THAN: "<",
}


def _default_dialect() -> Dialect:
    # Named paramstyle keeps '%' in rendered literals as-is
    return DefaultDialect(paramstyle="named", supports_native_boolean=True)


class QueryBuilder:
    """
    Renders a VisualQueryModel into SQL.

    Clause order is fixed: SELECT, FROM, JOIN, WHERE, GROUP BY, ORDER BY, LIMIT,
    one clause per line. Identifiers go through the dialect's identifier
    preparer and values through SQLAlchemy literal binding, so no user supplied
    text is ever interpolated into the statement unquoted.
    """

    def __init__(self, dialect: Optional[Dialect] = None):
        self.dialect = dialect or _default_dialect()
        self._preparer = self.dialect.identifier_preparer

    @classmethod
    def for_dialect(cls, dialect: Dialect) -> "QueryBuilder":
        """Builder that quotes and escapes the way the given backend does."""
        # Named paramstyle keeps '%' in rendered literals as-is
        return cls(type(dialect)(paramstyle="named"))

    def build_sql(self, model: VisualQueryModel, catalog: SchemaCatalog) -> str:
        """Compile the model. Returns NO_TABLES_SENTINEL when the model has no tables."""
        if not model.tables:
            return NO_TABLES_SENTINEL

        clauses = [self._build_select(model), self._build_from(model)]
        clauses.extend(self._build_joins(model))

        if model.filters:
            clauses.append(self._build_where(model, catalog))
        if model.groups:
            clauses.append("GROUP BY " + ", ".join(self._column_ref(g.table, g.column) for g in model.groups))
        if model.sorts:
            clauses.append(
                "ORDER BY " + ", ".join(f"{self._column_ref(s.table, s.column)} {s.direction.value}" for s in model.sorts)
            )
        if model.limit is not None:
            clauses.append(f"LIMIT {int(model.limit)}")

        return "\n".join(clauses)

    # ===== CLAUSES =====

    def _build_select(self, model: VisualQueryModel) -> str:
        items: List[str] = []
        for selected in model.selected_columns:
            items.append(self._aliased(self._column_ref(selected.table, selected.column), selected.alias))

        # Aggregates follow the selected columns; with no columns they replace '*'
        for aggregate in model.aggregates:
            expression = f"{aggregate.function.value}({self._column_ref(aggregate.table, aggregate.column)})"
            items.append(self._aliased(expression, aggregate.alias))

        return "SELECT " + (", ".join(items) if items else "*")

    def _build_from(self, model: VisualQueryModel) -> str:
        return f"FROM {self._identifier(model.tables[0])}"

    def _build_joins(self, model: VisualQueryModel) -> List[str]:
        return [
            f"{join.join_kind.value} JOIN {self._identifier(join.right_table)} "
            f"ON {self._column_ref(join.left_table, join.left_column)} = "
            f"{self._column_ref(join.right_table, join.right_column)}"
            for join in model.joins
        ]

    def _build_where(self, model: VisualQueryModel, catalog: SchemaCatalog) -> str:
        conditions = []
        for index, query_filter in enumerate(model.filters):
            condition = self._build_condition(query_filter, catalog)
            if index > 0:
                connective = query_filter.logical_connective or LogicalConnective.AND
                condition = f"{connective.value} {condition}"
            conditions.append(condition)
        return "WHERE " + " ".join(conditions)

    def _build_condition(self, query_filter: QueryFilter, catalog: SchemaCatalog) -> str:
        column = self._column_ref(query_filter.table, query_filter.column)
        operator = query_filter.operator
        value = query_filter.value

        if operator == FilterOperator.IS_NULL:
            return f"{column} IS NULL"
        if operator == FilterOperator.IS_NOT_NULL:
            return f"{column} IS NOT NULL"

        if operator == FilterOperator.IN and isinstance(value, ListValue):
            return f"{column} IN ({', '.join(self.render_literal(v) for v in value.values)})"
        if operator == FilterOperator.BETWEEN and isinstance(value, RangeValue):
            return f"{column} BETWEEN {self.render_literal(value.min)} AND {self.render_literal(value.max)}"

        if not isinstance(value, ScalarValue):
            raise TypeError(f"Filter value {value!r} does not fit operator '{operator.value}'")

        if operator == FilterOperator.LIKE:
            return f"{column} ILIKE {self.render_literal(f'%{value.value}%')}"

        scalar = value.value
        if operator.is_numeric_comparison():
            scalar = self._numeric_if_possible(scalar, self._column_info(catalog, query_filter))
        return f"{column} {_COMPARISON_SQL[operator]} {self.render_literal(scalar)}"

    # ===== RENDERING HELPERS =====

    def render_literal(self, value: Any) -> str:
        """Render a Python value as a SQL literal, quoting and escaping strings."""
        if not isinstance(value, (str, bool, int, float, Decimal, date, datetime, time)):
            value = str(value)
        return str(literal(value).compile(dialect=self.dialect, compile_kwargs={"literal_binds": True}))

    def _identifier(self, name: str) -> str:
        return self._preparer.quote(name)

    def _column_ref(self, table: str, column: str) -> str:
        return f"{self._identifier(table)}.{self._identifier(column)}"

    def _aliased(self, expression: str, alias: Optional[str]) -> str:
        return f"{expression} AS {self._identifier(alias)}" if alias else expression

    @staticmethod
    def _column_info(catalog: SchemaCatalog, query_filter: QueryFilter) -> Optional[ColumnInfo]:
        table = catalog.lookup(query_filter.table)
        return table.column(query_filter.column) if table else None

    @staticmethod
    def _numeric_if_possible(value: Any, column: Optional[ColumnInfo]) -> Any:
        """Numeric-looking text compared against a numeric column is rendered as a number."""
        if not isinstance(value, str) or column is None or not column.is_numeric():
            return value
        text = value.strip()
        if _INTEGER_TEXT.match(text):
            return int(text)
        if _DECIMAL_TEXT.match(text):
            return Decimal(text)
        return value


_default_builder = QueryBuilder()


def compile_query(model: VisualQueryModel, catalog: SchemaCatalog) -> str:
    """Compile a model with the default ANSI rendering."""
    return _default_builder.build_sql(model, catalog)


def is_executable(sql: str) -> bool:
    return sql != NO_TABLES_SENTINEL
