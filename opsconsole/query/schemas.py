"""
Query model schemas and types for the visual query builder.

This module defines the parts a visual query is assembled from: selected
columns, joins, filters, sorts, groups and aggregates. Filter values are a
tagged union keyed by operator, so a ``between`` filter cannot exist without
both bounds and a null check cannot carry a value.
"""

import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .exceptions import QueryValidationError

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class JoinKind(str, Enum):
    """Join types available on the canvas."""

    INNER = "INNER"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    FULL = "FULL"


class FilterOperator(str, Enum):
    """Filter operators. Values match the wire names used by the UI."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    LIKE = "like"
    IN = "in"
    BETWEEN = "between"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"

    @classmethod
    def _missing_(cls, value):
        # Accept camelCase spellings such as "notEquals" or "isNotNull"
        if isinstance(value, str):
            normalized = re.sub(r"(?<!^)(?=[A-Z])", "_", value).lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    def is_numeric_comparison(self) -> bool:
        return self in (FilterOperator.GREATER_THAN, FilterOperator.LESS_THAN)

    def is_null_check(self) -> bool:
        return self in (FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL)


class LogicalConnective(str, Enum):
    """How a filter is combined with the one before it."""

    AND = "AND"
    OR = "OR"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class AggregationFunction(str, Enum):
    """Available aggregation functions."""

    COUNT = "COUNT"
    SUM = "SUM"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"


def new_item_id() -> str:
    return str(uuid.uuid4())


def validate_alias(alias: Optional[str]) -> Optional[str]:
    """Aliases are emitted into SQL, so only plain identifiers are accepted."""
    if alias is None:
        return None
    alias = alias.strip()
    if alias == "":
        return None
    if not IDENTIFIER_PATTERN.match(alias):
        raise QueryValidationError(f"Alias '{alias}' must be a plain identifier")
    return alias


# ===== FILTER VALUES =====


def _check_scalar(value: Any, operator: "FilterOperator") -> Any:
    if value is None:
        raise QueryValidationError(f"Operator '{operator.value}' requires a value")
    if isinstance(value, (list, tuple, dict, set)):
        raise QueryValidationError(f"Operator '{operator.value}' requires a single value, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class ScalarValue:
    """Value for equals, not_equals, greater_than, less_than and like."""

    value: Any

    def to_raw(self) -> Any:
        return self.value


@dataclass(frozen=True)
class ListValue:
    """Value for the ``in`` operator."""

    values: Tuple[Any, ...]

    def to_raw(self) -> Any:
        return list(self.values)


@dataclass(frozen=True)
class RangeValue:
    """Value for the ``between`` operator."""

    min: Any
    max: Any

    def to_raw(self) -> Any:
        return {"min": self.min, "max": self.max}


@dataclass(frozen=True)
class NoValue:
    """Null checks carry no value."""

    def to_raw(self) -> Any:
        return None


FilterValue = Union[ScalarValue, ListValue, RangeValue, NoValue]


def filter_value_for(operator: FilterOperator, raw: Any) -> FilterValue:
    """
    Build the filter value variant the operator requires from a loosely typed input.

    Raises QueryValidationError when the shape does not fit the operator.
    """
    if operator.is_null_check():
        if raw not in (None, "", [], {}):
            raise QueryValidationError(f"Operator '{operator.value}' does not take a value")
        return NoValue()

    if operator == FilterOperator.IN:
        if not isinstance(raw, (list, tuple)):
            raw = [raw] if raw is not None else []
        if len(raw) == 0:
            raise QueryValidationError("Operator 'in' requires at least one value")
        return ListValue(tuple(_check_scalar(v, operator) for v in raw))

    if operator == FilterOperator.BETWEEN:
        if isinstance(raw, RangeValue):
            return raw
        if not isinstance(raw, dict) or "min" not in raw or "max" not in raw:
            raise QueryValidationError("Operator 'between' requires a value with 'min' and 'max'")
        return RangeValue(_check_scalar(raw["min"], operator), _check_scalar(raw["max"], operator))

    return ScalarValue(_check_scalar(raw, operator))


# ===== QUERY PARTS =====


@dataclass(frozen=True)
class SelectedColumn:
    table: str
    column: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class QueryJoin:
    """A directed join edge; the right table is the one named in the JOIN clause."""

    left_table: str
    left_column: str
    right_table: str
    right_column: str
    join_kind: JoinKind = JoinKind.INNER
    id: str = field(default_factory=new_item_id)

    def tables(self) -> Tuple[str, str]:
        return (self.left_table, self.right_table)


@dataclass(frozen=True)
class QueryFilter:
    table: str
    column: str
    operator: FilterOperator
    value: FilterValue
    logical_connective: Optional[LogicalConnective] = None
    id: str = field(default_factory=new_item_id)

    def __post_init__(self):
        expected = type(filter_value_for(self.operator, self.value.to_raw()))
        if not isinstance(self.value, expected):
            raise QueryValidationError(
                f"Operator '{self.operator.value}' requires {expected.__name__}, got {type(self.value).__name__}"
            )


@dataclass(frozen=True)
class QuerySort:
    table: str
    column: str
    direction: SortDirection = SortDirection.ASC
    id: str = field(default_factory=new_item_id)


@dataclass(frozen=True)
class QueryGroup:
    table: str
    column: str
    id: str = field(default_factory=new_item_id)


@dataclass(frozen=True)
class QueryAggregate:
    function: AggregationFunction
    table: str
    column: str
    alias: Optional[str] = None
    id: str = field(default_factory=new_item_id)


@dataclass
class QueryResult:
    """Result of a query execution."""

    sql: str
    rows: List[Dict[str, Any]]
    columns: List[str]
    execution_time_ms: float

    @property
    def row_count(self) -> int:
        return len(self.rows)
