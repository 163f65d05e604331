# opsconsole/query/catalog.py
"""
Schema catalog: a read-only snapshot of the tables and columns available to the
visual query builder.

The catalog is loaded once per session from an introspection collaborator and
replaced wholesale on reload, never patched.
"""

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, TYPE_CHECKING

from opsconsole.core.config import CATALOG_BATCH_DELAY, CATALOG_BATCH_SIZE

from .exceptions import PartialCatalogWarning, QueryExecutionError
from .schemas import JoinKind, QueryJoin

if TYPE_CHECKING:
    from .collaborators import SchemaIntrospector

logger = logging.getLogger(__name__)

NUMERIC_TYPES = frozenset({
    "int", "integer", "bigint", "smallint", "tinyint", "mediumint",
    "int2", "int4", "int8", "serial", "bigserial", "smallserial",
    "numeric", "decimal", "real", "float", "float4", "float8",
    "double", "double precision", "money",
})


def _as_flag(value: Any) -> bool:
    """Read a boolean flag that may arrive as information_schema 'YES'/'NO' text."""
    if isinstance(value, str):
        return value.strip().upper() in ("YES", "Y", "TRUE", "T", "1")
    return bool(value)


@dataclass(frozen=True)
class ColumnInfo:
    """Column metadata as reported by introspection."""

    name: str
    declared_type: str
    is_primary_key: bool = False
    is_foreign_key: bool = False
    is_nullable: bool = True
    referenced_table: Optional[str] = None
    referenced_column: Optional[str] = None

    def is_numeric(self) -> bool:
        """Check if the declared type is a numeric SQL type."""
        declared = self.declared_type.strip().lower().split("(", 1)[0].strip()
        return declared in NUMERIC_TYPES

    @classmethod
    def from_introspection(cls, data: Mapping[str, Any]) -> "ColumnInfo":
        """
        Build a ColumnInfo from an introspection row.

        Accepts both the RPC spelling (column_name, data_type, ...) and the short
        spelling (name, type, ...).
        """
        name = data.get("column_name", data.get("name"))
        if not name:
            raise ValueError(f"Column entry without a name: {dict(data)}")

        is_foreign_key = bool(data.get("is_foreign_key", False))
        referenced_table = data.get("referenced_table") if is_foreign_key else None
        referenced_column = data.get("referenced_column") if is_foreign_key else None

        return cls(
            name=str(name),
            declared_type=str(data.get("data_type", data.get("type")) or "unknown"),
            is_primary_key=bool(data.get("is_primary_key", False)),
            is_foreign_key=is_foreign_key,
            is_nullable=_as_flag(data.get("is_nullable", True)),
            referenced_table=referenced_table,
            referenced_column=referenced_column,
        )


@dataclass(frozen=True)
class TableInfo:
    """A table and its ordered columns."""

    name: str
    columns: Tuple[ColumnInfo, ...]

    def __post_init__(self):
        seen = set()
        for column in self.columns:
            if column.name in seen:
                raise ValueError(f"Duplicate column '{column.name}' in table '{self.name}'")
            seen.add(column.name)

    def column(self, name: str) -> Optional[ColumnInfo]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def has_column(self, name: str) -> bool:
        return self.column(name) is not None

    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    def primary_keys(self) -> List[ColumnInfo]:
        return [column for column in self.columns if column.is_primary_key]

    def foreign_keys(self) -> List[ColumnInfo]:
        return [column for column in self.columns if column.is_foreign_key]


class SchemaCatalog:
    """Immutable mapping of table name to TableInfo, plus any load warnings."""

    def __init__(self, tables: Optional[List[TableInfo]] = None, warnings: Optional[List[PartialCatalogWarning]] = None):
        ordered: Dict[str, TableInfo] = {}
        for table in tables or []:
            if table.name in ordered:
                raise ValueError(f"Duplicate table '{table.name}' in catalog")
            ordered[table.name] = table
        self._tables = MappingProxyType(ordered)
        self._warnings = tuple(warnings or [])

    @property
    def tables(self) -> Mapping[str, TableInfo]:
        return self._tables

    @property
    def warnings(self) -> Tuple[PartialCatalogWarning, ...]:
        return self._warnings

    @property
    def is_partial(self) -> bool:
        return len(self._warnings) > 0

    def lookup(self, table_name: str) -> Optional[TableInfo]:
        return self._tables.get(table_name)

    def table_names(self) -> List[str]:
        return list(self._tables.keys())

    def __contains__(self, table_name: str) -> bool:
        return table_name in self._tables

    def __len__(self) -> int:
        return len(self._tables)

    def suggest_joins(self, left_table: str, right_table: str) -> List[QueryJoin]:
        """List INNER joins backed by foreign keys between two tables, in either direction."""
        left = self.lookup(left_table)
        right = self.lookup(right_table)
        if left is None or right is None:
            return []

        suggestions = []
        for column in left.foreign_keys():
            if column.referenced_table == right.name and right.has_column(column.referenced_column):
                suggestions.append(QueryJoin(left.name, column.name, right.name, column.referenced_column, JoinKind.INNER))
        for column in right.foreign_keys():
            if column.referenced_table == left.name and left.has_column(column.referenced_column):
                suggestions.append(QueryJoin(left.name, column.referenced_column, right.name, column.name, JoinKind.INNER))
        return suggestions

    # ===== LOADING =====

    @classmethod
    async def load(
        cls,
        introspector: "SchemaIntrospector",
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ) -> "SchemaCatalog":
        """
        Load a catalog from the introspection collaborator.

        Lists the tables once, then fetches columns per table concurrently in
        batches of ``batch_size``. A table whose column fetch fails is left out
        and recorded as a PartialCatalogWarning; the other fetches carry on.

        Raises:
            QueryExecutionError: if the table list itself cannot be fetched.
        """
        batch_size = batch_size or CATALOG_BATCH_SIZE
        batch_delay = CATALOG_BATCH_DELAY if batch_delay is None else batch_delay

        logger.info("Loading schema catalog")
        try:
            listed = await introspector.list_tables()
        except QueryExecutionError:
            raise
        except Exception as e:
            raise QueryExecutionError(f"Failed to list tables: {e}") from e

        table_names = []
        for entry in listed or []:
            name = _table_name(entry)
            if name and name not in table_names:
                table_names.append(name)

        tables: List[TableInfo] = []
        warnings: List[PartialCatalogWarning] = []

        for start in range(0, len(table_names), batch_size):
            batch = table_names[start:start + batch_size]
            results = await asyncio.gather(
                *(cls._load_table(introspector, name) for name in batch),
                return_exceptions=True,
            )
            for name, result in zip(batch, results):
                if isinstance(result, Exception):
                    warning = PartialCatalogWarning(name, str(result) or type(result).__name__)
                    logger.warning(f"Skipping table '{name}': {warning.reason}")
                    warnings.append(warning)
                elif isinstance(result, BaseException):
                    raise result
                else:
                    tables.append(result)

            if batch_delay and start + batch_size < len(table_names):
                await asyncio.sleep(batch_delay)

        logger.info(f"Loaded {len(tables)} of {len(table_names)} tables into the schema catalog")
        return cls(tables, warnings)

    @staticmethod
    async def _load_table(introspector: "SchemaIntrospector", table_name: str) -> TableInfo:
        rows = await introspector.list_columns(table_name)
        if rows is None:
            raise ValueError("no column information returned")
        columns = tuple(ColumnInfo.from_introspection(row) for row in rows)
        return TableInfo(name=table_name, columns=columns)


def _table_name(entry: Any) -> Optional[str]:
    """Table list entries are either plain names or rows with a table_name key."""
    if isinstance(entry, str):
        return entry
    if isinstance(entry, Mapping):
        return entry.get("table_name") or entry.get("name")
    return None
