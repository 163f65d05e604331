# opsconsole/query/collaborators.py
"""
External collaborators of the query builder: schema introspection and
read-only query execution.

The protocols describe what the core consumes; the SQLAlchemy implementations
serve them from the warehouse database.
"""

from typing import Any, Dict, List, Optional, Protocol

import sqlparse
from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from .exceptions import ReadOnlyViolationError


class SchemaIntrospector(Protocol):
    """Enumerates tables and their columns."""

    async def list_tables(self) -> List[Any]:
        ...

    async def list_columns(self, table_name: str) -> List[Dict[str, Any]]:
        ...


class QueryExecutor(Protocol):
    """Runs a read-only statement and returns rows as column -> value mappings."""

    async def run(self, sql: str) -> List[Dict[str, Any]]:
        ...


def _type_name(column_type: Any) -> str:
    try:
        return str(column_type).lower()
    except Exception:
        # Dialect specific types cannot always be compiled without their dialect
        return type(column_type).__name__.lower()


class SQLAlchemyIntrospector:
    """Introspects the warehouse through sqlalchemy.inspect."""

    def __init__(self, engine: Engine, schema: Optional[str] = None):
        self.engine = engine
        self.schema = schema

    async def list_tables(self) -> List[str]:
        return await run_in_threadpool(self._list_tables)

    async def list_columns(self, table_name: str) -> List[Dict[str, Any]]:
        return await run_in_threadpool(self._list_columns, table_name)

    def _list_tables(self) -> List[str]:
        return sorted(inspect(self.engine).get_table_names(schema=self.schema))

    def _list_columns(self, table_name: str) -> List[Dict[str, Any]]:
        inspector = inspect(self.engine)
        columns = inspector.get_columns(table_name, schema=self.schema)
        primary_keys = set(inspector.get_pk_constraint(table_name, schema=self.schema).get("constrained_columns") or [])

        references = {}
        for foreign_key in inspector.get_foreign_keys(table_name, schema=self.schema):
            for local, remote in zip(foreign_key["constrained_columns"], foreign_key["referred_columns"]):
                references[local] = (foreign_key["referred_table"], remote)

        rows = []
        for column in columns:
            name = column["name"]
            referenced_table, referenced_column = references.get(name, (None, None))
            rows.append({
                "column_name": name,
                "data_type": _type_name(column["type"]),
                "is_primary_key": name in primary_keys,
                "is_foreign_key": name in references,
                "is_nullable": bool(column.get("nullable", True)),
                "referenced_table": referenced_table,
                "referenced_column": referenced_column,
            })
        return rows


class SQLAlchemyExecutor:
    """
    Executes compiled SQL against the warehouse.

    Only a single SELECT statement is accepted; the transaction is never
    committed.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    async def run(self, sql: str) -> List[Dict[str, Any]]:
        self.ensure_read_only(sql)
        return await run_in_threadpool(self._run, sql)

    @staticmethod
    def ensure_read_only(sql: str) -> None:
        statements = [statement for statement in sqlparse.parse(sql) if str(statement).strip()]
        if len(statements) != 1:
            raise ReadOnlyViolationError("Only a single SELECT statement can be executed")
        statement_type = statements[0].get_type()
        if statement_type != "SELECT":
            raise ReadOnlyViolationError(f"Only SELECT statements can be executed, got {statement_type}")

    def _run(self, sql: str) -> List[Dict[str, Any]]:
        with self.engine.connect() as connection:
            # no_parameters: rendered literals may contain ':' or '%'
            result = connection.execution_options(no_parameters=True).exec_driver_sql(sql)
            return [dict(row._mapping) for row in result]
