"""
Test configuration and shared fixtures for the operations console test suite.
Provides database setup, a sample schema catalog and fake collaborators.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    insert,
)
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from opsconsole.app import create_app
from opsconsole.core.database import Base, get_db, get_warehouse_engine, init_db
from opsconsole.query import ColumnInfo, SchemaCatalog, TableInfo


# ===== DATABASE SETUP =====


def _memory_engine():
    return create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture(scope="function")
def config_engine():
    """In-memory SQLite engine for the application database"""
    engine = _memory_engine()
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def config_session_factory(config_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=config_engine)


@pytest.fixture(scope="function")
def config_db_session(config_session_factory):
    """Database session for the application database"""
    session = config_session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def warehouse_engine():
    """In-memory warehouse with customers and orders"""
    engine = _memory_engine()
    metadata = MetaData()
    customers = Table(
        "customers",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(100), nullable=False),
        Column("age", Integer),
        Column("email", String(200)),
    )
    orders = Table(
        "orders",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("customer_id", Integer, ForeignKey("customers.id"), nullable=False),
        Column("total", Numeric(10, 2)),
        Column("status", String(20)),
    )
    metadata.create_all(bind=engine)

    with engine.begin() as connection:
        connection.execute(insert(customers), [
            {"id": 1, "name": "Alice", "age": 34, "email": "alice@example.com"},
            {"id": 2, "name": "Bob", "age": 17, "email": None},
            {"id": 3, "name": "Carol O'Brien", "age": 52, "email": "carol@example.com"},
        ])
        connection.execute(insert(orders), [
            {"id": 1, "customer_id": 1, "total": 120.5, "status": "shipped"},
            {"id": 2, "customer_id": 1, "total": 35, "status": "pending"},
            {"id": 3, "customer_id": 3, "total": 410, "status": "shipped"},
        ])

    yield engine
    engine.dispose()


@pytest.fixture
def client(config_session_factory, config_db_session, warehouse_engine):
    """FastAPI test client wired to the in-memory databases"""
    app = create_app(session_factory=config_session_factory)

    def override_get_db():
        try:
            yield config_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_warehouse_engine] = lambda: warehouse_engine

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ===== CATALOG FIXTURES =====


def sample_columns() -> Dict[str, List[Dict[str, Any]]]:
    """Introspection rows for the sample schema, in the RPC spelling"""
    return {
        "customers": [
            {"column_name": "id", "data_type": "integer", "is_primary_key": True, "is_nullable": False},
            {"column_name": "name", "data_type": "varchar(100)", "is_nullable": False},
            {"column_name": "age", "data_type": "integer"},
            {"column_name": "email", "data_type": "varchar(200)"},
        ],
        "orders": [
            {"column_name": "id", "data_type": "integer", "is_primary_key": True, "is_nullable": False},
            {
                "column_name": "customer_id",
                "data_type": "integer",
                "is_foreign_key": True,
                "is_nullable": False,
                "referenced_table": "customers",
                "referenced_column": "id",
            },
            {"column_name": "total", "data_type": "numeric(10, 2)"},
            {"column_name": "status", "data_type": "varchar(20)"},
        ],
    }


@pytest.fixture
def schema_columns() -> Dict[str, List[Dict[str, Any]]]:
    return sample_columns()


@pytest.fixture
def catalog() -> SchemaCatalog:
    """Catalog with customers and orders, orders.customer_id referencing customers.id"""
    tables = [
        TableInfo(name, tuple(ColumnInfo.from_introspection(row) for row in rows))
        for name, rows in sample_columns().items()
    ]
    return SchemaCatalog(tables)


# ===== FAKE COLLABORATORS =====


class FakeIntrospector:
    """Serves a fixed schema; tables listed in ``failing`` raise on column fetch."""

    def __init__(self, columns: Dict[str, List[Dict[str, Any]]], failing: Optional[Dict[str, Exception]] = None):
        self.columns = columns
        self.failing = failing or {}
        self.requested: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_tables(self) -> List[str]:
        return list(self.columns.keys()) + [t for t in self.failing if t not in self.columns]

    async def list_columns(self, table_name: str) -> List[Dict[str, Any]]:
        self.requested.append(table_name)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if table_name in self.failing:
                raise self.failing[table_name]
            return self.columns[table_name]
        finally:
            self.in_flight -= 1


class FakeExecutor:
    """Returns canned rows, optionally after a delay or by raising."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, delay: float = 0, error: Optional[Exception] = None):
        self.rows = rows or []
        self.delay = delay
        self.error = error
        self.calls: List[str] = []

    async def run(self, sql: str) -> List[Dict[str, Any]]:
        self.calls.append(sql)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.rows


@pytest.fixture
def introspector() -> FakeIntrospector:
    return FakeIntrospector(sample_columns())


@pytest.fixture
def make_introspector():
    """Factory for introspectors with custom schemas or failing tables"""
    return FakeIntrospector


@pytest.fixture
def make_executor():
    """Factory for fake executors"""
    return FakeExecutor
