# opsconsole/core/database.py
"""Database configuration with separate application and warehouse engines."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from opsconsole.core.config import DATABASE_URL, WAREHOUSE_DATABASE_URL


def _connect_args(url: str) -> dict:
    return {"check_same_thread": False} if url.startswith("sqlite") else {}


# ===== APPLICATION DATABASE =====
# Stores request logs and query execution logs
engine = create_engine(DATABASE_URL, connect_args=_connect_args(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# ===== WAREHOUSE DATABASE =====
# The relational backend the visual query builder reads from. Only ever
# introspected and queried with SELECT statements, so no ORM models live here.
warehouse_engine = create_engine(WAREHOUSE_DATABASE_URL, connect_args=_connect_args(WAREHOUSE_DATABASE_URL))


# ===== SESSION GENERATORS =====


def get_db():
    """Get application database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_warehouse_engine() -> Engine:
    """Get the warehouse engine used for introspection and execution."""
    return warehouse_engine


# ===== TABLE CREATION =====


def init_db(bind: Engine = None) -> None:
    """Create application tables."""
    # Import models to ensure they're registered with Base
    from opsconsole.logging.models import Log  # noqa: F401
    from opsconsole.query_builder.models import QueryExecutionLog  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
