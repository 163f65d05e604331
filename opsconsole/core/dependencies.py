# opsconsole/core/dependencies.py
"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from opsconsole.core.database import get_db, get_warehouse_engine

# Core database dependencies
SessionDep = Annotated[Session, Depends(get_db)]
WarehouseEngineDep = Annotated[Engine, Depends(get_warehouse_engine)]
