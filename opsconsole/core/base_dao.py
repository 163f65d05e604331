# opsconsole/core/base_dao.py
"""Generic base DAO for common database operations."""

from abc import ABC
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import and_, desc, func, select
from sqlalchemy.orm import Session

from opsconsole.core.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseDAO(Generic[ModelType], ABC):
    """Generic DAO for common database operations."""

    def __init__(self, model: Type[ModelType], db: Session):
        self.model = model
        self.db = db

    def get_all_by_field(self, field_name: str, value: Any, limit: int = 100, order_by: Optional[str] = None) -> List[ModelType]:
        """Get records by field value, newest first when ``order_by`` names a column."""
        if not hasattr(self.model, field_name):
            return []

        query = select(self.model).where(getattr(self.model, field_name) == value)
        if order_by and hasattr(self.model, order_by):
            query = query.order_by(desc(getattr(self.model, order_by)))
        query = query.limit(limit)
        result = self.db.execute(query)
        return list(result.scalars().all())

    def create(self, **data) -> ModelType:
        """Create new record."""
        db_obj = self.model(**data)
        self.db.add(db_obj)
        self.db.commit()
        self.db.refresh(db_obj)
        return db_obj

    def count(self, **filters) -> int:
        """Count records with optional filtering."""
        query = select(func.count(self.model.id))

        if filters:
            filter_conditions = []
            for key, value in filters.items():
                if hasattr(self.model, key) and value is not None:
                    filter_conditions.append(getattr(self.model, key) == value)
            if filter_conditions:
                query = query.where(and_(*filter_conditions))

        result = self.db.execute(query)
        return result.scalar()
