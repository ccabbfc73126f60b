"""
Generic async CRUD service base class.
"""

from typing import Any, Dict, Generic, Optional, Type, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CRUDBase(Generic[ModelType]):
    """
    Reusable async CRUD operations for any SQLAlchemy model.

    Usage::

        crud = CRUDBase(MyModel, db)
        item = await crud.get("some-id")
        created = await crud.create_if_missing({"id": "some-id", "name": "x"})

    Writes commit immediately; callers that chain several writes get no
    wrapping transaction.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession) -> None:
        self.model = model
        self.db = db

    def _filtered(self, stmt, filters: Dict[str, Any]):
        for key, value in filters.items():
            if hasattr(self.model, key):
                stmt = stmt.where(getattr(self.model, key) == value)
        return stmt

    async def get(self, id: str) -> Optional[ModelType]:
        result = await self.db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalars().first()

    async def get_by(self, **filters: Any) -> Optional[ModelType]:
        result = await self.db.execute(self._filtered(select(self.model), filters).limit(1))
        return result.scalars().first()

    async def create_if_missing(self, obj_in: Dict[str, Any]) -> bool:
        """
        Insert a row, doing nothing if its primary key already exists.

        Returns True when a row was inserted.
        """
        dialect = self.db.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"insert-or-ignore not supported on {dialect}")

        stmt = insert(self.model).values(**obj_in).on_conflict_do_nothing()
        result = await self.db.execute(stmt)
        await self.db.commit()
        return bool(result.rowcount)

    async def update_where(self, filters: Dict[str, Any], obj_in: Dict[str, Any]) -> int:
        """Update matching rows in place, returning the number of rows touched."""
        stmt = self._filtered(update(self.model), filters).values(**obj_in)
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        stmt = select(func.count()).select_from(self.model)
        if filters:
            stmt = self._filtered(stmt, filters)
        result = await self.db.execute(stmt)
        return result.scalar_one()
