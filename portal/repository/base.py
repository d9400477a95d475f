"""
Repository abstract base class and generic implementation.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar, Optional, List, Type, Sequence, Any
from sqlmodel import SQLModel, select, func
from sqlmodel.ext.asyncio.session import AsyncSession

T = TypeVar("T", bound=SQLModel)


class IRepository(ABC, Generic[T]):
    """Repository interface; defines standard data access API."""

    @abstractmethod
    async def get_by_id(self, id: int) -> Optional[T]:
        ...

    @abstractmethod
    async def get_all(self, limit: int = 100, offset: int = 0) -> List[T]:
        ...

    @abstractmethod
    async def create(self, entity: T) -> T:
        ...

    @abstractmethod
    async def update(self, entity: T) -> T:
        ...

    @abstractmethod
    async def delete(self, id: int) -> bool:
        ...


class BaseRepository(IRepository[T]):
    """Generic SQLModel CRUD; subclasses add domain queries."""

    def __init__(self, session: AsyncSession, model: Type[T]):
        self.session = session
        self.model = model

    def _filtered(self, statement, filters: dict):
        for key, value in filters.items():
            if not hasattr(self.model, key):
                raise AttributeError(f"{self.model.__name__} has no column {key!r}")
            statement = statement.where(getattr(self.model, key) == value)
        return statement

    async def get_by_id(self, id: int) -> Optional[T]:
        return await self.session.get(self.model, id)

    async def get_many(self, ids: Sequence[int]) -> List[T]:
        """Fetch entities by a list of IDs (order not guaranteed)."""
        if not ids:
            return []
        statement = select(self.model).where(self.model.id.in_(list(ids)))
        result = await self.session.exec(statement)
        return list(result.all())

    async def get_all(self, limit: int = 100, offset: int = 0) -> List[T]:
        statement = select(self.model).limit(limit).offset(offset)
        result = await self.session.exec(statement)
        return list(result.all())

    async def create(self, entity: T) -> T:
        self.session.add(entity)
        return entity

    async def update(self, entity: T) -> T:
        """Update entity (SQLModel tracks changes)."""
        self.session.add(entity)
        return entity

    async def delete(self, id: int) -> bool:
        entity = await self.get_by_id(id)
        if entity:
            await self.session.delete(entity)
            return True
        return False

    async def remove(self, entity: T) -> None:
        await self.session.delete(entity)

    async def find_one(self, **filters) -> Optional[T]:
        """Find one entity by filters (e.g. email='a@b.c')."""
        result = await self.session.exec(self._filtered(select(self.model), filters))
        return result.first()

    async def count_statement(self, statement: Any) -> int:
        """Count rows an arbitrary select would return (ignores its limit/offset)."""
        subquery = statement.limit(None).offset(None).order_by(None).subquery()
        result = await self.session.exec(select(func.count()).select_from(subquery))
        return result.one()
