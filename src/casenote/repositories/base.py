"""
Base Repository

Generic repository pattern implementation for async SQLAlchemy CRUD operations.
Provides type-safe database access with consistent session handling.
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from casenote.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository providing common CRUD operations.

    All methods expect an externally managed session (injected via FastAPI
    dependency). Subclasses add scoping rules on top of these primitives.

    Usage:
        class NoteRepository(BaseRepository[NoteRecord]):
            def __init__(self):
                super().__init__(NoteRecord)
    """

    def __init__(self, model: type[ModelType]):
        self.model = model

    async def add(self, session: AsyncSession, values: dict[str, Any]) -> ModelType:
        """
        Insert a new record.

        Args:
            session: Active database session.
            values: Column values for the new entity.

        Returns:
            The created entity with Python-side defaults (id, created_at) populated.
        """
        db_obj = self.model(**values)
        session.add(db_obj)
        await session.commit()
        await session.refresh(db_obj)
        return db_obj

    async def find_one(self, session: AsyncSession, *criteria: Any) -> ModelType | None:
        """Return the first record matching all ``criteria``, or None."""
        result = await session.execute(select(self.model).where(*criteria))
        return result.scalars().first()

    async def find_all(
        self,
        session: AsyncSession,
        *criteria: Any,
        order_by: Sequence[Any] = (),
    ) -> Sequence[ModelType]:
        """Return every record matching ``criteria`` in the given order."""
        stmt = select(self.model).where(*criteria).order_by(*order_by)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def apply(
        self,
        session: AsyncSession,
        db_obj: ModelType,
        values: dict[str, Any],
    ) -> ModelType:
        """Set ``values`` on an existing entity and commit."""
        for field, value in values.items():
            setattr(db_obj, field, value)
        await session.commit()
        await session.refresh(db_obj)
        return db_obj

    async def remove(self, session: AsyncSession, db_obj: ModelType) -> None:
        """Hard delete a record."""
        await session.delete(db_obj)
        await session.commit()
