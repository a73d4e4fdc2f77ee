import uuid as uuid_pkg
from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseOperations(Generic[ModelType]):
    """Base CRUD operations for user-owned models."""

    def __init__(self, model: type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: uuid_pkg.UUID) -> ModelType | None:
        """Get a single record by ID."""
        statement = select(self.model).where(self.model.id == id)
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_multi_by_user(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        skip: int = 0,
        limit: int = 100,
    ) -> list[ModelType]:
        """Get multiple records for a user with pagination, newest first."""
        statement = (
            select(self.model)
            .where(self.model.user_id == user_id)
            .offset(skip)
            .limit(limit)
            .order_by(self.model.created_at.desc())
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def create(
        self,
        db: AsyncSession,
        obj_in: dict,
        user_id: uuid_pkg.UUID | None,
    ) -> ModelType:
        """Create a new record."""
        db_obj = self.model(**obj_in, user_id=user_id)
        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj
