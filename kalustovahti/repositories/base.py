"""
Base Repository
Generic read/update/delete helpers shared by the table repositories
"""

from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kalustovahti.core.database import Base

logger = structlog.get_logger()

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: Union[UUID, str]) -> Optional[ModelType]:
        """
        Get a single record by primary key

        Args:
            db: Database session
            id: Record ID

        Returns:
            Model instance or None
        """
        if isinstance(id, str):
            try:
                id = UUID(id)
            except ValueError:
                return None

        result = await db.execute(select(self.model).where(self.model.id == id))
        record = result.scalar_one_or_none()
        logger.debug(
            "Record retrieved" if record else "Record not found",
            model=self.model.__name__,
            id=str(id),
        )
        return record

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Dict[str, Any],
        commit: bool = True,
    ) -> ModelType:
        """Apply the given fields to an existing record"""
        try:
            for field, value in obj_in.items():
                if hasattr(db_obj, field):
                    setattr(db_obj, field, value)

            if commit:
                await db.commit()
                await db.refresh(db_obj)
            else:
                await db.flush()

            logger.info("Record updated", model=self.model.__name__, id=str(db_obj.id))
            return db_obj
        except Exception as e:
            if commit:
                await db.rollback()
            logger.error("Error updating record", model=self.model.__name__, id=str(db_obj.id), error=str(e))
            raise

    async def delete(self, db: AsyncSession, *, db_obj: ModelType, commit: bool = True) -> None:
        try:
            await db.delete(db_obj)
            if commit:
                await db.commit()
            else:
                await db.flush()
            logger.info("Record deleted", model=self.model.__name__, id=str(db_obj.id))
        except Exception as e:
            if commit:
                await db.rollback()
            logger.error("Error deleting record", model=self.model.__name__, id=str(db_obj.id), error=str(e))
            raise
