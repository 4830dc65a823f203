"""
Generic async repository — the record-store client.

Every settlement workflow talks to storage through ``list / filter / create /
update / delete`` on a ``BaseRepository[T]``.  Each write commits on its own,
so a workflow made of several writes is a sequence of independent
round-trips: a failure between two of them leaves the earlier ones in place.

- ``IntegrityError`` is not caught here; services translate it into the
  domain error that fits (duplicate code, FK race, ...).
- ``OperationalError`` rolls the session back before re-raising so a broken
  transaction never leaks into the next call.
- Every call goes through the database circuit breaker.
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import delete as sa_delete
from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlmodel import SQLModel

from settlement.core.resilience import db_circuit_breaker

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic CRUD repository for SQLModel entities.

    Parameters
    ----------
    model : Type[ModelType]
        The SQLModel table class this repository manages.
    db : AsyncSession
        The session to run against (one per request or unit of work).
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def _guarded(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        return await db_circuit_breaker.call(func, *args, **kwargs)

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except OperationalError:
            await self.db.rollback()
            logger.error("OperationalError during %s for %s", action, self.model.__name__)
            raise

    def _ordering(self) -> list:
        if "created_at" in self.model.model_fields:
            return [self.model.created_at, self.model.id]  # type: ignore[attr-defined]
        return list(self.model.__table__.primary_key.columns)  # type: ignore[attr-defined]

    # ── Reads ──

    async def get(self, id: Any) -> Optional[ModelType]:
        """Fetch by primary key (may be served from the session identity map)."""

        async def _get() -> Optional[ModelType]:
            return await self.db.get(self.model, id)

        return await self._guarded(_get)

    async def get_fresh(self, id: Any) -> Optional[ModelType]:
        """Fetch by primary key, overwriting any copy held by the session."""

        async def _get_fresh() -> Optional[ModelType]:
            return await self.db.get(self.model, id, populate_existing=True)

        return await self._guarded(_get_fresh)

    async def get_all(self, skip: int = 0, limit: int = 100) -> List[ModelType]:
        """Paginated listing in creation order."""

        async def _get_all() -> List[ModelType]:
            stmt = select(self.model).order_by(*self._ordering()).offset(skip).limit(limit)
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._guarded(_get_all)

    async def filter(self, **criteria: Any) -> List[ModelType]:
        """All rows whose columns equal ``criteria``, in creation order."""

        async def _filter() -> List[ModelType]:
            stmt = select(self.model).filter_by(**criteria).order_by(*self._ordering())
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._guarded(_filter)

    async def first(self, **criteria: Any) -> Optional[ModelType]:
        rows = await self.filter(**criteria)
        return rows[0] if rows else None

    async def count(self) -> int:
        async def _count() -> int:
            stmt = select(func.count()).select_from(self.model)
            result = await self.db.execute(stmt)
            return result.scalar_one()

        return await self._guarded(_count)

    # ── Writes ──

    async def create(self, obj_in: ModelType) -> ModelType:
        """Insert and return the refreshed instance."""

        async def _create() -> ModelType:
            self.db.add(obj_in)
            await self._commit("create")
            await self.db.refresh(obj_in)
            return obj_in

        return await self._guarded(_create)

    async def update(self, entity: ModelType) -> ModelType:
        """Persist attribute changes the caller already made on ``entity``."""

        async def _update() -> ModelType:
            merged = await self.db.merge(entity)
            await self._commit("update")
            await self.db.refresh(merged)
            return merged

        return await self._guarded(_update)

    async def delete(self, id: Any) -> bool:
        """Delete by primary key; ``False`` when the row did not exist."""

        async def _delete() -> bool:
            entity = await self.db.get(self.model, id)
            if entity is None:
                return False
            await self.db.delete(entity)
            await self._commit("delete")
            return True

        return await self._guarded(_delete)

    async def delete_all(self) -> int:
        """Delete every row of the table; returns the number removed."""

        async def _delete_all() -> int:
            result = await self.db.execute(sa_delete(self.model))
            await self._commit("delete_all")
            return result.rowcount or 0

        return await self._guarded(_delete_all)
