"""Generic repository for resource tables (films, people, planets, ...)."""

from collections.abc import Sequence
from typing import Generic, TypeVar

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.base import ExecutableOption

from models import ResourceMixin
from repositories.utils import log_slow_query


M = TypeVar("M", bound=ResourceMixin)


class ResourceRepository(Generic[M]):
    """Data access for one resource model.

    ``relation_fields`` are eager-loaded with selectinload on every read so
    nothing triggers an implicit lazy load under asyncio.
    """

    def __init__(
        self,
        db: AsyncSession,
        model: type[M],
        relation_fields: Sequence[str] = (),
    ):
        self.db = db
        self.model = model
        self.relation_fields = tuple(relation_fields)

    def _load_options(self) -> list[ExecutableOption]:
        return [
            selectinload(getattr(self.model, field)) for field in self.relation_fields
        ]

    @log_slow_query("resource_get_by_id")
    async def get_by_id(
        self, resource_id: int, with_relations: bool = True
    ) -> M | None:
        stmt = select(self.model).where(self.model.id == resource_id)
        if with_relations:
            stmt = stmt.options(*self._load_options())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    @log_slow_query("resource_get_by_url")
    async def get_by_url(self, url: str) -> M | None:
        """Exact-match lookup on the canonical url."""
        result = await self.db.execute(select(self.model).where(self.model.url == url))
        return result.scalar_one_or_none()

    @log_slow_query("resource_get_by_natural_key")
    async def get_by_natural_key(self, field: str, value: object) -> M | None:
        result = await self.db.execute(
            select(self.model).where(getattr(self.model, field) == value)
        )
        return result.scalar_one_or_none()

    async def add(self, entity: M) -> M:
        """Stage an insert and flush so the storage id is assigned.

        Does NOT commit. Caller owns the transaction.
        """
        self.db.add(entity)
        await self.db.flush()
        return entity

    async def flush(self) -> None:
        await self.db.flush()

    async def delete(self, entity: M) -> None:
        await self.db.delete(entity)
        await self.db.flush()

    @log_slow_query("resource_count")
    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(self.model))
        return result.scalar_one()

    @log_slow_query("resource_list_page")
    async def list_page(self, offset: int, limit: int) -> list[M]:
        """One page in insertion (id) order."""
        result = await self.db.execute(
            select(self.model)
            .options(*self._load_options())
            .order_by(self.model.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def max_id(self) -> int:
        """Highest id in the table, 0 when empty."""
        table = self.model.__tablename__
        result = await self.db.execute(text(f"SELECT MAX(id) FROM {table}"))
        return result.scalar() or 0
