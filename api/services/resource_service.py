"""Create/read/update/delete for every resource type.

One ResourceService is built per request and per resource type from a
ResourceType descriptor. All writes go through the request's session; the
get_db dependency commits once at the end, so a create (insert, url patch,
relation attachment) either lands completely or not at all.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.logger import get_logger
from core.wide_event import set_wide_event_fields
from models import ResourceMixin, utcnow
from repositories.resource_repository import ResourceRepository
from services.errors import DuplicateResource, NotFound, ResourceInUse
from services.relation_resolver import RelationResolver, SessionLookup
from services.resource_types import ResourceType
from services.urls import url_for

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ResourcePage:
    items: list[ResourceMixin]
    item_count: int
    total_items: int
    items_per_page: int
    total_pages: int
    current_page: int


def next_edited(previous: datetime | None) -> datetime:
    """Current time, nudged forward if needed so ``edited`` strictly increases."""
    now = utcnow()
    if previous is None:
        return now
    if previous.tzinfo is None:
        # SQLite hands back naive datetimes
        previous = previous.replace(tzinfo=UTC)
    return max(now, previous + timedelta(microseconds=1))


def _payload_dict(payload: BaseModel | Mapping[str, Any], partial: bool) -> dict:
    if isinstance(payload, BaseModel):
        return payload.model_dump(exclude_unset=partial)
    return dict(payload)


class ResourceService:
    def __init__(
        self,
        db: AsyncSession,
        resource_type: ResourceType,
        settings: Settings | None = None,
        resolver: RelationResolver | None = None,
    ):
        self.db = db
        self.resource_type = resource_type
        self.settings = settings or get_settings()
        self.repository = ResourceRepository(
            db,
            resource_type.model,
            [spec.field for spec in resource_type.relations],
        )
        self.resolver = resolver or RelationResolver(
            SessionLookup(db), self.settings.lookup_timeout_seconds
        )

    def _duplicate(self, value: object) -> DuplicateResource:
        rt = self.resource_type
        return DuplicateResource(rt.name, rt.natural_key, value)

    async def _ensure_key_available(self, value: object, own_id: int | None) -> None:
        """Fast-path check; the unique index is the real guarantee."""
        existing = await self.repository.get_by_natural_key(
            self.resource_type.natural_key, value
        )
        if existing is not None and existing.id != own_id:
            raise self._duplicate(value)

    async def create(self, payload: BaseModel | Mapping[str, Any]) -> ResourceMixin:
        """Insert a resource, assign its url, then attach its relations.

        Raises:
            DuplicateResource: natural key already taken.
            DanglingReference: a relation url does not resolve.
        """
        rt = self.resource_type
        scalars, relations = rt.split_payload(_payload_dict(payload, partial=False))
        key = scalars.get(rt.natural_key)
        await self._ensure_key_available(key, own_id=None)

        entity = rt.model(**scalars)
        for spec in rt.relations:
            setattr(entity, spec.field, [] if spec.many else None)
        entity.created = entity.edited = utcnow()

        try:
            await self.repository.add(entity)
            entity.url = url_for(rt.name, entity.id, self.settings.base_url)
            await self.repository.flush()
        except IntegrityError as e:
            raise self._duplicate(key) from e

        await self.resolver.apply(rt, entity, relations)
        await self.repository.flush()

        logger.info("resource.created", resource_type=rt.name, resource_id=entity.id)
        set_wide_event_fields(resource_type=rt.name, resource_id=entity.id)
        return entity

    async def find_all(self, page: int = 1, limit: int | None = None) -> ResourcePage:
        limit = limit or self.settings.default_page_limit
        limit = max(1, min(limit, self.settings.max_page_limit))
        page = max(1, page)

        total = await self.repository.count()
        items = await self.repository.list_page((page - 1) * limit, limit)
        return ResourcePage(
            items=items,
            item_count=len(items),
            total_items=total,
            items_per_page=limit,
            total_pages=math.ceil(total / limit),
            current_page=page,
        )

    async def find_one(self, resource_id: int) -> ResourceMixin:
        entity = await self.repository.get_by_id(resource_id)
        if entity is None:
            raise NotFound(self.resource_type.label, resource_id)
        return entity

    async def update(
        self, resource_id: int, payload: BaseModel | Mapping[str, Any]
    ) -> ResourceMixin:
        """Merge present-and-truthy fields, bump ``edited``, re-resolve relations.

        Falsy values ("", 0, None, []) are skipped, so a field cannot be
        cleared through update.
        """
        rt = self.resource_type
        entity = await self.find_one(resource_id)
        scalars, relations = rt.split_payload(_payload_dict(payload, partial=True))
        changes = {field: value for field, value in scalars.items() if value}

        new_key = changes.get(rt.natural_key)
        if new_key is not None and new_key != getattr(entity, rt.natural_key):
            await self._ensure_key_available(new_key, own_id=entity.id)

        # Resolve before touching the entity so a failed lookup changes nothing
        resolved = await self.resolver.resolve(rt, relations)

        for field, value in changes.items():
            setattr(entity, field, value)
        for field, value in resolved.items():
            setattr(entity, field, value)
        entity.edited = next_edited(entity.edited)

        try:
            await self.repository.flush()
        except IntegrityError as e:
            raise self._duplicate(new_key) from e

        logger.info(
            "resource.updated",
            resource_type=rt.name,
            resource_id=entity.id,
            fields=sorted([*changes, *resolved]),
        )
        set_wide_event_fields(resource_type=rt.name, resource_id=entity.id)
        return entity

    async def remove(self, resource_id: int) -> None:
        """Delete a resource and its join rows.

        Raises:
            ResourceInUse: a homeworld FK still points at the row.
        """
        rt = self.resource_type
        entity = await self.find_one(resource_id)
        try:
            await self.repository.delete(entity)
        except IntegrityError as e:
            raise ResourceInUse(rt.label, resource_id) from e

        logger.info("resource.deleted", resource_type=rt.name, resource_id=resource_id)
        set_wide_event_fields(resource_type=rt.name, resource_id=resource_id)
