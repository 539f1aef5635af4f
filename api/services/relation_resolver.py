"""Resolve relation urls in a payload to stored entities.

Payloads carry relations as canonical urls, e.g.

    {"films": ["http://host/films/1/", "http://host/films/2/"],
     "homeworld": "http://host/planets/1/"}

RelationResolver looks every url up concurrently, keeps results in input
order, and only assigns them to the target once every lookup has
succeeded. A url that does not resolve fails the whole call with
DanglingReference; the target is left untouched.
"""

import asyncio
from collections.abc import Mapping
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from core.logger import get_logger
from core.wide_event import set_wide_event_nested
from models import ResourceMixin
from repositories.resource_repository import ResourceRepository
from services.errors import (
    DanglingReference,
    TransientError,
    UnsupportedReferenceShape,
)
from services.resource_types import (
    RESOURCE_TYPES,
    RelationSpec,
    ResourceType,
)
from services.urls import id_from_url

logger = get_logger(__name__)


class ReferenceLookup(Protocol):
    """Find the entity at ``url``, giving up after ``timeout`` seconds.

    Expiry surfaces as TimeoutError.
    """

    async def __call__(
        self, target: ResourceType, url: str, timeout: float
    ) -> ResourceMixin | None: ...


class SessionLookup:
    """Url lookups against one AsyncSession.

    An AsyncSession cannot run two statements at once, so lookups queue on
    a lock. The resolver still fans out one task per reference. The timeout
    covers the query only, not the wait for the lock.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self._lock = asyncio.Lock()

    async def __call__(
        self, target: ResourceType, url: str, timeout: float
    ) -> ResourceMixin | None:
        repo = ResourceRepository(self.db, target.model)
        async with self._lock:
            async with asyncio.timeout(timeout):
                return await repo.get_by_url(url)


def _first_leaf(group: BaseExceptionGroup) -> BaseException:
    exc: BaseException = group
    while isinstance(exc, BaseExceptionGroup):
        exc = exc.exceptions[0]
    return exc


class RelationResolver:
    def __init__(
        self,
        lookup: ReferenceLookup,
        timeout_seconds: float,
        resource_types: Mapping[str, ResourceType] = RESOURCE_TYPES,
    ):
        self.lookup = lookup
        self.timeout_seconds = timeout_seconds
        self.resource_types = resource_types

    def _requested(
        self, resource_type: ResourceType, payload: Mapping[str, Any]
    ) -> list[tuple[RelationSpec, list[str]]]:
        """Relation fields present and non-empty in the payload, urls validated."""
        requested: list[tuple[RelationSpec, list[str]]] = []
        for spec in resource_type.relations:
            value = payload.get(spec.field)
            if not value:
                continue
            if not isinstance(value, list if spec.many else str):
                raise UnsupportedReferenceShape(value)
            # Shape and format are checked before deduplication and before
            # any lookup is issued
            id_from_url(value)
            urls = list(dict.fromkeys(value)) if spec.many else [value]
            requested.append((spec, urls))
        return requested

    async def _resolve_one(self, spec: RelationSpec, url: str) -> ResourceMixin:
        target = self.resource_types[spec.target]
        try:
            entity = await self.lookup(target, url, self.timeout_seconds)
        except TimeoutError:
            raise TransientError(
                f"Timed out resolving {spec.field} reference {url}"
            ) from None
        if entity is None:
            raise DanglingReference(spec.field, url)
        return entity

    async def resolve(
        self, resource_type: ResourceType, payload: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Look up every requested reference and return ``{field: value}``.

        To-many fields map to a list in input order; to-one fields map to a
        single entity. Fields absent or empty in the payload are omitted.
        """
        requested = self._requested(resource_type, payload)
        if not requested:
            return {}

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [
                    (
                        spec,
                        [tg.create_task(self._resolve_one(spec, url)) for url in urls],
                    )
                    for spec, urls in requested
                ]
        except BaseExceptionGroup as group:
            raise _first_leaf(group) from None

        resolved: dict[str, Any] = {}
        for spec, field_tasks in tasks:
            entities = [task.result() for task in field_tasks]
            resolved[spec.field] = entities if spec.many else entities[0]

        set_wide_event_nested(
            "relations",
            resolved=sum(len(field_tasks) for _, field_tasks in tasks),
        )
        return resolved

    async def apply(
        self,
        resource_type: ResourceType,
        entity: ResourceMixin,
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Resolve, then assign. Each resolved field replaces the old value."""
        resolved = await self.resolve(resource_type, payload)
        for field, value in resolved.items():
            setattr(entity, field, value)
        if resolved:
            logger.debug(
                "relations.assigned",
                resource_type=resource_type.name,
                resource_id=entity.id,
                fields=sorted(resolved),
            )
        return resolved
