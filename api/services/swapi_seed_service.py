"""Import the public SWAPI dataset into the local database.

Run via ``python cli.py seed``. Two passes inside one transaction:

1. Scalar rows for every resource type, keeping SWAPI's ids so the
   canonical urls line up (``https://swapi.dev/api/people/1/`` becomes
   ``<base_url>/people/1/``). Rows whose id already exists are skipped.
2. Relations. Each join table is written from its owning side only, using
   the union of what both sides of the SWAPI data list, and resolved
   through the same RelationResolver the API uses.

Re-running is a no-op apart from refreshing the relation sets.
"""

import asyncio
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from core.config import Settings, get_settings
from core.database import create_engine, create_session_maker, dispose_engine
from core.logger import get_logger
from repositories.resource_repository import ResourceRepository
from services.relation_resolver import RelationResolver, SessionLookup
from services.resource_types import RESOURCE_TYPES, ResourceType
from services.urls import id_from_url, url_for

logger = get_logger(__name__)

# Planets first so homeworld references resolve on the first run
SEED_ORDER = ("planets", "films", "people", "species", "starships", "vehicles")

# (owner type, owner field, inverse type, inverse field)
# The owner writes the join rows; the inverse side's listing is merged in.
OWNED_RELATIONS: tuple[tuple[str, str, str | None, str | None], ...] = (
    ("people", "films", "films", "characters"),
    ("films", "planets", "planets", "films"),
    ("films", "starships", "starships", "films"),
    ("films", "vehicles", "vehicles", "films"),
    ("films", "species", "species", "films"),
    ("people", "species", "species", "people"),
    ("people", "vehicles", "vehicles", "pilots"),
    ("people", "starships", "starships", "pilots"),
    ("people", "homeworld", "planets", "residents"),
    ("species", "homeworld", None, None),
)


class SwapiServerError(Exception):
    """Raised when SWAPI returns a 5xx error or 429 (retriable)."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class SwapiFetchError(Exception):
    """Raised for non-retriable SWAPI responses."""

    def __init__(self, url: str, status_code: int):
        self.url = url
        self.status_code = status_code
        super().__init__(f"SWAPI request to {url} failed with HTTP {status_code}")


RETRIABLE_EXCEPTIONS = (httpx.TransportError, SwapiServerError)


def _wait_with_retry_after(retry_state: RetryCallState) -> float:
    """Honor Retry-After when SWAPI sends one, else exponential backoff with jitter."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    if isinstance(exc, SwapiServerError) and exc.retry_after:
        return min(exc.retry_after, 60.0)
    return wait_exponential_jitter(initial=0.5, max=8)(retry_state)


@dataclass
class SeedReport:
    inserted: dict[str, int] = field(default_factory=dict)
    skipped: dict[str, int] = field(default_factory=dict)
    linked: dict[str, int] = field(default_factory=dict)


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


class SwapiSeeder:
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        client: httpx.AsyncClient,
        settings: Settings | None = None,
    ):
        self.session_maker = session_maker
        self.client = client
        self.settings = settings or get_settings()
        self._swapi_prefix = self.settings.swapi_url.rstrip("/") + "/"
        self._local_prefix = self.settings.public_base_url + "/"

    @retry(
        stop=stop_after_attempt(4),
        wait=_wait_with_retry_after,
        retry=retry_if_exception_type(RETRIABLE_EXCEPTIONS),
        reraise=True,
    )
    async def _get_page(self, url: str) -> dict[str, Any]:
        response = await self.client.get(url)
        if response.status_code == 429 or response.status_code >= 500:
            retry_after = response.headers.get("Retry-After")
            raise SwapiServerError(
                f"SWAPI returned {response.status_code} for {url}",
                retry_after=float(retry_after) if retry_after else None,
            )
        if response.status_code != 200:
            raise SwapiFetchError(url, response.status_code)
        return response.json()

    async def fetch_all(self, resource_type: str) -> list[dict[str, Any]]:
        """Every record of one type, following ``next`` links."""
        records: list[dict[str, Any]] = []
        next_url: str | None = f"{self._swapi_prefix}{resource_type}/"
        while next_url:
            page = await self._get_page(next_url)
            records.extend(page.get("results", []))
            next_url = page.get("next")
        logger.info("seed.fetched", resource_type=resource_type, count=len(records))
        return records

    def rewrite_urls(self, value: Any) -> Any:
        """Point SWAPI urls at this API's base url."""
        if isinstance(value, str) and value.startswith(self._swapi_prefix):
            return self._local_prefix + value.removeprefix(self._swapi_prefix)
        if isinstance(value, list):
            return [self.rewrite_urls(item) for item in value]
        return value

    def rewrite_urls_in_records(
        self, records: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        return [
            {key: self.rewrite_urls(value) for key, value in record.items()}
            for record in records
        ]

    async def _insert_rows(
        self,
        db: AsyncSession,
        rt: ResourceType,
        records: Iterable[dict[str, Any]],
        report: SeedReport,
    ) -> None:
        repo = ResourceRepository(db, rt.model)
        inserted = skipped = 0
        for record in records:
            resource_id = id_from_url(record["url"])
            payload = rt.create_schema.model_validate(record).model_dump()
            scalars, _ = rt.split_payload(payload)

            if await repo.get_by_id(resource_id, with_relations=False) is not None:
                skipped += 1
                continue
            key = scalars[rt.natural_key]
            if await repo.get_by_natural_key(rt.natural_key, key) is not None:
                logger.warning(
                    "seed.natural_key_taken",
                    resource_type=rt.name,
                    resource_id=resource_id,
                    key=key,
                )
                skipped += 1
                continue

            entity = rt.model(
                id=resource_id,
                url=url_for(rt.name, resource_id, self.settings.base_url),
                **scalars,
            )
            created = _parse_timestamp(record.get("created"))
            edited = _parse_timestamp(record.get("edited"))
            if created:
                entity.created = created
            if edited:
                entity.edited = max(edited, created) if created else edited
            db.add(entity)
            inserted += 1

        await db.flush()
        report.inserted[rt.name] = inserted
        report.skipped[rt.name] = skipped

    def merge_links(
        self, records: dict[str, list[dict[str, Any]]]
    ) -> dict[str, dict[str, dict[str, Any]]]:
        """Owner payloads keyed by type then owner url.

        ``{"people": {"<base>/people/1/": {"films": [...], "homeworld": ...}}}``
        """
        payloads: dict[str, dict[str, dict[str, Any]]] = defaultdict(
            lambda: defaultdict(dict)
        )
        for owner_type, owner_field, inverse_type, inverse_field in OWNED_RELATIONS:
            many = RESOURCE_TYPES[owner_type].relation(owner_field).many
            links: dict[str, list[str]] = defaultdict(list)

            for record in records.get(owner_type, []):
                value = record.get(owner_field)
                if value:
                    links[record["url"]].extend(value if many else [value])

            if inverse_type and inverse_field:
                for record in records.get(inverse_type, []):
                    for owner_url in record.get(inverse_field) or []:
                        links[owner_url].append(record["url"])

            for owner_url, urls in links.items():
                unique = list(dict.fromkeys(urls))
                payloads[owner_type][owner_url][owner_field] = (
                    unique if many else unique[0]
                )
        return payloads

    async def _link_rows(
        self,
        db: AsyncSession,
        payloads: dict[str, dict[str, dict[str, Any]]],
        report: SeedReport,
    ) -> None:
        resolver = RelationResolver(
            SessionLookup(db), self.settings.lookup_timeout_seconds
        )
        for name in SEED_ORDER:
            rt = RESOURCE_TYPES[name]
            fields = [spec.field for spec in rt.relations]
            repo = ResourceRepository(db, rt.model, fields)
            linked = 0
            for owner_url, payload in payloads.get(name, {}).items():
                entity = await repo.get_by_id(id_from_url(owner_url))
                if entity is None:
                    continue
                resolved = await resolver.apply(rt, entity, payload)
                linked += sum(
                    len(value) if isinstance(value, list) else 1
                    for value in resolved.values()
                )
            await db.flush()
            report.linked[name] = linked

    async def _reset_sequences(self, db: AsyncSession) -> None:
        """Explicit ids bypass PostgreSQL sequences; move them past max(id)."""
        if db.bind.dialect.name != "postgresql":
            return
        for name in SEED_ORDER:
            rt = RESOURCE_TYPES[name]
            max_id = await ResourceRepository(db, rt.model).max_id()
            if max_id:
                await db.execute(
                    text("SELECT setval(pg_get_serial_sequence(:table, 'id'), :value)"),
                    {"table": rt.model.__tablename__, "value": max_id},
                )

    async def seed(self) -> SeedReport:
        fetched = await asyncio.gather(*(self.fetch_all(name) for name in SEED_ORDER))
        records = {
            name: self.rewrite_urls_in_records(batch)
            for name, batch in zip(SEED_ORDER, fetched, strict=True)
        }

        report = SeedReport()
        async with self.session_maker() as db:
            try:
                for name in SEED_ORDER:
                    await self._insert_rows(
                        db, RESOURCE_TYPES[name], records[name], report
                    )
                await self._link_rows(db, self.merge_links(records), report)
                await self._reset_sequences(db)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "seed.complete",
            inserted=report.inserted,
            skipped=report.skipped,
            linked=report.linked,
        )
        return report


async def run_seed(settings: Settings | None = None) -> SeedReport:
    """Entry point for the CLI: owns the engine and HTTP client lifecycles."""
    settings = settings or get_settings()
    engine = create_engine()
    try:
        async with httpx.AsyncClient(
            timeout=settings.http_timeout,
            follow_redirects=True,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        ) as client:
            seeder = SwapiSeeder(create_session_maker(engine), client, settings)
            return await seeder.seed()
    finally:
        await dispose_engine(engine)
