"""Tests for ResourceService against the in-memory database."""

from datetime import UTC, datetime, timedelta

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select, text

from models import Person, Species, Starship, films_starships, people_films
from services.errors import (
    DanglingReference,
    DuplicateResource,
    NotFound,
    ResourceInUse,
    UnsupportedReferenceShape,
)
from services.resource_service import ResourceService, next_edited
from services.resource_types import FILMS, PEOPLE, PLANETS, VEHICLES
from tests.factories import (
    FilmFactory,
    PersonFactory,
    PersonPayloadFactory,
    PlanetFactory,
    PlanetPayloadFactory,
    StarshipFactory,
    VehiclePayloadFactory,
    create_async,
    create_batch_async,
)


@pytest.mark.unit
class TestNextEdited:
    def test_first_edit_is_now(self):
        assert next_edited(None) is not None

    def test_strictly_increases_even_if_clock_is_behind(self):
        future = datetime.now(UTC) + timedelta(hours=1)
        assert next_edited(future) > future

    def test_naive_previous_treated_as_utc(self):
        previous = datetime(2020, 1, 1, 12, 0, 0)
        assert next_edited(previous).tzinfo is not None


class TestCreate:
    async def test_create_assigns_url_and_timestamps(self, db_session):
        service = ResourceService(db_session, PLANETS)

        planet = await service.create(PlanetPayloadFactory(name="Tatooine"))

        assert planet.id is not None
        assert planet.url == f"http://host/planets/{planet.id}/"
        assert planet.name == "Tatooine"
        assert planet.created == planet.edited

    async def test_find_one_returns_stored_scalars(self, db_session):
        service = ResourceService(db_session, PLANETS)
        created = await service.create(PlanetPayloadFactory(climate="frozen"))

        found = await service.find_one(created.id)

        assert found.id == created.id
        assert found.climate == "frozen"
        assert found.url == created.url

    async def test_vehicle_with_existing_film(self, db_session):
        film = await create_async(FilmFactory, db_session)
        service = ResourceService(db_session, VEHICLES)

        vehicle = await service.create(
            VehiclePayloadFactory(name="Sand Crawler", films=[film.url])
        )

        assert vehicle.films == [film]
        assert vehicle.url == f"http://host/vehicles/{vehicle.id}/"

    async def test_person_with_homeworld(self, db_session):
        planet = await create_async(PlanetFactory, db_session, name="Tatooine")
        service = ResourceService(db_session, PEOPLE)

        person = await service.create(
            PersonPayloadFactory(name="Luke Skywalker", homeworld=planet.url)
        )

        assert person.homeworld is planet
        assert person.homeworld_id == planet.id

    async def test_duplicate_natural_key(self, db_session):
        service = ResourceService(db_session, PLANETS)
        await service.create(PlanetPayloadFactory(name="Hoth"))

        with pytest.raises(DuplicateResource) as exc_info:
            await service.create(PlanetPayloadFactory(name="Hoth"))

        assert exc_info.value.field == "name"
        assert exc_info.value.status_code == 409

    async def test_unique_index_catches_duplicate_past_precheck(self, db_session):
        service = ResourceService(db_session, PLANETS)
        await service.create(PlanetPayloadFactory(name="Hoth"))

        with (
            patch.object(ResourceService, "_ensure_key_available", AsyncMock()),
            pytest.raises(DuplicateResource) as exc_info,
        ):
            await service.create(PlanetPayloadFactory(name="Hoth"))

        assert exc_info.value.field == "name"
        assert exc_info.value.value == "Hoth"

    async def test_dangling_reference_fails_create(self, db_session):
        service = ResourceService(db_session, VEHICLES)

        with pytest.raises(DanglingReference) as exc_info:
            await service.create(
                VehiclePayloadFactory(films=["http://host/films/404/"])
            )

        assert exc_info.value.field == "films"


class TestFindAll:
    async def test_pagination_meta(self, db_session):
        await create_batch_async(PlanetFactory, db_session, 12)
        service = ResourceService(db_session, PLANETS)

        page = await service.find_all(page=2, limit=5)

        assert page.item_count == 5
        assert page.total_items == 12
        assert page.items_per_page == 5
        assert page.total_pages == 3
        assert page.current_page == 2
        assert [p.id for p in page.items] == sorted(p.id for p in page.items)

    async def test_last_page_is_partial(self, db_session):
        await create_batch_async(PlanetFactory, db_session, 12)
        service = ResourceService(db_session, PLANETS)

        page = await service.find_all(page=3, limit=5)

        assert page.item_count == 2

    async def test_default_and_clamped_limits(self, db_session, settings):
        await create_batch_async(PlanetFactory, db_session, 3)
        service = ResourceService(db_session, PLANETS)

        assert (await service.find_all()).items_per_page == settings.default_page_limit
        clamped = await service.find_all(limit=10_000)
        assert clamped.items_per_page == settings.max_page_limit

    async def test_empty_table(self, db_session):
        page = await ResourceService(db_session, FILMS).find_all()

        assert page.items == []
        assert page.total_items == 0
        assert page.total_pages == 0


class TestFindOne:
    async def test_missing_id(self, db_session):
        with pytest.raises(NotFound) as exc_info:
            await ResourceService(db_session, FILMS).find_one(999)
        assert exc_info.value.status_code == 404


class TestUpdate:
    async def test_planet_population_bumps_edited(self, db_session):
        planets = await create_batch_async(PlanetFactory, db_session, 5)
        target = planets[4]
        before_edited = target.edited
        before_climate = target.climate
        service = ResourceService(db_session, PLANETS)

        updated = await service.update(target.id, {"population": "1000000"})

        assert updated.population == "1000000"
        assert updated.edited > before_edited
        assert updated.climate == before_climate

    async def test_repeated_updates_keep_increasing(self, db_session):
        planet = await create_async(PlanetFactory, db_session)
        service = ResourceService(db_session, PLANETS)

        first = (await service.update(planet.id, {"gravity": "2"})).edited
        second = (await service.update(planet.id, {"gravity": "3"})).edited

        assert second > first

    async def test_empty_string_is_skipped(self, db_session):
        """Falsy values are ignored, so a name cannot be blanked via update."""
        planet = await create_async(PlanetFactory, db_session, name="Dagobah")
        service = ResourceService(db_session, PLANETS)

        updated = await service.update(planet.id, {"name": ""})

        assert updated.name == "Dagobah"

    async def test_rename_to_taken_key(self, db_session):
        await create_async(PlanetFactory, db_session, name="Endor")
        planet = await create_async(PlanetFactory, db_session, name="Bespin")
        service = ResourceService(db_session, PLANETS)

        with pytest.raises(DuplicateResource):
            await service.update(planet.id, {"name": "Endor"})

    async def test_unique_index_catches_rename_past_precheck(self, db_session):
        await create_async(PlanetFactory, db_session, name="Yavin")
        planet = await create_async(PlanetFactory, db_session, name="Kamino")
        service = ResourceService(db_session, PLANETS)

        with (
            patch.object(ResourceService, "_ensure_key_available", AsyncMock()),
            pytest.raises(DuplicateResource) as exc_info,
        ):
            await service.update(planet.id, {"name": "Yavin"})

        assert exc_info.value.value == "Yavin"

    async def test_nested_reference_list_is_unsupported(self, db_session):
        person = await create_async(PersonFactory, db_session)

        with pytest.raises(UnsupportedReferenceShape):
            await ResourceService(db_session, PEOPLE).update(
                person.id, {"films": [["http://host/films/1/"]]}
            )

    async def test_replaces_relation_set(self, db_session):
        film_a = await create_async(FilmFactory, db_session)
        film_b = await create_async(FilmFactory, db_session)
        service = ResourceService(db_session, VEHICLES)
        vehicle = await service.create(VehiclePayloadFactory(films=[film_a.url]))

        updated = await service.update(vehicle.id, {"films": [film_b.url]})

        assert updated.films == [film_b]

    async def test_dangling_reference_changes_nothing(self, db_session):
        film = await create_async(FilmFactory, db_session)
        service = ResourceService(db_session, VEHICLES)
        vehicle = await service.create(
            VehiclePayloadFactory(name="Snowspeeder", films=[film.url])
        )

        with pytest.raises(DanglingReference):
            await service.update(
                vehicle.id,
                {"name": "T-47", "films": [film.url, "http://host/films/404/"]},
            )

        assert vehicle.name == "Snowspeeder"
        assert vehicle.films == [film]

    async def test_missing_id(self, db_session):
        with pytest.raises(NotFound):
            await ResourceService(db_session, PLANETS).update(404, {"name": "X"})


class TestRemove:
    async def test_film_delete_cascades_join_rows_only(self, db_session):
        starship = await create_async(StarshipFactory, db_session)
        films = ResourceService(db_session, FILMS)
        for _ in range(2):
            await create_async(FilmFactory, db_session)
        film = await create_async(FilmFactory, db_session)
        await films.update(film.id, {"starships": [starship.url]})

        await films.remove(film.id)

        join_rows = await db_session.execute(
            select(func.count()).select_from(films_starships)
        )
        assert join_rows.scalar_one() == 0
        remaining = await db_session.execute(
            select(func.count())
            .select_from(Starship)
            .where(Starship.id == starship.id)
        )
        assert remaining.scalar_one() == 1
        with pytest.raises(NotFound):
            await films.find_one(film.id)

    async def test_missing_id(self, db_session):
        with pytest.raises(NotFound):
            await ResourceService(db_session, FILMS).remove(404)

    async def test_planet_with_residents_is_in_use(self, db_session):
        planet = await create_async(PlanetFactory, db_session)
        people = ResourceService(db_session, PEOPLE)
        await people.create(PersonPayloadFactory(homeworld=planet.url))

        with pytest.raises(ResourceInUse) as exc_info:
            await ResourceService(db_session, PLANETS).remove(planet.id)

        assert exc_info.value.status_code == 409


@pytest.mark.unit
class TestJoinTableForeignKeys:
    @staticmethod
    def _actions(column) -> tuple[str, str]:
        (fk,) = column.foreign_keys
        return fk.ondelete, fk.onupdate

    def test_starship_side_cascades(self):
        assert self._actions(films_starships.c.starship_id) == ("CASCADE", "CASCADE")
        assert self._actions(films_starships.c.film_id) == ("NO ACTION", "NO ACTION")

    def test_people_films_cascades_from_neither_side(self):
        assert self._actions(people_films.c.person_id) == ("NO ACTION", "NO ACTION")
        assert self._actions(people_films.c.film_id) == ("NO ACTION", "NO ACTION")

    def test_homeworld_is_no_action(self):
        for model in (Person, Species):
            (fk,) = model.__table__.c.homeworld_id.foreign_keys
            assert fk.ondelete == "NO ACTION"

    async def test_storage_cascades_starship_deletes(self, db_session):
        film = await create_async(FilmFactory, db_session)
        starship = await create_async(StarshipFactory, db_session)
        await ResourceService(db_session, FILMS).update(
            film.id, {"starships": [starship.url]}
        )

        await db_session.execute(
            text("DELETE FROM starships WHERE id = :id"), {"id": starship.id}
        )

        join_rows = await db_session.execute(
            select(func.count()).select_from(films_starships)
        )
        assert join_rows.scalar_one() == 0
