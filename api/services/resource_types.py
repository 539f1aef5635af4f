"""Per-type configuration for the generic resource service.

Each resource type is described once here: its table, natural key, which
payload fields are relations and what they resolve against, and the
schemas used at the HTTP boundary. ResourceService, RelationResolver and
the router factory are all driven by these descriptors.
"""

from dataclasses import dataclass
from functools import cached_property

from pydantic import BaseModel

from models import Film, Person, Planet, ResourceMixin, Species, Starship, Vehicle
from schemas import (
    FilmCreate,
    FilmResponse,
    FilmUpdate,
    PersonCreate,
    PersonResponse,
    PersonUpdate,
    PlanetCreate,
    PlanetResponse,
    PlanetUpdate,
    SpeciesCreate,
    SpeciesResponse,
    SpeciesUpdate,
    StarshipCreate,
    StarshipResponse,
    StarshipUpdate,
    VehicleCreate,
    VehicleResponse,
    VehicleUpdate,
)


@dataclass(frozen=True, slots=True)
class RelationSpec:
    """A relation slot on a resource.

    ``many=False`` marks a to-one reference (a single url or None).
    """

    field: str
    target: str
    many: bool = True


@dataclass(frozen=True)
class ResourceType:
    name: str
    model: type[ResourceMixin]
    natural_key: str
    relations: tuple[RelationSpec, ...]
    create_schema: type[BaseModel]
    update_schema: type[BaseModel]
    response_schema: type[BaseModel]
    label: str

    @cached_property
    def relation_fields(self) -> frozenset[str]:
        return frozenset(spec.field for spec in self.relations)

    def relation(self, field: str) -> RelationSpec:
        for spec in self.relations:
            if spec.field == field:
                return spec
        raise KeyError(f"{self.name} has no relation field {field!r}")

    def split_payload(self, payload: dict) -> tuple[dict, dict]:
        """Separate scalar fields from relation fields."""
        scalars = {k: v for k, v in payload.items() if k not in self.relation_fields}
        relations = {k: v for k, v in payload.items() if k in self.relation_fields}
        return scalars, relations


FILMS = ResourceType(
    name="films",
    model=Film,
    natural_key="title",
    relations=(
        RelationSpec("characters", "people"),
        RelationSpec("planets", "planets"),
        RelationSpec("starships", "starships"),
        RelationSpec("vehicles", "vehicles"),
        RelationSpec("species", "species"),
    ),
    create_schema=FilmCreate,
    update_schema=FilmUpdate,
    response_schema=FilmResponse,
    label="Film",
)

PEOPLE = ResourceType(
    name="people",
    model=Person,
    natural_key="name",
    relations=(
        RelationSpec("homeworld", "planets", many=False),
        RelationSpec("films", "films"),
        RelationSpec("species", "species"),
        RelationSpec("vehicles", "vehicles"),
        RelationSpec("starships", "starships"),
    ),
    create_schema=PersonCreate,
    update_schema=PersonUpdate,
    response_schema=PersonResponse,
    label="Person",
)

PLANETS = ResourceType(
    name="planets",
    model=Planet,
    natural_key="name",
    relations=(
        RelationSpec("residents", "people"),
        RelationSpec("films", "films"),
    ),
    create_schema=PlanetCreate,
    update_schema=PlanetUpdate,
    response_schema=PlanetResponse,
    label="Planet",
)

SPECIES = ResourceType(
    name="species",
    model=Species,
    natural_key="name",
    relations=(
        RelationSpec("homeworld", "planets", many=False),
        RelationSpec("people", "people"),
        RelationSpec("films", "films"),
    ),
    create_schema=SpeciesCreate,
    update_schema=SpeciesUpdate,
    response_schema=SpeciesResponse,
    label="Species",
)

STARSHIPS = ResourceType(
    name="starships",
    model=Starship,
    natural_key="name",
    relations=(
        RelationSpec("films", "films"),
        RelationSpec("pilots", "people"),
    ),
    create_schema=StarshipCreate,
    update_schema=StarshipUpdate,
    response_schema=StarshipResponse,
    label="Starship",
)

VEHICLES = ResourceType(
    name="vehicles",
    model=Vehicle,
    natural_key="name",
    relations=(
        RelationSpec("films", "films"),
        RelationSpec("pilots", "people"),
    ),
    create_schema=VehicleCreate,
    update_schema=VehicleUpdate,
    response_schema=VehicleResponse,
    label="Vehicle",
)

RESOURCE_TYPES: dict[str, ResourceType] = {
    rt.name: rt for rt in (FILMS, PEOPLE, PLANETS, SPECIES, STARSHIPS, VEHICLES)
}
