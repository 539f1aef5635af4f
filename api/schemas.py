"""Pydantic schemas for API request/response validation.

Relation fields are exchanged as canonical urls in both directions. On
the way out, ``ResourceUrls``/``ResourceUrl`` turn loaded ORM entities
into their ``url`` so responses can be built with ``model_validate``.
"""

from datetime import date, datetime
from typing import Annotated, Any, Generic, TypeVar

from annotated_types import MinLen
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    create_model,
)
from pydantic.alias_generators import to_camel

from models import UserRole


def _to_url(value: Any) -> Any:
    return getattr(value, "url", value)


def _to_urls(value: Any) -> Any:
    if isinstance(value, (list, tuple, set)):
        return [_to_url(item) for item in value]
    return value


ResourceUrl = Annotated[str | None, BeforeValidator(_to_url)]
ResourceUrls = Annotated[list[str], BeforeValidator(_to_urls)]


M = TypeVar("M", bound=BaseModel)


def partial_model(model: type[M], name: str) -> type[M]:
    """Copy ``model`` with every field optional and defaulting to None.

    Update payloads use this so a PATCH body can carry any subset. Max
    lengths and patterns stay on the inner type, so a value that is sent
    is validated as on create. Minimum lengths are dropped: an empty value
    means "leave unchanged" to the update service.
    """
    fields: dict[str, Any] = {}
    for field_name, field in model.model_fields.items():
        annotation = field.annotation
        constraints = [m for m in field.metadata if not isinstance(m, MinLen)]
        if constraints:
            annotation = Annotated[(annotation, *constraints)]
        fields[field_name] = (annotation | None, None)
    return create_model(name, __base__=model.__base__, **fields)


class ResourceResponse(BaseModel):
    """Fields common to every resource response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    created: datetime
    edited: datetime


# --- Films ---


class FilmCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    episode_id: int
    opening_crawl: str
    director: str = Field(max_length=255)
    producer: str = Field(max_length=255)
    release_date: date
    characters: list[str] = []
    planets: list[str] = []
    starships: list[str] = []
    vehicles: list[str] = []
    species: list[str] = []


FilmUpdate = partial_model(FilmCreate, "FilmUpdate")


class FilmResponse(ResourceResponse):
    title: str
    episode_id: int
    opening_crawl: str
    director: str
    producer: str
    release_date: date
    characters: ResourceUrls
    planets: ResourceUrls
    starships: ResourceUrls
    vehicles: ResourceUrls
    species: ResourceUrls


# --- People ---


class PersonCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    height: str = Field(max_length=255)
    mass: str = Field(max_length=255)
    hair_color: str = Field(max_length=255)
    skin_color: str = Field(max_length=255)
    eye_color: str = Field(max_length=255)
    birth_year: str = Field(max_length=255)
    gender: str = Field(max_length=255)
    homeworld: str | None = None
    films: list[str] = []
    species: list[str] = []
    vehicles: list[str] = []
    starships: list[str] = []


PersonUpdate = partial_model(PersonCreate, "PersonUpdate")


class PersonResponse(ResourceResponse):
    name: str
    height: str
    mass: str
    hair_color: str
    skin_color: str
    eye_color: str
    birth_year: str
    gender: str
    homeworld: ResourceUrl = None
    films: ResourceUrls
    species: ResourceUrls
    vehicles: ResourceUrls
    starships: ResourceUrls


# --- Planets ---


class PlanetCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    diameter: str = Field(max_length=255)
    rotation_period: str = Field(max_length=255)
    orbital_period: str = Field(max_length=255)
    gravity: str = Field(max_length=255)
    population: str = Field(max_length=255)
    climate: str = Field(max_length=255)
    terrain: str = Field(max_length=255)
    surface_water: str = Field(max_length=255)
    residents: list[str] = []
    films: list[str] = []


PlanetUpdate = partial_model(PlanetCreate, "PlanetUpdate")


class PlanetResponse(ResourceResponse):
    name: str
    diameter: str
    rotation_period: str
    orbital_period: str
    gravity: str
    population: str
    climate: str
    terrain: str
    surface_water: str
    residents: ResourceUrls
    films: ResourceUrls


# --- Species ---


class SpeciesCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    classification: str = Field(max_length=255)
    designation: str = Field(max_length=255)
    average_height: str = Field(max_length=255)
    average_lifespan: str = Field(max_length=255)
    eye_colors: str = Field(max_length=255)
    hair_colors: str = Field(max_length=255)
    skin_colors: str = Field(max_length=255)
    language: str = Field(max_length=255)
    homeworld: str | None = None
    people: list[str] = []
    films: list[str] = []


SpeciesUpdate = partial_model(SpeciesCreate, "SpeciesUpdate")


class SpeciesResponse(ResourceResponse):
    name: str
    classification: str
    designation: str
    average_height: str
    average_lifespan: str
    eye_colors: str
    hair_colors: str
    skin_colors: str
    language: str
    homeworld: ResourceUrl = None
    people: ResourceUrls
    films: ResourceUrls


# --- Starships ---


class StarshipCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    model: str = Field(max_length=255)
    starship_class: str = Field(max_length=255)
    manufacturer: str = Field(max_length=255)
    cost_in_credits: str = Field(max_length=255)
    length: str = Field(max_length=255)
    crew: str = Field(max_length=255)
    passengers: str = Field(max_length=255)
    max_atmosphering_speed: str = Field(max_length=255)
    hyperdrive_rating: str = Field(max_length=255)
    MGLT: str = Field(max_length=255)
    cargo_capacity: str = Field(max_length=255)
    consumables: str = Field(max_length=255)
    films: list[str] = []
    pilots: list[str] = []


StarshipUpdate = partial_model(StarshipCreate, "StarshipUpdate")


class StarshipResponse(ResourceResponse):
    name: str
    model: str
    starship_class: str
    manufacturer: str
    cost_in_credits: str
    length: str
    crew: str
    passengers: str
    max_atmosphering_speed: str
    hyperdrive_rating: str
    MGLT: str
    cargo_capacity: str
    consumables: str
    films: ResourceUrls
    pilots: ResourceUrls


# --- Vehicles ---


class VehicleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    model: str = Field(max_length=255)
    vehicle_class: str = Field(max_length=255)
    manufacturer: str = Field(max_length=255)
    length: str = Field(max_length=255)
    cost_in_credits: str = Field(max_length=255)
    crew: str = Field(max_length=255)
    passengers: str = Field(max_length=255)
    max_atmosphering_speed: str = Field(max_length=255)
    cargo_capacity: str = Field(max_length=255)
    consumables: str = Field(max_length=255)
    films: list[str] = []
    pilots: list[str] = []


VehicleUpdate = partial_model(VehicleCreate, "VehicleUpdate")


class VehicleResponse(ResourceResponse):
    name: str
    model: str
    vehicle_class: str
    manufacturer: str
    length: str
    cost_in_credits: str
    crew: str
    passengers: str
    max_atmosphering_speed: str
    cargo_capacity: str
    consumables: str
    films: ResourceUrls
    pilots: ResourceUrls


# --- Pagination ---


class PageMeta(BaseModel):
    """Pagination metadata, serialized in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    item_count: int
    total_items: int
    items_per_page: int
    total_pages: int
    current_page: int


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    meta: PageMeta


class DeleteResponse(BaseModel):
    id: int
    deleted: bool = True


# --- Auth ---


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class LoginRequest(BaseModel):
    username: str = Field(max_length=64)
    password: str = Field(max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserResponse(BaseModel):
    """User response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str
    role: UserRole
    created_at: datetime


# --- Errors ---


class ErrorResponse(BaseModel):
    """Uniform error body returned for every failed request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int
    error: str
    message: str
    timestamp: datetime
    path: str
    method: str
    details: list[dict[str, Any]] | None = None


# --- Health ---


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str


class PoolStatusResponse(BaseModel):
    """Database connection pool status."""

    pool_size: int
    checked_out: int
    overflow: int
    checked_in: int


class DetailedHealthResponse(BaseModel):
    """Detailed health check response with component status."""

    status: str
    service: str
    database: bool
    pool: PoolStatusResponse | None = None
