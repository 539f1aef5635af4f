"""SQLAlchemy models for the SWAPI resource schema.

Every resource table carries ``id``, ``url``, ``created`` and ``edited``.
Many-to-many relations live in ``<owner>_<target>`` join tables. Each
table cascades deletes from exactly one side (see ``_join_table``);
``people_films`` cascades from neither. ``homeworld`` is NO ACTION, so a
planet that still has residents or native species cannot be deleted.
"""

import uuid
from datetime import UTC, date, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from core.database import Base


def utcnow() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow)

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class ResourceMixin:
    """Identity and audit columns shared by every resource type.

    ``url`` is NULL only between the first insert and the url patch that
    follows it in the same transaction.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)

    @declared_attr
    def created(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    @declared_attr
    def edited(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} url={self.url!r}>"


def _join_table(
    name: str,
    owner: tuple[str, str],
    target: tuple[str, str],
    cascade_from: str | None,
) -> Table:
    """Join table with a composite key.

    ``cascade_from`` names the one side whose deletes cascade to the join
    rows; the other side is NO ACTION. None means NO ACTION on both.
    """
    columns = []
    for column_name, table_name in (owner, target):
        ondelete = "CASCADE" if table_name == cascade_from else "NO ACTION"
        columns.append(
            Column(
                column_name,
                ForeignKey(
                    f"{table_name}.id", ondelete=ondelete, onupdate=ondelete
                ),
                primary_key=True,
                index=column_name == target[0],
            )
        )
    return Table(name, Base.metadata, *columns)


people_films = _join_table(
    "people_films", ("person_id", "people"), ("film_id", "films"), None
)
films_planets = _join_table(
    "films_planets", ("film_id", "films"), ("planet_id", "planets"), "planets"
)
films_starships = _join_table(
    "films_starships",
    ("film_id", "films"),
    ("starship_id", "starships"),
    "starships",
)
films_vehicles = _join_table(
    "films_vehicles", ("film_id", "films"), ("vehicle_id", "vehicles"), "films"
)
films_species = _join_table(
    "films_species", ("film_id", "films"), ("species_id", "species"), "species"
)
people_species = _join_table(
    "people_species", ("person_id", "people"), ("species_id", "species"), "species"
)
people_vehicles = _join_table(
    "people_vehicles", ("person_id", "people"), ("vehicle_id", "vehicles"), "people"
)
people_starships = _join_table(
    "people_starships",
    ("person_id", "people"),
    ("starship_id", "starships"),
    "starships",
)


class Film(ResourceMixin, Base):
    __tablename__ = "films"

    title: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    episode_id: Mapped[int] = mapped_column(Integer, nullable=False)
    opening_crawl: Mapped[str] = mapped_column(Text, nullable=False)
    director: Mapped[str] = mapped_column(String(255), nullable=False)
    producer: Mapped[str] = mapped_column(String(255), nullable=False)
    release_date: Mapped[date] = mapped_column(Date, nullable=False)

    characters: Mapped[list["Person"]] = relationship(
        secondary=people_films, back_populates="films", order_by="Person.id"
    )
    planets: Mapped[list["Planet"]] = relationship(
        secondary=films_planets, back_populates="films", order_by="Planet.id"
    )
    starships: Mapped[list["Starship"]] = relationship(
        secondary=films_starships, back_populates="films", order_by="Starship.id"
    )
    vehicles: Mapped[list["Vehicle"]] = relationship(
        secondary=films_vehicles, back_populates="films", order_by="Vehicle.id"
    )
    species: Mapped[list["Species"]] = relationship(
        secondary=films_species, back_populates="films", order_by="Species.id"
    )


class Person(ResourceMixin, Base):
    __tablename__ = "people"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    height: Mapped[str] = mapped_column(String(255), nullable=False)
    mass: Mapped[str] = mapped_column(String(255), nullable=False)
    hair_color: Mapped[str] = mapped_column(String(255), nullable=False)
    skin_color: Mapped[str] = mapped_column(String(255), nullable=False)
    eye_color: Mapped[str] = mapped_column(String(255), nullable=False)
    birth_year: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[str] = mapped_column(String(255), nullable=False)
    homeworld_id: Mapped[int | None] = mapped_column(
        ForeignKey("planets.id", ondelete="NO ACTION"), nullable=True, index=True
    )

    homeworld: Mapped["Planet | None"] = relationship(back_populates="residents")
    films: Mapped[list[Film]] = relationship(
        secondary=people_films, back_populates="characters", order_by="Film.id"
    )
    species: Mapped[list["Species"]] = relationship(
        secondary=people_species, back_populates="people", order_by="Species.id"
    )
    vehicles: Mapped[list["Vehicle"]] = relationship(
        secondary=people_vehicles, back_populates="pilots", order_by="Vehicle.id"
    )
    starships: Mapped[list["Starship"]] = relationship(
        secondary=people_starships, back_populates="pilots", order_by="Starship.id"
    )


class Planet(ResourceMixin, Base):
    __tablename__ = "planets"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    diameter: Mapped[str] = mapped_column(String(255), nullable=False)
    rotation_period: Mapped[str] = mapped_column(String(255), nullable=False)
    orbital_period: Mapped[str] = mapped_column(String(255), nullable=False)
    gravity: Mapped[str] = mapped_column(String(255), nullable=False)
    population: Mapped[str] = mapped_column(String(255), nullable=False)
    climate: Mapped[str] = mapped_column(String(255), nullable=False)
    terrain: Mapped[str] = mapped_column(String(255), nullable=False)
    surface_water: Mapped[str] = mapped_column(String(255), nullable=False)

    # Deleting a planet never rewrites its residents; the FK refuses it
    residents: Mapped[list[Person]] = relationship(
        back_populates="homeworld", order_by="Person.id", passive_deletes="all"
    )
    films: Mapped[list[Film]] = relationship(
        secondary=films_planets, back_populates="planets", order_by="Film.id"
    )


class Species(ResourceMixin, Base):
    __tablename__ = "species"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    classification: Mapped[str] = mapped_column(String(255), nullable=False)
    designation: Mapped[str] = mapped_column(String(255), nullable=False)
    average_height: Mapped[str] = mapped_column(String(255), nullable=False)
    average_lifespan: Mapped[str] = mapped_column(String(255), nullable=False)
    eye_colors: Mapped[str] = mapped_column(String(255), nullable=False)
    hair_colors: Mapped[str] = mapped_column(String(255), nullable=False)
    skin_colors: Mapped[str] = mapped_column(String(255), nullable=False)
    language: Mapped[str] = mapped_column(String(255), nullable=False)
    homeworld_id: Mapped[int | None] = mapped_column(
        ForeignKey("planets.id", ondelete="NO ACTION"), nullable=True, index=True
    )

    homeworld: Mapped[Planet | None] = relationship()
    people: Mapped[list[Person]] = relationship(
        secondary=people_species, back_populates="species", order_by="Person.id"
    )
    films: Mapped[list[Film]] = relationship(
        secondary=films_species, back_populates="species", order_by="Film.id"
    )


class Starship(ResourceMixin, Base):
    __tablename__ = "starships"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    model: Mapped[str] = mapped_column(String(255), nullable=False)
    starship_class: Mapped[str] = mapped_column(String(255), nullable=False)
    manufacturer: Mapped[str] = mapped_column(String(255), nullable=False)
    cost_in_credits: Mapped[str] = mapped_column(String(255), nullable=False)
    length: Mapped[str] = mapped_column(String(255), nullable=False)
    crew: Mapped[str] = mapped_column(String(255), nullable=False)
    passengers: Mapped[str] = mapped_column(String(255), nullable=False)
    max_atmosphering_speed: Mapped[str] = mapped_column(String(255), nullable=False)
    hyperdrive_rating: Mapped[str] = mapped_column(String(255), nullable=False)
    MGLT: Mapped[str] = mapped_column(String(255), nullable=False)
    cargo_capacity: Mapped[str] = mapped_column(String(255), nullable=False)
    consumables: Mapped[str] = mapped_column(String(255), nullable=False)

    films: Mapped[list[Film]] = relationship(
        secondary=films_starships, back_populates="starships", order_by="Film.id"
    )
    pilots: Mapped[list[Person]] = relationship(
        secondary=people_starships, back_populates="starships", order_by="Person.id"
    )


class Vehicle(ResourceMixin, Base):
    __tablename__ = "vehicles"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    model: Mapped[str] = mapped_column(String(255), nullable=False)
    vehicle_class: Mapped[str] = mapped_column(String(255), nullable=False)
    manufacturer: Mapped[str] = mapped_column(String(255), nullable=False)
    length: Mapped[str] = mapped_column(String(255), nullable=False)
    cost_in_credits: Mapped[str] = mapped_column(String(255), nullable=False)
    crew: Mapped[str] = mapped_column(String(255), nullable=False)
    passengers: Mapped[str] = mapped_column(String(255), nullable=False)
    max_atmosphering_speed: Mapped[str] = mapped_column(String(255), nullable=False)
    cargo_capacity: Mapped[str] = mapped_column(String(255), nullable=False)
    consumables: Mapped[str] = mapped_column(String(255), nullable=False)

    films: Mapped[list[Film]] = relationship(
        secondary=films_vehicles, back_populates="vehicles", order_by="Film.id"
    )
    pilots: Mapped[list[Person]] = relationship(
        secondary=people_vehicles, back_populates="vehicles", order_by="Person.id"
    )


class UserRole(str, PyEnum):
    USER = "user"
    ADMIN = "admin"


class User(TimestampMixin, Base):
    """API account. Only admins may mutate resources."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(
            UserRole,
            name="user_role",
            native_enum=False,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=UserRole.USER,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
