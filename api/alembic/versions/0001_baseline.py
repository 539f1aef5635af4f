"""baseline resource schema

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-17

Six resource tables, eight join tables and user accounts. Each join
table cascades deletes from one side only (none for people_films), and
homeworld references are NO ACTION.
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None


def _resource_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("url", sa.String(255), nullable=True),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("edited", sa.DateTime(timezone=True), nullable=False),
    ]


def _text_columns(*names: str) -> list[sa.Column]:
    return [sa.Column(name, sa.String(255), nullable=False) for name in names]


def _create_join_table(
    name: str,
    owner: tuple[str, str],
    target: tuple[str, str],
    cascade_from: str | None,
) -> None:
    owner_column, owner_table = owner
    target_column, target_table = target

    def _fk(column: str, table: str) -> sa.ForeignKeyConstraint:
        action = "CASCADE" if table == cascade_from else "NO ACTION"
        return sa.ForeignKeyConstraint(
            [column], [f"{table}.id"], ondelete=action, onupdate=action
        )

    op.create_table(
        name,
        sa.Column(owner_column, sa.Integer(), nullable=False),
        sa.Column(target_column, sa.Integer(), nullable=False),
        _fk(owner_column, owner_table),
        _fk(target_column, target_table),
        sa.PrimaryKeyConstraint(owner_column, target_column),
    )
    op.create_index(f"ix_{name}_{target_column}", name, [target_column])


# (name, owner, target, side whose deletes cascade)
JOIN_TABLES = (
    ("people_films", ("person_id", "people"), ("film_id", "films"), None),
    ("films_planets", ("film_id", "films"), ("planet_id", "planets"), "planets"),
    (
        "films_starships",
        ("film_id", "films"),
        ("starship_id", "starships"),
        "starships",
    ),
    ("films_vehicles", ("film_id", "films"), ("vehicle_id", "vehicles"), "films"),
    ("films_species", ("film_id", "films"), ("species_id", "species"), "species"),
    (
        "people_species",
        ("person_id", "people"),
        ("species_id", "species"),
        "species",
    ),
    (
        "people_vehicles",
        ("person_id", "people"),
        ("vehicle_id", "vehicles"),
        "people",
    ),
    (
        "people_starships",
        ("person_id", "people"),
        ("starship_id", "starships"),
        "starships",
    ),
)


def upgrade() -> None:
    op.create_table(
        "planets",
        *_resource_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        *_text_columns(
            "diameter",
            "rotation_period",
            "orbital_period",
            "gravity",
            "population",
            "climate",
            "terrain",
            "surface_water",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url", name="uq_planets_url"),
        sa.UniqueConstraint("name", name="uq_planets_name"),
    )

    op.create_table(
        "films",
        *_resource_columns(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("episode_id", sa.Integer(), nullable=False),
        sa.Column("opening_crawl", sa.Text(), nullable=False),
        sa.Column("director", sa.String(255), nullable=False),
        sa.Column("producer", sa.String(255), nullable=False),
        sa.Column("release_date", sa.Date(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url", name="uq_films_url"),
        sa.UniqueConstraint("title", name="uq_films_title"),
    )

    op.create_table(
        "people",
        *_resource_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        *_text_columns(
            "height",
            "mass",
            "hair_color",
            "skin_color",
            "eye_color",
            "birth_year",
            "gender",
        ),
        sa.Column("homeworld_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["homeworld_id"], ["planets.id"], ondelete="NO ACTION"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url", name="uq_people_url"),
        sa.UniqueConstraint("name", name="uq_people_name"),
    )
    op.create_index("ix_people_homeworld_id", "people", ["homeworld_id"])

    op.create_table(
        "species",
        *_resource_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        *_text_columns(
            "classification",
            "designation",
            "average_height",
            "average_lifespan",
            "eye_colors",
            "hair_colors",
            "skin_colors",
            "language",
        ),
        sa.Column("homeworld_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["homeworld_id"], ["planets.id"], ondelete="NO ACTION"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url", name="uq_species_url"),
        sa.UniqueConstraint("name", name="uq_species_name"),
    )
    op.create_index("ix_species_homeworld_id", "species", ["homeworld_id"])

    op.create_table(
        "starships",
        *_resource_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        *_text_columns(
            "model",
            "starship_class",
            "manufacturer",
            "cost_in_credits",
            "length",
            "crew",
            "passengers",
            "max_atmosphering_speed",
            "hyperdrive_rating",
            "MGLT",
            "cargo_capacity",
            "consumables",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url", name="uq_starships_url"),
        sa.UniqueConstraint("name", name="uq_starships_name"),
    )

    op.create_table(
        "vehicles",
        *_resource_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        *_text_columns(
            "model",
            "vehicle_class",
            "manufacturer",
            "length",
            "cost_in_credits",
            "crew",
            "passengers",
            "max_atmosphering_speed",
            "cargo_capacity",
            "consumables",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url", name="uq_vehicles_url"),
        sa.UniqueConstraint("name", name="uq_vehicles_name"),
    )

    for name, owner, target, cascade_from in JOIN_TABLES:
        _create_join_table(name, owner, target, cascade_from)

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("user", "admin", name="user_role", native_enum=False),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )


def downgrade() -> None:
    op.drop_table("users")
    for name, *_ in reversed(JOIN_TABLES):
        op.drop_table(name)
    for table in ("vehicles", "starships", "species", "people", "films", "planets"):
        op.drop_table(table)
