#!/usr/bin/env python3
"""CLI for Star Wars API management tasks.

Usage:
    python cli.py <command>

Commands:
    migrate        Run database migrations (alembic upgrade head)
    seed           Import the public SWAPI dataset
    create-admin   Create an admin account
"""

import argparse
import asyncio
import sys
from pathlib import Path

from core.logger import configure_logging, get_logger

logger = get_logger(__name__)

API_DIR = Path(__file__).resolve().parent


def get_alembic_config():
    from alembic.config import Config

    cfg = Config(str(API_DIR / "alembic.ini"))
    # Make script_location absolute so it works from any working directory.
    cfg.set_main_option("script_location", str(API_DIR / "alembic"))
    return cfg


def cmd_migrate(target: str) -> int:
    """Run database migrations."""
    from alembic import command

    logger.info("migrations.starting", target=target)
    command.upgrade(get_alembic_config(), target)
    logger.info("migrations.complete", target=target)
    return 0


def cmd_seed() -> int:
    """Import every SWAPI resource type into the database."""
    from services.swapi_seed_service import run_seed

    report = asyncio.run(run_seed())
    total = sum(report.inserted.values())
    print(f"Inserted {total} resources ({report.inserted})")
    print(f"Skipped existing: {report.skipped}")
    print(f"Relations linked: {report.linked}")
    return 0


async def _create_admin(username: str, email: str, password: str) -> str:
    from core.database import create_engine, create_session_maker, dispose_engine
    from models import UserRole
    from schemas import RegisterRequest
    from services.users_service import register_user

    request = RegisterRequest(username=username, email=email, password=password)
    engine = create_engine()
    try:
        async with create_session_maker(engine)() as db:
            user = await register_user(db, request, role=UserRole.ADMIN)
            await db.commit()
            return user.id
    finally:
        await dispose_engine(engine)


def cmd_create_admin(username: str, email: str, password: str) -> int:
    from pydantic import ValidationError

    from services.users_service import UserAlreadyExistsError

    try:
        user_id = asyncio.run(_create_admin(username, email, password))
    except ValidationError as e:
        logger.error("admin.create.invalid", errors=e.errors(include_url=False))
        return 2
    except UserAlreadyExistsError as e:
        logger.error("admin.create.exists", error=str(e))
        return 1
    print(f"Created admin {username} ({user_id})")
    return 0


def main() -> int:
    configure_logging()

    parser = argparse.ArgumentParser(
        description="Star Wars API CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    migrate = subparsers.add_parser("migrate", help="Run database migrations")
    migrate.add_argument(
        "target",
        nargs="?",
        default="head",
        help="Target revision (default: head)",
    )

    subparsers.add_parser("seed", help="Import the public SWAPI dataset")

    admin = subparsers.add_parser("create-admin", help="Create an admin account")
    admin.add_argument("--username", required=True)
    admin.add_argument("--email", required=True)
    admin.add_argument("--password", required=True)

    args = parser.parse_args()

    if args.command == "migrate":
        return cmd_migrate(args.target)
    elif args.command == "seed":
        return cmd_seed()
    elif args.command == "create-admin":
        return cmd_create_admin(args.username, args.email, args.password)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
