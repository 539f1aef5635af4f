"""Repository layer for database operations."""

from repositories.resource_repository import ResourceRepository
from repositories.user_repository import UserRepository

__all__ = [
    "ResourceRepository",
    "UserRepository",
]
