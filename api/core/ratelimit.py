"""Rate limiting configuration using slowapi.

SCALABILITY NOTES:
- Production MUST use Redis: set RATELIMIT_STORAGE_URI="redis://host:port/db"
- memory:// storage does NOT work with multiple workers/replicas
- Each replica maintains separate counters, effectively multiplying limits by N
"""

from fastapi import Request

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings
from core.logger import get_logger

logger = get_logger(__name__)

settings = get_settings()

if not settings.debug and settings.ratelimit_storage_uri == "memory://":
    logger.warning(
        "ratelimit.memory_storage",
        detail=(
            "In-memory rate limiting does not work with multiple workers or "
            "replicas. Set RATELIMIT_STORAGE_URI to a Redis URL."
        ),
    )


def get_request_identifier(request: Request) -> str:
    """Authenticated user id when known, otherwise the client address.

    user_id is set by the auth dependency, so it is only available to
    limits checked after authentication; anonymous reads use the IP.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


_using_redis = settings.ratelimit_storage_uri.startswith("redis://")

limiter = Limiter(
    key_func=get_request_identifier,
    default_limits=["100/minute"],
    storage_uri=settings.ratelimit_storage_uri,
    # Degrade to per-process counters while Redis is unreachable
    in_memory_fallback_enabled=_using_redis,
    key_prefix="swapi:",
)


READ_LIMIT = "120/minute"

WRITE_LIMIT = "30/minute"

AUTH_LIMIT = "20/minute"

HEALTH_LIMIT = "30/minute"
