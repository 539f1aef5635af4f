"""Request-scoped context for the canonical ``request.completed`` log line.

RequestContextMiddleware initializes the dict at request start and emits
it once the response has been sent. Services and repositories add fields
along the way:

    from core.wide_event import set_wide_event_fields

    set_wide_event_fields(resource_type="films", resource_id=film.id)
    set_wide_event_nested("relations", resolved=12)
"""

from contextvars import ContextVar
from typing import Any

_wide_event: ContextVar[dict[str, Any] | None] = ContextVar(
    "wide_event", default=None
)


def init_wide_event(**initial: Any) -> dict[str, Any]:
    """Start a fresh wide event for the current async context."""
    event: dict[str, Any] = dict(initial)
    _wide_event.set(event)
    return event


def get_wide_event() -> dict[str, Any]:
    """Current wide event, or an empty dict outside a request."""
    return _wide_event.get() or {}


def set_wide_event_fields(**kwargs: Any) -> None:
    """Merge fields into the current wide event.

    No-op outside a request (CLI, seeding, tests).
    """
    event = _wide_event.get()
    if event is not None:
        event.update(kwargs)


def set_wide_event_nested(category: str, **kwargs: Any) -> None:
    """Merge fields under a nested key, e.g. {"relations": {"resolved": 3}}."""
    event = _wide_event.get()
    if event is None:
        return
    event.setdefault(category, {}).update(kwargs)


def clear_wide_event() -> None:
    _wide_event.set(None)
