"""Canonical resource urls.

A resource is identified externally by ``<base_url>/<type>/<id>/``.
The same shape is used to parse incoming relation references.
"""

import re

from services.errors import InvalidReferenceFormat, UnsupportedReferenceShape

_TRAILING_ID_RE = re.compile(r"/(\d+)/?$")


def url_for(resource_type: str, resource_id: int, base_url: str) -> str:
    """Build the canonical url, e.g. ``http://host/vehicles/7/``."""
    return f"{base_url.rstrip('/')}/{resource_type}/{resource_id}/"


def _id_from_single(url: object) -> int:
    if not isinstance(url, str):
        raise UnsupportedReferenceShape(url)
    match = _TRAILING_ID_RE.search(url)
    if match is None:
        raise InvalidReferenceFormat(url)
    return int(match.group(1))


def id_from_url(url: str | list[str]) -> int | list[int]:
    """Parse the trailing numeric segment of one url or a flat list of urls.

    Lists are mapped element-wise, preserving order. Nested lists raise
    UnsupportedReferenceShape.
    """
    if isinstance(url, list):
        return [_id_from_single(item) for item in url]
    return _id_from_single(url)
