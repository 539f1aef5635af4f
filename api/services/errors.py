"""Domain errors raised by the resource services.

Every error carries the HTTP status it maps to and a short kind name.
main.py translates them into the uniform error body in one place.
"""


class ResourceError(Exception):
    """Base class for errors raised by resource services."""

    status_code: int = 500

    @property
    def error(self) -> str:
        return type(self).__name__


class DuplicateResource(ResourceError):
    """Raised when the natural key is already taken."""

    status_code = 409

    def __init__(self, resource_type: str, field: str, value: object):
        self.resource_type = resource_type
        self.field = field
        self.value = value
        super().__init__(f"{resource_type} with {field}={value!r} already exists")


class ResourceInUse(ResourceError):
    """Raised when storage refuses a delete because of a foreign key."""

    status_code = 409

    def __init__(self, resource_type: str, resource_id: int):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} {resource_id} is still referenced and cannot be deleted"
        )


class NotFound(ResourceError):
    status_code = 404

    def __init__(self, resource_type: str, resource_id: object):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} {resource_id} not found")


class DanglingReference(ResourceError):
    """Raised when a relation url does not resolve to a stored resource."""

    status_code = 422

    def __init__(self, field: str, url: str):
        self.field = field
        self.url = url
        super().__init__(f"{field}: no resource found for {url}")


class InvalidReferenceFormat(ResourceError):
    status_code = 422

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Cannot extract an id from reference {value!r}")


class UnsupportedReferenceShape(ResourceError):
    """Raised for nested lists or non-string references."""

    status_code = 422

    def __init__(self, value: object):
        self.value = value
        super().__init__(
            f"Unsupported reference shape: {type(value).__name__}. "
            "Expected a url string or a flat list of url strings"
        )


class TransientError(ResourceError):
    """Timeouts and connection failures. Safe to retry."""

    status_code = 503

    def __init__(self, message: str):
        super().__init__(message)
