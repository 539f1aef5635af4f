"""Unit tests for the exception handlers registered in main.

Each handler is registered for one exception type; anything else that
reaches it is answered with a generic 500.
"""

import json

import pytest
from fastapi import Request

from main import (
    http_exception_handler,
    rate_limit_exceeded_handler,
    resource_error_handler,
    validation_exception_handler,
)
from services.errors import NotFound


def _request() -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/films/1",
            "headers": [],
            "query_string": b"",
        }
    )


@pytest.mark.unit
class TestExceptionHandlers:
    @pytest.mark.parametrize(
        "handler",
        [
            resource_error_handler,
            http_exception_handler,
            validation_exception_handler,
            rate_limit_exceeded_handler,
        ],
    )
    async def test_unexpected_exception_type_is_internal_error(self, handler):
        response = await handler(_request(), ValueError("boom"))

        assert response.status_code == 500
        body = json.loads(response.body)
        assert body["error"] == "InternalError"
        assert body["message"] == "Unexpected error"
        assert body["path"] == "/films/1"

    async def test_resource_error_uses_its_status(self):
        response = await resource_error_handler(_request(), NotFound("Film", 1))

        assert response.status_code == 404
        assert json.loads(response.body)["error"] == "NotFound"
