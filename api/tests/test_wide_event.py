"""Unit tests for core.wide_event module.

Tests the ContextVar-based wide event lifecycle: init, set, get, clear,
and safe no-op behavior outside request context.
"""

import pytest

from core.wide_event import (
    clear_wide_event,
    get_wide_event,
    init_wide_event,
    set_wide_event_fields,
    set_wide_event_nested,
)


@pytest.mark.unit
class TestWideEventLifecycle:
    """Test the full init → set → get → clear lifecycle."""

    def test_init_returns_initial_fields(self):
        event = init_wide_event(request_id="r1")
        assert event == {"request_id": "r1"}

    def test_set_and_get_fields(self):
        init_wide_event(request_id="r1")
        set_wide_event_fields(resource_type="films", resource_id=1)
        event = get_wide_event()
        assert event["resource_type"] == "films"
        assert event["resource_id"] == 1

    def test_set_fields_overwrites_existing_key(self):
        init_wide_event()
        set_wide_event_fields(key="old")
        set_wide_event_fields(key="new")
        assert get_wide_event()["key"] == "new"

    def test_nested_fields_merge(self):
        init_wide_event()
        set_wide_event_nested("relations", resolved=2)
        set_wide_event_nested("relations", fields=["films"])
        assert get_wide_event()["relations"] == {"resolved": 2, "fields": ["films"]}

    def test_direct_dict_mutation_reflected_in_get(self):
        """Middleware holds the dict returned by init_wide_event."""
        event = init_wide_event()
        event["method"] = "POST"
        assert get_wide_event()["method"] == "POST"


@pytest.mark.unit
class TestWideEventNoOp:
    """Outside a request (CLI, seeding) the helpers must not fail."""

    def test_get_returns_empty_dict_when_not_initialized(self):
        clear_wide_event()
        assert get_wide_event() == {}

    def test_set_fields_noop_after_clear(self):
        clear_wide_event()
        set_wide_event_fields(should_not="appear")
        set_wide_event_nested("relations", resolved=1)
        assert get_wide_event() == {}

    def test_init_then_set_works_after_clear(self):
        init_wide_event()
        set_wide_event_fields(req=1)
        clear_wide_event()

        init_wide_event()
        set_wide_event_fields(req=2)
        assert get_wide_event() == {"req": 2}
