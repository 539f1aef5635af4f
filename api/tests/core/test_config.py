"""Unit tests for core.config module.

Tests cover:
- Settings model_validator checks (database, page limits, JWT secret)
- public_base_url and is_sqlite properties
- allowed_origins computed property with deduplication
- get_settings / clear_settings_cache lru_cache behavior
"""

import pytest
from pydantic import ValidationError

from core.config import Settings, clear_settings_cache, get_settings

DB_URL = "postgresql+asyncpg://localhost/test"


@pytest.mark.unit
class TestSettingsValidation:
    def test_debug_mode_allows_defaults(self):
        settings = Settings(database_url=DB_URL, debug=True)
        assert settings.debug is True
        assert settings.default_page_limit == 10
        assert settings.max_page_limit == 100

    def test_requires_database_config(self):
        with pytest.raises(ValidationError, match="Database configuration"):
            Settings(debug=True, database_url="")

    def test_prod_requires_real_jwt_secret(self):
        with pytest.raises(ValidationError, match="JWT_SECRET"):
            Settings(database_url=DB_URL, debug=False)

    def test_prod_accepts_explicit_jwt_secret(self):
        settings = Settings(database_url=DB_URL, debug=False, jwt_secret="s" * 64)
        assert settings.jwt_secret == "s" * 64

    def test_default_limit_cannot_exceed_max(self):
        with pytest.raises(ValidationError, match="cannot exceed"):
            Settings(
                database_url=DB_URL,
                debug=True,
                default_page_limit=50,
                max_page_limit=20,
            )

    @pytest.mark.parametrize("field", ["default_page_limit", "max_page_limit"])
    def test_page_limits_must_be_positive(self, field):
        with pytest.raises(ValidationError, match="positive"):
            Settings(database_url=DB_URL, debug=True, **{field: 0})

    def test_settings_are_frozen(self):
        settings = Settings(database_url=DB_URL, debug=True)
        with pytest.raises(ValidationError):
            settings.base_url = "http://elsewhere"


@pytest.mark.unit
class TestDerivedProperties:
    def test_public_base_url_strips_trailing_slash(self):
        settings = Settings(
            database_url=DB_URL, debug=True, base_url="http://host:3000/"
        )
        assert settings.public_base_url == "http://host:3000"

    def test_is_sqlite(self):
        assert Settings(database_url="sqlite+aiosqlite:///x.db", debug=True).is_sqlite
        assert not Settings(database_url=DB_URL, debug=True).is_sqlite


@pytest.mark.unit
class TestAllowedOrigins:
    def test_debug_includes_localhost(self):
        settings = Settings(database_url=DB_URL, debug=True)
        assert "http://localhost:3000" in settings.allowed_origins

    def test_prod_has_no_localhost(self):
        settings = Settings(database_url=DB_URL, debug=False, jwt_secret="x" * 32)
        assert settings.allowed_origins == []

    def test_custom_origins_are_deduplicated(self):
        settings = Settings(
            database_url=DB_URL,
            debug=True,
            cors_allowed_origins=(
                "https://swapi.example.com, http://localhost:3000,"
                "https://swapi.example.com"
            ),
        )
        assert settings.allowed_origins == [
            "http://localhost:3000",
            "http://localhost:5173",
            "https://swapi.example.com",
        ]


@pytest.mark.unit
class TestSettingsCache:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_clear_settings_cache_rebuilds(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("DEFAULT_PAGE_LIMIT", "25")
        clear_settings_cache()
        second = get_settings()
        assert second is not first
        assert second.default_page_limit == 25

    def test_reads_environment(self):
        # conftest points the suite at an in-memory SQLite database
        settings = get_settings()
        assert settings.is_sqlite
        assert settings.public_base_url == "http://host"
