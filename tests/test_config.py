"""Settings parsing and validation."""

import pytest
from pydantic import ValidationError

from character_api.config import Settings


def test_defaults():
    settings = Settings(database_url="sqlite+aiosqlite:///./x.db")
    assert settings.default_page_size == 4
    assert settings.enforce_update_schema is False
    assert settings.is_sqlite


def test_log_level_is_normalized():
    assert Settings(log_level="debug").log_level == "DEBUG"


def test_invalid_log_level_rejected():
    with pytest.raises(ValidationError):
        Settings(log_level="chatty")


def test_cors_origins_list():
    settings = Settings(cors_origins="http://a.test, http://b.test,")
    assert settings.cors_origins_list == ["http://a.test", "http://b.test"]


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ENFORCE_UPDATE_SCHEMA", "true")
    monkeypatch.setenv("DEFAULT_PAGE_SIZE", "10")
    settings = Settings()
    assert settings.enforce_update_schema is True
    assert settings.default_page_size == 10
