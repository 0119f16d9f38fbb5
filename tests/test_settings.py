"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from mediashelf.config import Settings


def test_defaults_match_library_behaviour() -> None:
    settings = Settings(_env_file=None)

    assert settings.person_full_refresh_days == 3
    assert settings.latest_items_limit == 20
    assert settings.refresh_base_url is None
    assert settings.log_level == "INFO"


def test_blank_refresh_url_is_treated_as_unset() -> None:
    settings = Settings(_env_file=None, METADATA_REFRESH_URL="   ")

    assert settings.metadata_refresh_url is None
    assert settings.refresh_base_url is None


def test_refresh_base_url_drops_trailing_slash() -> None:
    settings = Settings(_env_file=None, METADATA_REFRESH_URL="http://meta.local:8080/")

    assert settings.refresh_base_url == "http://meta.local:8080"


def test_log_level_is_normalised() -> None:
    settings = Settings(_env_file=None, LOG_LEVEL="debug")

    assert settings.log_level == "DEBUG"


def test_unknown_log_level_raises() -> None:
    with pytest.raises(ValueError, match="Unknown log level"):
        Settings(_env_file=None, LOG_LEVEL="chatty")


def test_latest_limit_bounds_are_enforced() -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, LATEST_ITEMS_LIMIT=0)
