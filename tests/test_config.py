"""
Tests for environment-driven settings and the error hierarchy.
"""

from datetime import date

import pytest
from conftest import AMSTERDAM

from sunnyspot.config import Settings, load_settings
from sunnyspot.errors import FetchError, GeometryError, InputError, PolarDayNightError, SunnySpotError

ENV_VARS = (
    "SUNNYSPOT_OVERPASS_URL",
    "SUNNYSPOT_USER_AGENT",
    "SUNNYSPOT_FETCH_TIMEOUT_S",
    "SUNNYSPOT_SAFETY_TIMEOUT_S",
    "SUNNYSPOT_SEARCH_RADIUS_M",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:
    def test_defaults(self):
        assert load_settings(dotenv=False) == Settings()

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SUNNYSPOT_OVERPASS_URL", "http://localhost:12345/api/interpreter")
        monkeypatch.setenv("SUNNYSPOT_SAFETY_TIMEOUT_S", "4.5")
        monkeypatch.setenv("SUNNYSPOT_SEARCH_RADIUS_M", " ")
        settings = load_settings(dotenv=False)
        assert settings.overpass_url == "http://localhost:12345/api/interpreter"
        assert settings.safety_timeout_s == 4.5
        assert settings.search_radius_m == 300.0

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("SUNNYSPOT_FETCH_TIMEOUT_S", "ten")
        with pytest.raises(ValueError, match="SUNNYSPOT_FETCH_TIMEOUT_S"):
            load_settings(dotenv=False)


class TestErrors:
    def test_hierarchy(self):
        for cls in (InputError, GeometryError, FetchError, PolarDayNightError):
            assert issubclass(cls, SunnySpotError)

    def test_messages(self):
        assert str(InputError("hour", 25)) == "Invalid hour: 25"
        assert "footprint way/1" in str(GeometryError("ring not closed", "way/1"))
        error = PolarDayNightError(AMSTERDAM, date(2024, 6, 21))
        assert "2024-06-21" in str(error)
        assert FetchError("down", AMSTERDAM).point == AMSTERDAM
