from datetime import timedelta

import pytest

from delivery_stats.config.settings import Settings
from delivery_stats.domain.exceptions import ConfigurationError
from delivery_stats.domain.models import KeyClass

ENV_NAMES = (
    "DATABASE_PATH", "HTTP_PORT", "ORDER_STATS_TTL_SECONDS", "USER_STATS_TTL_SECONDS",
    "DRIVER_ROSTER_TTL_SECONDS", "DRIVER_ROSTER_LIMIT", "QUERY_TIMEOUT_SECONDS",
    "CACHE_WARMUP_ENABLED", "DASHBOARD_BOT_TOKEN", "ADMIN_USER_IDS", "DASHBOARD_API_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings()

    assert settings.DATABASE_PATH == "delivery.db"
    assert settings.DRIVER_ROSTER_LIMIT == 1000
    assert settings.CACHE_WARMUP_ENABLED is True
    assert settings.DASHBOARD_BOT_TOKEN is None
    assert settings.DASHBOARD_API_URL == "http://localhost:8000"
    assert settings.ttls == {key: timedelta(seconds=60) for key in KeyClass}


def test_per_key_ttls(monkeypatch):
    monkeypatch.setenv("DRIVER_ROSTER_TTL_SECONDS", "300")
    monkeypatch.setenv("ORDER_STATS_TTL_SECONDS", "2.5")

    settings = Settings()

    assert settings.ttl_for(KeyClass.DRIVER_ROSTER) == timedelta(seconds=300)
    assert settings.ttl_for(KeyClass.ORDER_STATS) == timedelta(seconds=2.5)


@pytest.mark.parametrize("name,value", [
    ("ORDER_STATS_TTL_SECONDS", "0"),
    ("USER_STATS_TTL_SECONDS", "-5"),
    ("QUERY_TIMEOUT_SECONDS", "soon"),
    ("DRIVER_ROSTER_LIMIT", "0"),
    ("DRIVER_ROSTER_LIMIT", "1.5"),
    ("HTTP_PORT", "http"),
])
def test_invalid_values_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError, match=name):
        Settings()


def test_admin_ids_and_flags(monkeypatch):
    monkeypatch.setenv("ADMIN_USER_IDS", "1, 2,,3")
    monkeypatch.setenv("CACHE_WARMUP_ENABLED", "off")

    settings = Settings()

    assert settings.ADMIN_USER_IDS == [1, 2, 3]
    assert settings.CACHE_WARMUP_ENABLED is False


def test_malformed_admin_ids_are_ignored(monkeypatch):
    monkeypatch.setenv("ADMIN_USER_IDS", "1,abc")
    assert Settings().ADMIN_USER_IDS == []
