import pytest
from pydantic import ValidationError

from sugvoyage.config.settings import Settings, get_logging_config, get_settings


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()


def test_packaged_defaults_match_documented_values():
    settings = get_settings()
    assert settings.proximity.cooldown_seconds == 5
    assert settings.proximity.poll_interval_seconds == 5
    assert settings.proximity.default_radius_m == 1000
    assert settings.proximity.max_spots_in_payload == 5
    assert settings.recommendations.fallback_enabled is False
    assert settings.recommendations.fallback_limit == 10
    assert settings.catalog.path == "data/catalogs/spots.json"


def test_env_overrides_cooldown_and_poll_interval(monkeypatch, fresh_settings):
    monkeypatch.setenv("SUGVOYAGE_COOLDOWN_SECONDS", "30")
    monkeypatch.setenv("SUGVOYAGE_POLL_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("SUGVOYAGE_LOG_LEVEL", "debug")

    settings = fresh_settings()

    assert settings.proximity.cooldown_seconds == 30
    assert settings.proximity.poll_interval_seconds == 2.5
    assert settings.app.log_level == "debug"


def test_external_config_file_replaces_defaults(monkeypatch, tmp_path, fresh_settings):
    path = tmp_path / "sugvoyage.yaml"
    path.write_text("proximity:\n  cooldown_seconds: 12\n  default_radius_m: 250\n", encoding="utf-8")
    monkeypatch.setenv("SUGVOYAGE_CONFIG_PATH", str(path))

    settings = fresh_settings()

    assert settings.proximity.cooldown_seconds == 12
    assert settings.proximity.default_radius_m == 250
    assert settings.proximity.poll_interval_seconds == 5


def test_catalog_timeout_may_not_exceed_cooldown():
    with pytest.raises(ValidationError, match="fetch_timeout_seconds"):
        Settings.model_validate({"catalog": {"fetch_timeout_seconds": 10}, "proximity": {"cooldown_seconds": 5}})


def test_durations_must_be_positive():
    with pytest.raises(ValidationError):
        Settings.model_validate({"proximity": {"poll_interval_seconds": 0}})


def test_logging_config_is_a_dict_config():
    config = get_logging_config()
    assert config["version"] == 1
    assert "console" in config["handlers"]


def test_short_cooldown_alone_shrinks_the_default_fetch_timeout(monkeypatch, fresh_settings):
    monkeypatch.setenv("SUGVOYAGE_COOLDOWN_SECONDS", "2")

    settings = fresh_settings()
    assert settings.proximity.cooldown_seconds == 2
    assert settings.catalog.fetch_timeout_seconds == 2


def test_default_fetch_timeout_is_three_seconds():
    assert Settings().catalog.fetch_timeout_seconds == 3
