"""Tests for configuration loading and validation."""
import pytest

from config import ConfigError, load_config, validate_config
from models.enums import Asset
from models.settings import Settings


def test_defaults_load_and_validate():
    config = load_config()
    assert len(config["assets"]) == 11
    assert sum(config["scoring"]["weights"].values()) == pytest.approx(1.0)
    assert set(config["sources"]) == {"FRED", "CFTC", "MARKET_DATA", "SENTIMENT"}


def test_override_file_is_deep_merged(tmp_path):
    path = tmp_path / "override.yaml"
    path.write_text("scoring:\n  strong_threshold: 0.7\nsources:\n  CFTC:\n    enabled: false\n")
    config = load_config(str(path))
    assert config["scoring"]["strong_threshold"] == 0.7
    assert config["scoring"]["moderate_threshold"] == 0.2
    assert config["sources"]["CFTC"]["enabled"] is False
    assert config["sources"]["CFTC"]["rate_limit_ms"] == 2000


def test_missing_override_file():
    with pytest.raises(ConfigError, match="not found"):
        load_config("/nonexistent/fxbias.yaml")


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FXBIAS_WEB_PORT", "8080")
    monkeypatch.setenv("FXBIAS_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("FXBIAS_SCORE_INTERVAL", "120")
    config = load_config()
    assert config["web"]["port"] == 8080
    assert config["logging"]["level"] == "DEBUG"
    assert config["scheduler"]["intervals"]["SCORE_CALCULATION"] == 120


def test_weights_must_sum_to_one():
    config = load_config()
    config["scoring"]["weights"]["economic"] = 0.5
    with pytest.raises(ConfigError, match="sum to 1.0"):
        validate_config(config)


def test_missing_section():
    config = load_config()
    del config["central_banks"]
    with pytest.raises(ConfigError, match="central_banks"):
        validate_config(config)


@pytest.mark.parametrize("field,value", [
    ("max_errors", 0),
    ("retry_attempts", 0),
    ("interval_seconds", 0.5),
])
def test_source_limits(field, value):
    config = load_config()
    config["sources"]["FRED"][field] = value
    with pytest.raises(ConfigError, match=field):
        validate_config(config)


def test_task_interval_floor():
    config = load_config()
    config["scheduler"]["intervals"]["SCORE_CALCULATION"] = 0
    with pytest.raises(ConfigError):
        validate_config(config)


def test_inverted_range():
    config = load_config()
    config["freshness"]["validation_ranges"]["XAU:PRECIOUS_METAL_PRICE"] = {"min": 6000, "max": 1000}
    with pytest.raises(ConfigError, match="XAU"):
        validate_config(config)


def test_settings_from_config():
    settings = Settings.from_config(load_config())
    assert settings.assets[0] == Asset.USD
    assert settings.sources["FRED"].max_errors == 5
    assert settings.sources["CFTC"].options["dataset"] == "gpe5-46if"
    assert settings.freshness.validation_ranges["XAU:PRECIOUS_METAL_PRICE"] == (1000.0, 6000.0)
    assert settings.freshness.stale_limit("price") == 5.0
    assert settings.store.ttl("positioning") == 604800
    assert settings.scheduler.intervals["CACHE_CLEANUP"] == 86400
    assert len(settings.central_banks) == 9
    fed = next(p for p in settings.central_banks if p.asset == Asset.USD)
    assert fed.dual_mandate
    assert fed.unemployment_target == 4.0
    assert settings.database_path is None


def test_database_path_when_enabled(tmp_path):
    path = tmp_path / "db.yaml"
    path.write_text("database:\n  enabled: true\n  path: /tmp/fx.db\n")
    assert Settings.from_config(load_config(str(path))).database_path == "/tmp/fx.db"


def test_fractional_tick_from_environment(monkeypatch):
    monkeypatch.setenv("FXBIAS_TICK_SECONDS", "0.5")
    config = load_config()
    assert config["scheduler"]["tick_seconds"] == 0.5
    assert Settings.from_config(config).scheduler.tick_seconds == 0.5


@pytest.mark.parametrize("env_key,value", [
    ("FXBIAS_TICK_SECONDS", "fast"),
    ("FXBIAS_TICK_SECONDS", "0"),
    ("FXBIAS_WEB_PORT", "eighty"),
    ("FXBIAS_SCORE_INTERVAL", "1.5"),
])
def test_bad_environment_values_are_rejected(monkeypatch, env_key, value):
    monkeypatch.setenv(env_key, value)
    with pytest.raises(ConfigError, match="FXBIAS|tick_seconds"):
        load_config()


def test_tick_must_be_positive():
    config = load_config()
    config["scheduler"]["tick_seconds"] = -1
    with pytest.raises(ConfigError, match="tick_seconds"):
        validate_config(config)
