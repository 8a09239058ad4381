"""Configuration management."""
import os
import yaml
from pathlib import Path

_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"

REQUIRED_SECTIONS = ["assets", "sources", "store", "freshness", "scoring", "scheduler", "central_banks"]


class ConfigError(ValueError):
    """Raised when configuration fails validation."""


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides."""
    with open(_DEFAULT_CONFIG) as f:
        config = yaml.safe_load(f)

    if path:
        if not Path(path).exists():
            raise ConfigError(f"Config file not found: {path}")
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        config = _deep_merge(config, overrides)

    # Environment variable overrides
    env_map = {
        "FXBIAS_DB_PATH": (("database", "path"), str),
        "FXBIAS_LOG_LEVEL": (("logging", "level"), str),
        "FXBIAS_SCORE_INTERVAL": (("scheduler", "intervals", "SCORE_CALCULATION"), int),
        "FXBIAS_TICK_SECONDS": (("scheduler", "tick_seconds"), float),
        "FXBIAS_WEB_PORT": (("web", "port"), int),
    }
    for env_key, (config_path, cast) in env_map.items():
        val = os.environ.get(env_key)
        if val:
            d = config
            for k in config_path[:-1]:
                d = d.setdefault(k, {})
            try:
                d[config_path[-1]] = cast(val)
            except ValueError:
                raise ConfigError(f"{env_key}={val!r} is not a valid {cast.__name__}") from None

    validate_config(config)
    return config


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def validate_config(config):
    """Reject configs the pipeline cannot run with."""
    for section in REQUIRED_SECTIONS:
        if section not in config:
            raise ConfigError(f"Missing required config section: {section}")

    weights = config["scoring"].get("weights", {})
    total = sum(float(w) for w in weights.values())
    if abs(total - 1.0) > 1e-6:
        raise ConfigError(f"scoring.weights must sum to 1.0 (got {total:.4f})")

    for name, src in config["sources"].items():
        if int(src.get("max_errors", 1)) < 1:
            raise ConfigError(f"sources.{name}.max_errors must be >= 1")
        if int(src.get("retry_attempts", 1)) < 1:
            raise ConfigError(f"sources.{name}.retry_attempts must be >= 1")
        if float(src.get("interval_seconds", 1)) < 1:
            raise ConfigError(f"sources.{name}.interval_seconds must be >= 1 second")

    try:
        tick = float(config["scheduler"].get("tick_seconds", 1.0))
    except (TypeError, ValueError):
        raise ConfigError("scheduler.tick_seconds must be a number") from None
    if tick <= 0:
        raise ConfigError("scheduler.tick_seconds must be > 0")

    for task, interval in config["scheduler"].get("intervals", {}).items():
        if float(interval) < 1:
            raise ConfigError(f"scheduler.intervals.{task} must be >= 1 second")

    for key, bounds in config["freshness"].get("validation_ranges", {}).items():
        if float(bounds["min"]) > float(bounds["max"]):
            raise ConfigError(f"freshness.validation_ranges.{key}: min > max")
