"""Typed configuration records, built from the validated YAML config."""
from dataclasses import dataclass, field
from typing import Optional

from models.enums import Asset, DataClass


@dataclass
class AdapterSettings:
    name: str
    enabled: bool = True
    rate_limit_ms: int = 1000
    retry_attempts: int = 3
    backoff_base_ms: int = 1000
    backoff_max_ms: int = 10000
    timeout_seconds: float = 30
    max_errors: int = 3
    interval_seconds: int = 3600
    user_agent: str = "FXBiasMonitor/1.0"
    options: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, name, d):
        known = {k: v for k, v in d.items() if k in cls.__dataclass_fields__ and k != "name"}
        return cls(name=name, **known)


@dataclass
class StoreSettings:
    ttl_seconds: dict = field(default_factory=lambda: {
        "economic": 1800,
        "positioning": 604800,
        "sentiment": 7200,
        "scores": 900,
        "rate_decisions": 900,
        "calendar": 86400,
        "health": 300,
        "prices_open": 30,
        "prices_closed": 300,
        "results": 604800,
    })
    max_points_per_asset: int = 1000
    max_positioning_per_asset: int = 52
    sentiment_retention_days: int = 30
    calendar_window_days: int = 30
    result_cache_days: int = 7

    def ttl(self, category):
        return self.ttl_seconds.get(category, 300)


@dataclass
class FreshnessSettings:
    max_stale_minutes: dict = field(default_factory=lambda: {
        "price": 5,
        "economic": 2880,
        "positioning": 14400,
        "sentiment": 240,
        "default": 60,
    })
    validation_ranges: dict = field(default_factory=dict)
    critical_assets: list = field(default_factory=lambda: ["XAU", "XAG", "EUR", "GBP"])
    history_size: int = 10

    def stale_limit(self, data_class=None):
        key = data_class.value if isinstance(data_class, DataClass) else (data_class or "default")
        return float(self.max_stale_minutes.get(key, self.max_stale_minutes.get("default", 60)))


@dataclass
class ScoringSettings:
    weights: dict = field(default_factory=lambda: {
        "economic": 0.35,
        "sentiment": 0.15,
        "positioning": 0.30,
        "central_bank": 0.10,
        "technical": 0.10,
    })
    strong_threshold: float = 0.6
    moderate_threshold: float = 0.2
    surprise_threshold: float = 0.02
    sentiment_extreme: float = 75.0
    freshness_decay_hours: float = 168.0
    confidence_base: float = 0.5


@dataclass
class SchedulerSettings:
    tick_seconds: float = 1.0
    max_workers: int = 8
    history_size: int = 100
    initial_delay_seconds: float = 0.0
    jitter_seconds: float = 60.0
    intervals: dict = field(default_factory=lambda: {
        "SCORE_CALCULATION": 600,
        "RATE_DECISION_ANALYSIS": 14400,
        "SYSTEM_HEALTH_CHECK": 300,
        "CACHE_CLEANUP": 86400,
        "EVENT_TRIGGER_CHECK": 60,
    })
    event_buffer_minutes: float = 5.0

    def __post_init__(self):
        self.tick_seconds = float(self.tick_seconds)
        self.initial_delay_seconds = float(self.initial_delay_seconds)
        self.jitter_seconds = float(self.jitter_seconds)


@dataclass
class CentralBankProfile:
    asset: Asset
    bank_name: str
    inflation_target: float = 2.0
    unemployment_target: Optional[float] = None
    dual_mandate: bool = False
    hawkish_bias: float = 0.0
    meetings_per_year: int = 8

    @classmethod
    def from_dict(cls, d):
        return cls(
            asset=Asset(d["asset"]),
            bank_name=d["bank_name"],
            inflation_target=float(d.get("inflation_target", 2.0)),
            unemployment_target=d.get("unemployment_target"),
            dual_mandate=bool(d.get("dual_mandate", False)),
            hawkish_bias=float(d.get("hawkish_bias", 0.0)),
            meetings_per_year=int(d.get("meetings_per_year", 8)),
        )


@dataclass
class Settings:
    """Everything the pipeline needs, in typed form."""
    assets: list
    sources: dict
    store: StoreSettings
    freshness: FreshnessSettings
    scoring: ScoringSettings
    scheduler: SchedulerSettings
    central_banks: list
    database_path: Optional[str] = None

    @classmethod
    def from_config(cls, config):
        fresh = config.get("freshness", {})
        ranges = {
            key: (float(b["min"]), float(b["max"]))
            for key, b in fresh.get("validation_ranges", {}).items()
        }
        db = config.get("database", {})
        return cls(
            assets=[Asset(a) for a in config.get("assets", [])],
            sources={
                name: AdapterSettings.from_dict(name, d or {})
                for name, d in config.get("sources", {}).items()
            },
            store=StoreSettings(**config.get("store", {})),
            freshness=FreshnessSettings(
                max_stale_minutes=fresh.get("max_stale_minutes", FreshnessSettings().max_stale_minutes),
                validation_ranges=ranges,
                critical_assets=fresh.get("critical_assets", FreshnessSettings().critical_assets),
                history_size=fresh.get("history_size", 10),
            ),
            scoring=ScoringSettings(**config.get("scoring", {})),
            scheduler=SchedulerSettings(**config.get("scheduler", {})),
            central_banks=[CentralBankProfile.from_dict(d) for d in config.get("central_banks", [])],
            database_path=db.get("path") if db.get("enabled") else None,
        )
