"""Operational state: source health, freshness checks, task results, system health."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from models.enums import HealthStatus, Severity
from utils.constants import ensure_utc


def _now():
    return datetime.now(timezone.utc)


def _iso(dt):
    return dt.isoformat() if dt is not None else None


@dataclass
class SourceHealth:
    """Per-adapter circuit breaker state."""
    name: str
    max_errors: int = 3
    enabled: bool = True
    last_run: Optional[datetime] = None
    last_success: Optional[datetime] = None
    consecutive_error_count: int = 0
    total_runs: int = 0
    total_failures: int = 0
    last_error: Optional[str] = None

    def to_dict(self):
        return {
            "name": self.name,
            "enabled": self.enabled,
            "max_errors": self.max_errors,
            "last_run": _iso(self.last_run),
            "last_success": _iso(self.last_success),
            "consecutive_error_count": self.consecutive_error_count,
            "total_runs": self.total_runs,
            "total_failures": self.total_failures,
            "last_error": self.last_error,
        }


@dataclass
class FreshnessCheck:
    source: str
    asset: str
    value: Optional[float]
    timestamp: datetime
    is_fresh: bool
    is_accurate: bool
    staleness_minutes: float
    expected_range: Optional[tuple] = None
    errors: list = field(default_factory=list)

    def to_dict(self):
        return {
            "source": self.source,
            "asset": self.asset,
            "value": self.value,
            "timestamp": _iso(self.timestamp),
            "expected_range": list(self.expected_range) if self.expected_range else None,
            "is_fresh": self.is_fresh,
            "is_accurate": self.is_accurate,
            "staleness_minutes": round(self.staleness_minutes, 2),
            "errors": list(self.errors),
        }


@dataclass
class ValidationStatus:
    total_assets: int = 0
    fresh_assets: int = 0
    accurate_assets: int = 0
    critical_issues: list = field(default_factory=list)
    overall_health: HealthStatus = HealthStatus.HEALTHY

    def to_dict(self):
        return {
            "total_assets": self.total_assets,
            "fresh_assets": self.fresh_assets,
            "accurate_assets": self.accurate_assets,
            "critical_issues": list(self.critical_issues),
            "overall_health": self.overall_health.value,
        }


@dataclass
class DisplayDecision:
    should_display: bool
    reason: str
    fallback_recommended: bool = False

    def to_dict(self):
        return {
            "should_display": self.should_display,
            "reason": self.reason,
            "fallback_recommended": self.fallback_recommended,
        }


@dataclass
class HealthAlert:
    severity: Severity
    message: str
    source: Optional[str] = None
    asset: Optional[str] = None
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self):
        return {
            "severity": self.severity.value,
            "message": self.message,
            "source": self.source,
            "asset": self.asset,
            "timestamp": _iso(self.timestamp),
        }


@dataclass
class TaskResult:
    task: str
    success: bool
    data_points: int = 0
    errors: list = field(default_factory=list)
    elapsed_ms: int = 0
    timestamp: datetime = field(default_factory=_now)
    skipped: bool = False
    from_cache: list = field(default_factory=list)

    def to_dict(self):
        return {
            "task": self.task,
            "success": self.success,
            "data_points": self.data_points,
            "errors": list(self.errors),
            "elapsed_ms": self.elapsed_ms,
            "timestamp": _iso(self.timestamp),
            "skipped": self.skipped,
            "from_cache": list(self.from_cache),
        }


@dataclass
class SystemHealth:
    status: HealthStatus = HealthStatus.HEALTHY
    active_sources: int = 0
    failed_sources: int = 0
    last_success: Optional[datetime] = None
    total_points: int = 0
    validation_pass_rate: float = 1.0
    freshness_score: float = 0.0
    error_rate: float = 0.0
    alerts: list = field(default_factory=list)
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self):
        return {
            "status": self.status.value,
            "active_sources": self.active_sources,
            "failed_sources": self.failed_sources,
            "last_success": _iso(self.last_success),
            "total_points": self.total_points,
            "validation_pass_rate": round(self.validation_pass_rate, 4),
            "freshness_score": round(self.freshness_score, 2),
            "error_rate": round(self.error_rate, 4),
            "alerts": list(self.alerts),
            "timestamp": _iso(self.timestamp),
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            status=HealthStatus(d.get("status", "HEALTHY")),
            active_sources=d.get("active_sources", 0),
            failed_sources=d.get("failed_sources", 0),
            last_success=ensure_utc(d.get("last_success")),
            total_points=d.get("total_points", 0),
            validation_pass_rate=d.get("validation_pass_rate", 1.0),
            freshness_score=d.get("freshness_score", 0.0),
            error_rate=d.get("error_rate", 0.0),
            alerts=d.get("alerts", []),
            timestamp=ensure_utc(d["timestamp"]),
        )
