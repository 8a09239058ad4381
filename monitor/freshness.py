"""Freshness and range validation per (source, asset)."""
import logging
import threading
from collections import deque

from models.enums import HealthStatus, Severity
from models.health import FreshnessCheck, ValidationStatus, DisplayDecision, HealthAlert
from models.settings import FreshnessSettings
from utils.constants import utcnow, ensure_utc

logger = logging.getLogger("fxbias.freshness")

MIN_FRESH_RATIO = 0.8
MIN_ACCURATE_RATIO = 0.9


def _code(value):
    return getattr(value, "value", value)


class FreshnessMonitor:
    """Judges whether values are recent enough and inside their expected range.

    Every `validate` call appends to a short per-key history. Reads use the
    latest check: `should_display` refuses critical assets unless they are
    both fresh and accurate, and refuses anything without history.
    """

    def __init__(self, settings=None, clock=utcnow):
        self.settings = settings or FreshnessSettings()
        self._ranges = dict(self.settings.validation_ranges)
        self._critical = {_code(a) for a in self.settings.critical_assets}
        self._history = {}
        self._clock = clock
        self._lock = threading.Lock()

    def is_critical(self, asset):
        return _code(asset) in self._critical

    def _range_for(self, asset, indicator=None):
        if indicator is not None:
            rng = self._ranges.get(f"{_code(asset)}:{_code(indicator)}")
            if rng:
                return rng
        return self._ranges.get(_code(asset))

    def validate(self, source, asset, value, timestamp, indicator=None, data_class=None, now=None):
        """Check one value and record the result in the (source, asset) history."""
        now = ensure_utc(now) or self._clock()
        ts = ensure_utc(timestamp)
        staleness = max(0.0, (now - ts).total_seconds() / 60.0)
        limit = self.settings.stale_limit(data_class)
        errors = []

        is_fresh = staleness <= limit
        if not is_fresh:
            errors.append(f"Data is {staleness:.1f} minutes old (limit {limit:g})")

        expected = self._range_for(asset, indicator)
        is_accurate = True
        if value is None:
            is_accurate = False
            errors.append("Missing value")
        elif expected and not (expected[0] <= value <= expected[1]):
            is_accurate = False
            errors.append(f"Value {value} outside expected range {expected[0]}-{expected[1]}")

        check = FreshnessCheck(
            source=source,
            asset=_code(asset),
            value=value,
            timestamp=ts,
            expected_range=expected,
            is_fresh=is_fresh,
            is_accurate=is_accurate,
            staleness_minutes=staleness,
            errors=errors,
        )
        with self._lock:
            key = (source, _code(asset))
            if key not in self._history:
                self._history[key] = deque(maxlen=self.settings.history_size)
            self._history[key].append(check)

        if errors:
            logger.debug(f"[{source}] {_code(asset)}: {'; '.join(errors)}")
        return check

    def _latest(self):
        with self._lock:
            return {key: hist[-1] for key, hist in self._history.items() if hist}

    def get_validation_status(self):
        latest = self._latest()
        total = len(latest)
        fresh = sum(1 for c in latest.values() if c.is_fresh)
        accurate = sum(1 for c in latest.values() if c.is_accurate)

        critical_issues = []
        for (source, asset), check in sorted(latest.items()):
            if asset in self._critical and not (check.is_fresh and check.is_accurate):
                problem = "stale" if not check.is_fresh else "out of range"
                critical_issues.append(f"{asset} from {source} is {problem}")

        if critical_issues:
            status = HealthStatus.CRITICAL
        elif total and (fresh / total < MIN_FRESH_RATIO or accurate / total < MIN_ACCURATE_RATIO):
            status = HealthStatus.WARNING
        else:
            status = HealthStatus.HEALTHY

        return ValidationStatus(
            total_assets=total,
            fresh_assets=fresh,
            accurate_assets=accurate,
            critical_issues=critical_issues,
            overall_health=status,
        )

    def should_display(self, source, asset):
        """Read-time gate for a (source, asset) value."""
        with self._lock:
            hist = self._history.get((source, _code(asset)))
            check = hist[-1] if hist else None

        if check is None:
            return DisplayDecision(False, "No validation history", fallback_recommended=True)

        if self.is_critical(asset):
            if not check.is_fresh:
                return DisplayDecision(False, f"Critical asset data is stale "
                                              f"({check.staleness_minutes:.1f} min)", True)
            if not check.is_accurate:
                return DisplayDecision(False, "Critical asset value outside expected range", True)
            return DisplayDecision(True, "Fresh and accurate")

        if not check.is_accurate:
            return DisplayDecision(False, "Value outside expected range", True)
        if not check.is_fresh:
            return DisplayDecision(True, "Accurate but stale", fallback_recommended=True)
        return DisplayDecision(True, "Fresh and accurate")

    def get_asset_history(self, source, asset):
        with self._lock:
            return list(self._history.get((source, _code(asset)), []))

    def generate_alerts(self):
        status = self.get_validation_status()
        alerts = [HealthAlert(Severity.CRITICAL, issue) for issue in status.critical_issues]
        if status.overall_health == HealthStatus.WARNING:
            alerts.append(HealthAlert(
                Severity.WARNING,
                f"Data quality degraded: {status.fresh_assets}/{status.total_assets} fresh, "
                f"{status.accurate_assets}/{status.total_assets} accurate",
            ))
        return alerts

    def update_validation_range(self, key, minimum, maximum):
        if minimum > maximum:
            raise ValueError(f"Invalid range for {key}: {minimum} > {maximum}")
        self._ranges[key] = (minimum, maximum)
        logger.info(f"Validation range for {key} set to {minimum}-{maximum}")

    def clear_history(self):
        with self._lock:
            self._history.clear()
