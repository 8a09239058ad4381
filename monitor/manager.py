"""Source manager: adapter registry, circuit breaking and ingestion."""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace

from models.data import CollectionResult
from models.enums import DataClass, HealthStatus
from models.health import SourceHealth, SystemHealth
from monitor.changes import ChangeDetector
from utils.constants import utcnow, age_hours

logger = logging.getLogger("fxbias.manager")

STALE_SOURCE_HOURS = 48
FALLBACK_MAX_AGE_HOURS = 24
FRESHNESS_PENALTY_PER_HOUR = 4
CRITICAL_ENABLED_RATIO = 0.5
WARNING_ENABLED_RATIO = 0.8

_SEVERITY_ORDER = [HealthStatus.HEALTHY, HealthStatus.WARNING, HealthStatus.CRITICAL]


class UnknownSourceError(KeyError):
    """No adapter registered under that name."""


def worst_status(*statuses):
    return max(statuses, key=_SEVERITY_ORDER.index)


class SourceManager:
    """Runs registered adapters, tracks their health, and feeds the store.

    A run that produced no records and reported errors is a failure. After
    `max_errors` consecutive failures the source is disabled and stays off
    until `enable_source` is called.

    A failed run falls back to the source's last cached result, putting back
    any of its records the store has since dropped.
    """

    def __init__(self, store, freshness, settings=None, max_workers=8, persistence=None, clock=utcnow):
        self.store = store
        self.freshness = freshness
        self.settings = settings or {}
        self.max_workers = max_workers
        self.persistence = persistence
        self._clock = clock
        self._adapters = {}
        self._health = {}
        self._lock = threading.RLock()
        self.changes = ChangeDetector()

    # ── Registry ─────────────────────────────────────────

    def register(self, adapter, max_errors=None):
        if max_errors is None:
            cfg = self.settings.get(adapter.name) or adapter.settings
            max_errors = cfg.max_errors
        with self._lock:
            self._adapters[adapter.name] = adapter
            self._health[adapter.name] = SourceHealth(
                name=adapter.name,
                max_errors=max_errors,
                enabled=adapter.settings.enabled,
            )
        logger.info(f"Registered source {adapter.name} (max_errors={max_errors})")

    @property
    def source_names(self):
        with self._lock:
            return list(self._adapters)

    def get_adapter(self, name):
        with self._lock:
            return self._adapters.get(name)

    # ── Runs ─────────────────────────────────────────────

    def run_one(self, name, assets=None):
        """Run one adapter. Returns None (and makes no call) if it is unknown or disabled."""
        with self._lock:
            adapter = self._adapters.get(name)
            health = self._health.get(name)
            if adapter is None:
                logger.warning(f"Unknown source {name}")
                return None
            if not health.enabled:
                logger.debug(f"[{name}] skipped, source disabled")
                return None

        try:
            result = adapter.collect(assets)
        except Exception as e:
            logger.error(f"[{name}] collect raised {type(e).__name__}: {e}")
            result = CollectionResult(source=name, errors=[f"{type(e).__name__}: {e}"])

        failed = bool(result.errors) and result.record_count == 0
        if failed:
            self._fall_back_to_cache(name, result)
        else:
            result = self._ingest(name, result)
        self._record_outcome(name, result, failed)

        if self.persistence is not None:
            try:
                self.persistence.log_collection(result)
            except Exception as e:
                logger.warning(f"Collection log write failed: {e}")
        return result

    def run_all(self, assets=None):
        """Run every enabled adapter concurrently and wait for all of them."""
        with self._lock:
            names = [n for n, h in self._health.items() if h.enabled]
        if not names:
            return {}

        results = {}
        with ThreadPoolExecutor(max_workers=min(len(names), self.max_workers)) as executor:
            futures = {executor.submit(self.run_one, name, assets): name for name in names}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    result = future.result()
                except Exception as e:
                    logger.error(f"[{name}] run failed: {e}")
                    result = CollectionResult(source=name, errors=[str(e)])
                if result is not None:
                    results[name] = result
        return results

    def _ingest(self, name, result):
        """Gate points through the freshness monitor, then write everything to the store."""
        gated = []
        for point in result.points:
            check = self.freshness.validate(
                name, point.asset, point.actual, point.timestamp,
                indicator=point.indicator, data_class=point.indicator.data_class,
            )
            gated.append(point if check.is_accurate else point.with_validation(False))
        result.points = gated

        for record in result.positioning:
            self.freshness.validate(name, record.asset, record.commercial_net, record.report_date,
                                    data_class=DataClass.POSITIONING)
        for record in result.sentiment:
            self.freshness.validate(name, record.asset, record.long_percentage, record.timestamp,
                                    data_class=DataClass.SENTIMENT)

        self.store.store_collection(name, result)
        result.changed_assets = sorted(self.changes.detect(result).assets, key=lambda a: a.value)
        return result

    def _fall_back_to_cache(self, name, result):
        cached = self.store.get_cached_result(name, max_age_hours=FALLBACK_MAX_AGE_HOURS)
        if cached is None:
            return
        self.store.restore_collection(cached)
        result.from_cache = cached.timestamp
        logger.info(f"[{name}] using cached result from {cached.timestamp.isoformat()}")

    def _record_outcome(self, name, result, failed):
        now = self._clock()
        with self._lock:
            health = self._health[name]
            health.last_run = now
            health.total_runs += 1
            if not failed:
                health.consecutive_error_count = 0
                health.last_success = now
                return
            health.consecutive_error_count += 1
            health.total_failures += 1
            health.last_error = result.errors[-1] if result.errors else None
            logger.warning(f"[{name}] run failed ({health.consecutive_error_count}/{health.max_errors}): "
                           f"{health.last_error}")
            if health.enabled and health.consecutive_error_count >= health.max_errors:
                health.enabled = False
                logger.error(f"[{name}] disabled after {health.consecutive_error_count} consecutive "
                             f"failures; re-enable manually")

    # ── Operator controls ────────────────────────────────

    def enable_source(self, name, enabled=True):
        with self._lock:
            health = self._health.get(name)
            if health is None:
                raise UnknownSourceError(name)
            health.enabled = bool(enabled)
            if enabled:
                health.consecutive_error_count = 0
        logger.info(f"Source {name} {'enabled' if enabled else 'disabled'}")

    # ── Introspection ────────────────────────────────────

    def get_source_health(self):
        with self._lock:
            return {name: replace(h) for name, h in self._health.items()}

    def get_stats(self):
        with self._lock:
            health = list(self._health.values())
            adapters = dict(self._adapters)
        total_runs = sum(h.total_runs for h in health)
        total_failures = sum(h.total_failures for h in health)
        return {
            "sources": len(health),
            "enabled": sum(1 for h in health if h.enabled),
            "total_runs": total_runs,
            "total_failures": total_failures,
            "error_rate": total_failures / total_runs if total_runs else 0.0,
            "adapters": {name: a.get_stats() for name, a in adapters.items()},
        }

    def get_system_health(self, now=None):
        now = now or self._clock()
        health = list(self.get_source_health().values())
        total = len(health)
        enabled = [h for h in health if h.enabled]

        alerts = []
        freshness_scores = []
        for h in health:
            if not h.enabled:
                alerts.append(f"{h.name} disabled after {h.consecutive_error_count} consecutive errors")
                continue
            if h.last_success is None:
                if h.total_runs:
                    alerts.append(f"{h.name} has never completed successfully")
                continue
            hours = age_hours(h.last_success, now)
            freshness_scores.append(max(0.0, 100.0 - FRESHNESS_PENALTY_PER_HOUR * hours))
            if hours > STALE_SOURCE_HOURS:
                alerts.append(f"{h.name} data is stale ({hours:.0f}h since last success)")

        ratio = len(enabled) / total if total else 0.0
        if ratio < CRITICAL_ENABLED_RATIO:
            status = HealthStatus.CRITICAL
        elif ratio < WARNING_ENABLED_RATIO or alerts:
            status = HealthStatus.WARNING
        else:
            status = HealthStatus.HEALTHY

        validation = self.freshness.get_validation_status()
        status = worst_status(status, validation.overall_health)
        alerts.extend(validation.critical_issues)

        points = self.store.get_economic_data(max_age_hours=None)
        valid = sum(1 for p in points if p.validation_passed)
        runs = sum(h.total_runs for h in health)
        successes = [h.last_success for h in health if h.last_success]

        return SystemHealth(
            status=status,
            active_sources=len(enabled),
            failed_sources=total - len(enabled),
            last_success=max(successes) if successes else None,
            total_points=len(points),
            validation_pass_rate=valid / len(points) if points else 1.0,
            freshness_score=sum(freshness_scores) / len(freshness_scores) if freshness_scores else 0.0,
            error_rate=sum(h.total_failures for h in health) / runs if runs else 0.0,
            alerts=alerts,
            timestamp=now,
        )

    def close(self):
        with self._lock:
            adapters = list(self._adapters.values())
        for adapter in adapters:
            adapter.close()
