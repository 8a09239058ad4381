"""BiasMonitor - facade wiring collection, scoring and scheduling together."""
import logging
import threading
import time
from datetime import timedelta

from models.enums import HealthStatus
from models.health import TaskResult
from utils.constants import utcnow

logger = logging.getLogger("fxbias.monitor")

SCORE_TASK = "SCORE_CALCULATION"
RATE_TASK = "RATE_DECISION_ANALYSIS"
HEALTH_TASK = "SYSTEM_HEALTH_CHECK"
CLEANUP_TASK = "CACHE_CLEANUP"
EVENT_TASK = "EVENT_TRIGGER_CHECK"

# Releases older than this are not chased after a restart
EVENT_LOOKBACK_HOURS = 24


def collection_task_name(source):
    return f"{source}_UPDATE"


class BiasMonitor:
    """Owns one of each component, exposes task handlers, read queries and operator controls.

    Read methods never raise on missing data; they return empty lists or a
    degraded health report.

    Scheduled collections skip a source while its data is still fresh. New or
    revised records bring the next score run forward, and a calendar release
    that has just come out brings its source's next collection forward.
    """

    def __init__(self, manager, store, freshness, engine, estimator, scheduler, settings=None):
        self.manager = manager
        self.store = store
        self.freshness = freshness
        self.engine = engine
        self.estimator = estimator
        self.scheduler = scheduler
        self.settings = settings
        self._forced = set()
        self._fired_events = set()
        self._lock = threading.Lock()

    # ── Lifecycle ────────────────────────────────────────

    def register_default_tasks(self):
        for name in self.manager.source_names:
            adapter = self.manager.get_adapter(name)
            self.scheduler.add_task(
                collection_task_name(name),
                adapter.settings.interval_seconds,
                lambda source=name: self.collect_if_due(source),
                enabled=adapter.settings.enabled,
            )
        intervals = self.settings.scheduler.intervals if self.settings else {}
        self.scheduler.add_task(SCORE_TASK, intervals.get(SCORE_TASK, 600), self.recalculate_scores)
        self.scheduler.add_task(RATE_TASK, intervals.get(RATE_TASK, 14400), self.analyze_rate_decisions)
        self.scheduler.add_task(HEALTH_TASK, intervals.get(HEALTH_TASK, 300), self.check_health)
        self.scheduler.add_task(CLEANUP_TASK, intervals.get(CLEANUP_TASK, 86400), self.cleanup)
        self.scheduler.add_task(EVENT_TASK, intervals.get(EVENT_TASK, 60), self.process_event_triggers)

    def start(self):
        if not self.scheduler.task_names:
            self.register_default_tasks()
        self.scheduler.start()

    def stop(self):
        self.scheduler.stop()

    def close(self):
        self.stop()
        self.manager.close()

    # ── Task handlers ────────────────────────────────────

    def collect(self, name=None, assets=None):
        """Run one source (or all enabled sources) and summarise the outcome."""
        start = time.monotonic()
        task = collection_task_name(name) if name else "COLLECT_ALL"
        if name:
            result = self.manager.run_one(name, assets)
            if result is None:
                return TaskResult(task=task, success=True, skipped=True)
            results = {name: result}
        else:
            results = self.manager.run_all(assets)

        records = sum(r.record_count for r in results.values())
        errors = [f"{src}: {e}" for src, r in results.items() for e in r.errors]
        failed = [src for src, r in results.items() if r.errors and r.record_count == 0]

        changed = sorted({a for r in results.values() for a in r.changed_assets}, key=lambda a: a.value)
        if changed:
            self._request_run(SCORE_TASK, f"new data for {', '.join(a.value for a in changed)}")

        return TaskResult(
            task=task,
            success=not results or len(failed) < len(results),
            data_points=records,
            errors=errors,
            elapsed_ms=int((time.monotonic() - start) * 1000),
            from_cache=sorted(src for src, r in results.items() if r.from_cache),
        )

    def collect_if_due(self, name, now=None):
        """Scheduled collection: skip the run while the source's data is still fresh."""
        with self._lock:
            forced = name in self._forced
            self._forced.discard(name)
        adapter = self.manager.get_adapter(name)
        health = self.manager.get_source_health().get(name)
        if not forced and adapter is not None and health is not None and health.last_success:
            if not self.store.should_refresh(adapter.category, last_update=health.last_success, now=now):
                logger.debug(f"[{name}] {adapter.category} data still fresh, collection skipped")
                return TaskResult(task=collection_task_name(name), success=True, skipped=True)
        return self.collect(name)

    def process_event_triggers(self, now=None):
        """Bring forward the collection of any source whose calendar release has just come out."""
        now = now or utcnow()
        buffer = timedelta(minutes=self.settings.scheduler.event_buffer_minutes if self.settings else 5)
        window_end = now - buffer
        window_start = window_end - timedelta(hours=EVENT_LOOKBACK_HOURS)
        released = self.store.get_calendar_events(start=window_start, end=window_end)
        sources = set(self.manager.source_names)

        fired = []
        with self._lock:
            for event in released:
                if event.id in self._fired_events or event.source not in sources:
                    continue
                self._fired_events.add(event.id)
                self._forced.add(event.source)
                fired.append(event)
            self._fired_events &= {e.id for e in self.store.get_calendar_events()}

        for source in sorted({e.source for e in fired}):
            names = ", ".join(e.name for e in fired if e.source == source)
            self._request_run(collection_task_name(source), f"released: {names}")
        return TaskResult(task=EVENT_TASK, success=True, data_points=len(fired))

    def _request_run(self, task, reason):
        if task in self.scheduler.task_names:
            self.scheduler.request_run(task, reason=reason)

    def _scoring_inputs(self):
        decay = self.engine.settings.freshness_decay_hours
        points = self.store.get_economic_data(max_age_hours=decay, valid_only=True)
        positioning = {}
        for record in self.store.get_positioning():
            positioning.setdefault(record.asset, record)
        sentiment = {}
        for record in self.store.get_sentiment():
            sentiment.setdefault(record.asset, []).append(record)
        return points, positioning, sentiment

    def recalculate_scores(self, now=None):
        points, positioning, sentiment = self._scoring_inputs()
        assets = self.settings.assets if self.settings else None
        scores = self.engine.calculate_all(points, positioning, sentiment, assets=assets, now=now)
        self.store.store_scores(scores)
        if scores:
            top = scores[0]
            logger.info(f"Scored {len(scores)} assets, strongest {top.asset.value} "
                        f"{top.signal.value} ({top.normalized_score:+.2f})")
        return TaskResult(task=SCORE_TASK, success=True, data_points=len(scores))

    def analyze_rate_decisions(self, now=None):
        points = self.store.get_economic_data(max_age_hours=None, valid_only=True)
        by_asset = {asset: [] for asset in self.estimator.profiles}
        for p in points:
            if p.asset in by_asset:
                by_asset[p.asset].append(p)
        estimates = self.estimator.estimate_all(by_asset, now=now)
        self.store.store_rate_decisions(estimates)
        summary = self.estimator.summarize(estimates)
        logger.info(f"Rate outlook: cuts {summary['most_likely_cuts']}, hikes {summary['most_likely_hikes']}")
        return TaskResult(task=RATE_TASK, success=True, data_points=len(estimates))

    def check_health(self):
        health = self.manager.get_system_health()
        for alert in self.freshness.generate_alerts():
            if alert.message not in health.alerts:
                health.alerts.append(alert.message)
        self.store.store_system_health(health)
        if health.status != HealthStatus.HEALTHY:
            logger.warning(f"System health {health.status.value}: {'; '.join(health.alerts) or 'no alerts'}")
        return TaskResult(task=HEALTH_TASK, success=True, data_points=len(health.alerts))

    def cleanup(self):
        removed = self.store.cleanup()
        return TaskResult(task=CLEANUP_TASK, success=True, data_points=removed)

    # ── Read API ─────────────────────────────────────────

    def get_data(self, assets=None, indicators=None, max_age_hours=24):
        return self.store.get_economic_data(assets=assets, indicators=indicators, max_age_hours=max_age_hours)

    def get_scores(self, assets=None):
        return self.store.get_scores(assets)

    def get_rate_decisions(self, assets=None):
        return self.store.get_rate_decisions(assets)

    def get_positioning(self, assets=None):
        return self.store.get_positioning(assets)

    def get_sentiment(self, assets=None):
        return self.store.get_sentiment(assets)

    def get_system_health(self):
        return self.manager.get_system_health()

    def get_source_health(self):
        return self.manager.get_source_health()

    def get_schedule_status(self):
        return self.scheduler.get_status()

    def get_display_decision(self, source, asset):
        return self.freshness.should_display(source, asset)

    def get_cache_stats(self):
        return self.store.get_cache_stats()

    # ── Operator controls ────────────────────────────────

    def enable_source(self, name, enabled=True):
        self.manager.enable_source(name, enabled)

    def enable_schedule(self, name, enabled=True):
        self.scheduler.set_enabled(name, enabled)

    def trigger_task(self, name):
        """Run a task now. A collection task always fetches, fresh data or not."""
        for source in self.manager.source_names:
            if collection_task_name(source) == name:
                with self._lock:
                    self._forced.add(source)
        return self.scheduler.trigger(name)

    def clear_cache(self):
        self.store.clear_cache()


def build_monitor(config, persistence=None):
    """Construct one of each component from a validated config dict."""
    from models.settings import Settings
    from models.store import DataStore
    from monitor.api import build_adapters
    from monitor.freshness import FreshnessMonitor
    from monitor.manager import SourceManager
    from monitor.scheduler import TaskScheduler
    from scoring.engine import ScoringEngine
    from scoring.rate_decision import RateDecisionEstimator

    settings = Settings.from_config(config)
    store = DataStore(settings.store, persistence=persistence)
    freshness = FreshnessMonitor(settings.freshness)
    manager = SourceManager(store, freshness, settings.sources,
                            max_workers=settings.scheduler.max_workers, persistence=persistence)
    for adapter in build_adapters(settings.sources).values():
        manager.register(adapter)

    monitor = BiasMonitor(
        manager=manager,
        store=store,
        freshness=freshness,
        engine=ScoringEngine(settings.scoring, profiles=settings.central_banks),
        estimator=RateDecisionEstimator(settings.central_banks, settings.scoring),
        scheduler=TaskScheduler(settings.scheduler),
        settings=settings,
    )
    monitor.register_default_tasks()
    return monitor
