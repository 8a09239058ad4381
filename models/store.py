"""In-memory data store with per-category merge/retention and a TTL cache layer."""
import logging
import threading
from datetime import timedelta

from models.data import DataPoint, PositioningData, SentimentData, CalendarEvent
from models.enums import DataClass
from models.health import SystemHealth
from models.scores import AssetScore, RateDecisionEstimate
from models.settings import StoreSettings
from utils.cache import TTLCache
from utils.constants import utcnow, ensure_utc, is_fx_market_open, is_cot_release_window

logger = logging.getLogger("fxbias.store")

CATEGORIES = ("economic", "positioning", "sentiment", "calendar", "scores", "rate_decisions", "health")

_LOADERS = {
    "economic": DataPoint.from_dict,
    "positioning": PositioningData.from_dict,
    "sentiment": SentimentData.from_dict,
    "calendar": CalendarEvent.from_dict,
    "scores": AssetScore.from_dict,
    "rate_decisions": RateDecisionEstimate.from_dict,
    "health": SystemHealth.from_dict,
}


def _filter_assets(records, assets):
    if not assets:
        return list(records)
    wanted = set(assets)
    return [r for r in records if r.asset in wanted]


class DataStore:
    """Durable category lists plus a TTL copy for reads.

    Writes merge by identity key (last write wins) and then trim each asset
    to its retention cap, oldest first. Reads hit the cache layer and fall
    back to the durable lists, repopulating the cache.
    """

    def __init__(self, settings=None, persistence=None, cache=None, clock=utcnow):
        self.settings = settings or StoreSettings()
        self.persistence = persistence
        self.cache = cache or TTLCache()
        self._clock = clock
        self._lock = threading.RLock()
        self._data = {c: {} for c in CATEGORIES}
        self._last_update = {}
        if persistence is not None:
            self._load()

    # ── Persistence ──────────────────────────────────────

    def _load(self):
        for category in CATEGORIES:
            rows = self.persistence.load_category(category)
            loader = _LOADERS[category]
            for row in rows:
                record = loader(row)
                self._data[category][self._identity(category, record)] = record
            if rows:
                logger.info(f"Loaded {len(rows)} {category} records from persistence")

    def _persist(self, category):
        if self.persistence is None:
            return
        records = [r.to_dict() for r in self._data[category].values()]
        try:
            self.persistence.save_category(category, records)
        except Exception as e:
            logger.warning(f"Persisting {category} failed: {e}")

    @staticmethod
    def _identity(category, record):
        if category in ("scores", "rate_decisions"):
            return record.asset
        if category == "health":
            return "system"
        return record.key

    def _touch(self, category):
        self._last_update[category] = self._clock()
        self.cache.invalidate(category)
        self._persist(category)

    # ── Category reads through the cache layer ──────────

    def _snapshot(self, category):
        cached = self.cache.get(category)
        if cached is not None:
            return cached
        with self._lock:
            records = list(self._data[category].values())
            self.cache.set(category, records, ttl=self.settings.ttl(category))
        return records

    def get_last_update(self, category):
        with self._lock:
            return self._last_update.get(category)

    # ── Economic points ──────────────────────────────────

    def store_economic_data(self, points):
        """Merge points (last write wins per key) and trim each asset to its cap."""
        if not points:
            return 0
        with self._lock:
            bucket = self._data["economic"]
            for p in points:
                bucket[p.key] = p
            self._trim_per_asset(
                bucket, self.settings.max_points_per_asset,
                sort_key=lambda p: (p.timestamp, p.release_date),
            )
            self._touch("economic")
        return len(points)

    def get_economic_data(self, assets=None, indicators=None, max_age_hours=24, valid_only=False):
        records = _filter_assets(self._snapshot("economic"), assets)
        if indicators:
            wanted = set(indicators)
            records = [p for p in records if p.indicator in wanted]
        if max_age_hours is not None:
            cutoff = self._clock() - timedelta(hours=max_age_hours)
            records = [p for p in records if p.timestamp >= cutoff]
        if valid_only:
            records = [p for p in records if p.validation_passed]
        return sorted(records, key=lambda p: (p.timestamp, p.release_date), reverse=True)

    # ── Positioning ──────────────────────────────────────

    def store_positioning(self, records):
        if not records:
            return 0
        with self._lock:
            bucket = self._data["positioning"]
            for r in records:
                bucket[r.key] = r
            self._trim_per_asset(
                bucket, self.settings.max_positioning_per_asset,
                sort_key=lambda r: r.report_date,
            )
            self._touch("positioning")
        return len(records)

    def get_positioning(self, assets=None):
        records = _filter_assets(self._snapshot("positioning"), assets)
        return sorted(records, key=lambda r: r.report_date, reverse=True)

    def latest_positioning(self, asset):
        records = self.get_positioning([asset])
        return records[0] if records else None

    # ── Sentiment ────────────────────────────────────────

    def store_sentiment(self, records):
        if not records:
            return 0
        with self._lock:
            bucket = self._data["sentiment"]
            for r in records:
                bucket[r.key] = r
            self._trim_sentiment()
            self._touch("sentiment")
        return len(records)

    def get_sentiment(self, assets=None):
        records = _filter_assets(self._snapshot("sentiment"), assets)
        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    # ── Calendar ─────────────────────────────────────────

    def store_calendar_events(self, events):
        if not events:
            return 0
        with self._lock:
            bucket = self._data["calendar"]
            for e in events:
                bucket[e.key] = e
            self._trim_calendar()
            self._touch("calendar")
        return len(events)

    def get_calendar_events(self, assets=None, start=None, end=None):
        records = _filter_assets(self._snapshot("calendar"), assets)
        if start is not None:
            records = [e for e in records if e.event_time >= ensure_utc(start)]
        if end is not None:
            records = [e for e in records if e.event_time <= ensure_utc(end)]
        return sorted(records, key=lambda e: e.event_time)

    # ── Derived outputs ──────────────────────────────────

    def store_scores(self, scores):
        """Replace the score of every asset in `scores`."""
        with self._lock:
            for s in scores:
                self._data["scores"][s.asset] = s
            self._touch("scores")

    def get_scores(self, assets=None):
        records = _filter_assets(self._snapshot("scores"), assets)
        return sorted(records, key=lambda s: s.total_score, reverse=True)

    def store_rate_decisions(self, estimates):
        with self._lock:
            for e in estimates:
                self._data["rate_decisions"][e.asset] = e
            self._touch("rate_decisions")

    def get_rate_decisions(self, assets=None):
        records = _filter_assets(self._snapshot("rate_decisions"), assets)
        return sorted(records, key=lambda e: e.cut_probability, reverse=True)

    def store_system_health(self, health):
        with self._lock:
            self._data["health"]["system"] = health
            self._touch("health")

    def get_system_health(self):
        records = self._snapshot("health")
        return records[0] if records else None

    # ── Collection results ───────────────────────────────

    def store_collection(self, source, result):
        """Cache the raw result under a per-source-per-day key and merge its records."""
        day = result.timestamp.strftime("%Y-%m-%d")
        ttl = min(self.settings.ttl("results"), self.settings.result_cache_days * 86400)
        self.cache.set(f"result:{source}:{day}", result, ttl=ttl)
        stored = 0
        stored += self.store_economic_data(result.points)
        stored += self.store_positioning(result.positioning)
        stored += self.store_sentiment(result.sentiment)
        stored += self.store_calendar_events(result.events)
        logger.debug(f"[{source}] stored {stored} records")
        return stored

    def get_cached_result(self, source, max_age_hours=24):
        """Most recent cached result for a source, if younger than `max_age_hours`."""
        now = self._clock()
        for days_back in range(self.settings.result_cache_days + 1):
            day = (now - timedelta(days=days_back)).strftime("%Y-%m-%d")
            result = self.cache.get(f"result:{source}:{day}")
            if result is None:
                continue
            if now - result.timestamp <= timedelta(hours=max_age_hours):
                return result
            return None
        return None

    def restore_collection(self, result):
        """Merge a cached result back in, adding only records the store no longer holds."""
        restored = 0
        with self._lock:
            for category, records, writer in (
                ("economic", result.points, self.store_economic_data),
                ("positioning", result.positioning, self.store_positioning),
                ("sentiment", result.sentiment, self.store_sentiment),
                ("calendar", result.events, self.store_calendar_events),
            ):
                missing = [r for r in records if r.key not in self._data[category]]
                restored += writer(missing)
        if restored:
            logger.info(f"[{result.source}] restored {restored} records from cached result")
        return restored

    # ── Refresh policy ───────────────────────────────────

    def should_refresh(self, category, last_update=None, now=None):
        """Whether a category is due for a fresh collection."""
        now = ensure_utc(now) or self._clock()
        if last_update is None:
            last_update = self.get_last_update(category)
        if last_update is None:
            return True
        age = (now - ensure_utc(last_update)).total_seconds()

        if category == DataClass.POSITIONING.value:
            # Weekly report: only worth refetching once it has been published,
            # or when a whole release was missed
            return age > 7 * 86400 or (is_cot_release_window(now) and age > 86400)
        if category in ("prices", DataClass.PRICE.value):
            key = "prices_open" if is_fx_market_open(now) else "prices_closed"
            return age >= self.settings.ttl(key)
        if category == "calendar":
            return age >= 86400
        return age >= self.settings.ttl(category)

    # ── Retention ────────────────────────────────────────

    @staticmethod
    def _trim_per_asset(bucket, cap, sort_key):
        by_asset = {}
        for key, record in bucket.items():
            by_asset.setdefault(record.asset, []).append((key, record))
        for asset, items in by_asset.items():
            if len(items) <= cap:
                continue
            items.sort(key=lambda kv: sort_key(kv[1]), reverse=True)
            for key, _ in items[cap:]:
                del bucket[key]
            logger.debug(f"Trimmed {len(items) - cap} records for {getattr(asset, 'value', asset)}")

    def _trim_sentiment(self):
        cutoff = self._clock() - timedelta(days=self.settings.sentiment_retention_days)
        bucket = self._data["sentiment"]
        stale = [k for k, r in bucket.items() if r.timestamp < cutoff]
        for k in stale:
            del bucket[k]
        return len(stale)

    def _trim_calendar(self):
        now = self._clock()
        window = timedelta(days=self.settings.calendar_window_days)
        bucket = self._data["calendar"]
        outside = [k for k, e in bucket.items() if not (now - window <= e.event_time <= now + window)]
        for k in outside:
            del bucket[k]
        return len(outside)

    # ── Maintenance ──────────────────────────────────────

    def cleanup(self):
        """Purge expired cache entries and re-apply time-based retention."""
        purged = self.cache.purge_expired()
        with self._lock:
            removed_sentiment = self._trim_sentiment()
            removed_calendar = self._trim_calendar()
            if removed_sentiment:
                self._touch("sentiment")
            if removed_calendar:
                self._touch("calendar")
        total = purged + removed_sentiment + removed_calendar
        logger.info(f"Cleanup removed {purged} cache entries, {removed_sentiment} sentiment "
                    f"and {removed_calendar} calendar records")
        return total

    def clear_cache(self):
        """Drop the TTL layer (including cached collection results). Durable data stays."""
        self.cache.clear()
        logger.info("Cache cleared")

    def record_counts(self):
        with self._lock:
            return {c: len(self._data[c]) for c in CATEGORIES}

    def get_cache_stats(self):
        stats = self.cache.stats()
        stats["records"] = self.record_counts()
        with self._lock:
            stats["last_update"] = {c: ts.isoformat() for c, ts in self._last_update.items()}
        return stats
