"""Tests for the data store."""
import pytest
from datetime import datetime, timedelta, timezone

from models.data import CalendarEvent, CollectionResult, SentimentData, derive_positioning
from models.database import Database
from models.enums import Asset, Indicator, Signal
from models.scores import AssetScore, RateDecisionEstimate
from models.settings import StoreSettings
from models.store import DataStore
from utils.cache import TTLCache
from conftest import FakeClock, NOW, make_point, days_ago

FRIDAY_EVENING = datetime(2025, 3, 14, 21, 0, tzinfo=timezone.utc)
SATURDAY = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return DataStore(clock=lambda: NOW)


def _positioning(asset, report_date):
    return derive_positioning(asset, report_date, 100, 50, 80, 40)


class TestEconomicData:
    def test_merge_is_idempotent(self, store, usd_points):
        store.store_economic_data(usd_points)
        store.store_economic_data(usd_points)
        assert store.record_counts()["economic"] == len(usd_points)

    def test_last_write_wins(self, store):
        store.store_economic_data([make_point(actual=4.0)])
        store.store_economic_data([make_point(actual=4.2)])
        points = store.get_economic_data()
        assert [p.actual for p in points] == [4.2]

    def test_retention_cap_keeps_newest(self):
        store = DataStore(StoreSettings(max_points_per_asset=3), clock=lambda: NOW)
        points = [make_point(actual=float(i), timestamp=NOW - timedelta(hours=i)) for i in range(5)]
        store.store_economic_data(points)
        store.store_economic_data([make_point(asset=Asset.EUR)])
        kept = store.get_economic_data([Asset.USD])
        assert [p.actual for p in kept] == [0.0, 1.0, 2.0]
        assert len(store.get_economic_data([Asset.EUR])) == 1

    def test_filters(self, store):
        store.store_economic_data([
            make_point(indicator=Indicator.UNEMPLOYMENT, actual=4.0),
            make_point(indicator=Indicator.INFLATION_CPI, actual=3.0, valid=False),
            make_point(asset=Asset.EUR, actual=6.0),
            make_point(indicator=Indicator.GDP_GROWTH, actual=2.0, timestamp=days_ago(3)),
        ])
        assert len(store.get_economic_data([Asset.USD])) == 2
        assert len(store.get_economic_data([Asset.USD], max_age_hours=None)) == 3
        assert [p.actual for p in store.get_economic_data(indicators=[Indicator.INFLATION_CPI])] == [3.0]
        assert all(p.validation_passed for p in store.get_economic_data(valid_only=True))

    def test_newest_first(self, store):
        store.store_economic_data([
            make_point(actual=1.0, timestamp=NOW - timedelta(hours=2)),
            make_point(actual=2.0, timestamp=NOW),
            make_point(actual=3.0, timestamp=NOW - timedelta(hours=1)),
        ])
        assert [p.actual for p in store.get_economic_data()] == [2.0, 3.0, 1.0]


class TestCacheLayer:
    def test_reads_are_served_from_cache(self, usd_points):
        cache = TTLCache()
        store = DataStore(cache=cache, clock=lambda: NOW)
        store.store_economic_data(usd_points)
        store.get_economic_data()
        store.get_economic_data()
        assert cache.stats()["hits"] == 1

    def test_write_invalidates_cache(self, store):
        store.store_economic_data([make_point(actual=1.0)])
        assert len(store.get_economic_data()) == 1
        store.store_economic_data([make_point(indicator=Indicator.GDP_GROWTH)])
        assert len(store.get_economic_data()) == 2

    def test_expired_cache_falls_back_to_durable_data(self, usd_points):
        clock = FakeClock(0.0)
        cache = TTLCache(clock=clock)
        store = DataStore(StoreSettings(ttl_seconds={"economic": 10}), cache=cache, clock=lambda: NOW)
        store.store_economic_data(usd_points)
        store.get_economic_data()
        clock.advance(11)
        assert cache.get("economic") is None
        assert len(store.get_economic_data()) == len(usd_points)

    def test_clear_cache_keeps_data(self, store, usd_points):
        store.store_economic_data(usd_points)
        store.get_economic_data()
        store.clear_cache()
        assert len(store.get_economic_data()) == len(usd_points)


class TestPositioningAndSentiment:
    def test_positioning_cap_and_order(self):
        store = DataStore(StoreSettings(max_positioning_per_asset=2), clock=lambda: NOW)
        store.store_positioning([_positioning(Asset.EUR, days_ago(7 * i)) for i in range(4)])
        records = store.get_positioning([Asset.EUR])
        assert [r.report_date for r in records] == [NOW, days_ago(7)]
        assert store.latest_positioning(Asset.EUR).report_date == NOW
        assert store.latest_positioning(Asset.GBP) is None

    def test_old_sentiment_is_dropped(self, store):
        store.store_sentiment([
            SentimentData(Asset.EUR, 60, 40, "SENTIMENT", timestamp=NOW),
            SentimentData(Asset.EUR, 55, 45, "SENTIMENT", timestamp=days_ago(40)),
        ])
        records = store.get_sentiment()
        assert len(records) == 1
        assert records[0].long_percentage == 60

    def test_sentiment_merges_per_source_per_day(self, store):
        store.store_sentiment([SentimentData(Asset.EUR, 60, 40, "SENTIMENT", timestamp=NOW)])
        store.store_sentiment([SentimentData(Asset.EUR, 65, 35, "SENTIMENT", timestamp=NOW + timedelta(hours=1))])
        store.store_sentiment([SentimentData(Asset.EUR, 50, 50, "OTHER", timestamp=NOW)])
        assert len(store.get_sentiment([Asset.EUR])) == 2


class TestCalendar:
    def test_window_and_range_query(self, store):
        events = [
            CalendarEvent("nfp", Asset.USD, "Non-Farm Payrolls", NOW + timedelta(days=2)),
            CalendarEvent("cpi", Asset.USD, "CPI", NOW + timedelta(days=1)),
            CalendarEvent("far", Asset.USD, "Far away", NOW + timedelta(days=60)),
            CalendarEvent("old", Asset.USD, "Long ago", days_ago(45)),
        ]
        store.store_calendar_events(events)
        assert [e.id for e in store.get_calendar_events()] == ["cpi", "nfp"]
        assert [e.id for e in store.get_calendar_events(start=NOW + timedelta(days=1, hours=12))] == ["nfp"]


class TestDerivedOutputs:
    def test_scores_sorted_by_total(self, store):
        store.store_scores([
            AssetScore(Asset.EUR, total_score=0.1, last_updated=NOW),
            AssetScore(Asset.USD, total_score=0.5, signal=Signal.BUY, last_updated=NOW),
            AssetScore(Asset.JPY, total_score=-0.3, last_updated=NOW),
        ])
        assert [s.asset for s in store.get_scores()] == [Asset.USD, Asset.EUR, Asset.JPY]
        store.store_scores([AssetScore(Asset.EUR, total_score=0.9, last_updated=NOW)])
        assert store.get_scores()[0].asset == Asset.EUR
        assert len(store.get_scores()) == 3

    def test_rate_decisions_sorted_by_cut(self, store):
        store.store_rate_decisions([
            RateDecisionEstimate(Asset.USD, "Federal Reserve", 0.2, 0.6, 0.2),
            RateDecisionEstimate(Asset.EUR, "European Central Bank", 0.5, 0.4, 0.1),
        ])
        assert [e.asset for e in store.get_rate_decisions()] == [Asset.EUR, Asset.USD]


class TestCollectionResults:
    def test_cached_result(self, store):
        result = CollectionResult(source="FRED", points=[make_point()], timestamp=NOW)
        stored = store.store_collection("FRED", result)
        assert stored == 1
        assert store.get_cached_result("FRED") is result
        assert store.get_cached_result("CFTC") is None

    def test_cached_result_age_limit(self):
        later = NOW + timedelta(days=2)
        store = DataStore(clock=lambda: later)
        store.store_collection("FRED", CollectionResult(source="FRED", timestamp=NOW))
        assert store.get_cached_result("FRED", max_age_hours=24) is None
        assert store.get_cached_result("FRED", max_age_hours=72) is not None

    def test_restore_only_adds_missing_records(self, store):
        original = make_point(actual=4.0)
        cached = CollectionResult(source="FRED", points=[original, make_point(indicator=Indicator.GDP_GROWTH)],
                                  timestamp=NOW)
        store.store_collection("FRED", cached)
        revised = make_point(actual=4.2)
        store.store_economic_data([revised])
        store._data["economic"].pop(make_point(indicator=Indicator.GDP_GROWTH).key)

        assert store.restore_collection(cached) == 1
        by_indicator = {p.indicator: p for p in store.get_economic_data(max_age_hours=None)}
        assert by_indicator[Indicator.UNEMPLOYMENT].actual == 4.2
        assert Indicator.GDP_GROWTH in by_indicator
        assert store.restore_collection(cached) == 0


class TestShouldRefresh:
    def test_never_updated(self, store):
        assert store.should_refresh("economic")

    def test_positioning_waits_for_release(self, store):
        assert store.should_refresh("positioning", FRIDAY_EVENING - timedelta(days=7), now=FRIDAY_EVENING)
        assert not store.should_refresh("positioning", FRIDAY_EVENING - timedelta(hours=2), now=FRIDAY_EVENING)
        assert not store.should_refresh("positioning", NOW - timedelta(days=7), now=NOW)
        assert store.should_refresh("positioning", NOW - timedelta(days=8), now=NOW)

    def test_prices_follow_market_hours(self, store):
        assert store.should_refresh("prices", NOW - timedelta(seconds=60), now=NOW)
        assert not store.should_refresh("prices", NOW - timedelta(seconds=10), now=NOW)
        assert not store.should_refresh("prices", SATURDAY - timedelta(seconds=60), now=SATURDAY)
        assert store.should_refresh("prices", SATURDAY - timedelta(seconds=301), now=SATURDAY)

    def test_calendar_daily(self, store):
        assert not store.should_refresh("calendar", NOW - timedelta(hours=23), now=NOW)
        assert store.should_refresh("calendar", NOW - timedelta(hours=25), now=NOW)

    def test_other_categories_use_ttl(self, store):
        assert not store.should_refresh("economic", NOW - timedelta(minutes=10), now=NOW)
        assert store.should_refresh("economic", NOW - timedelta(minutes=31), now=NOW)

    def test_uses_last_write_time(self, store, usd_points):
        store.store_economic_data(usd_points)
        assert not store.should_refresh("economic", now=NOW + timedelta(minutes=5))


def test_persistence_round_trip(usd_points):
    db = Database(":memory:").connect()
    store = DataStore(persistence=db, clock=lambda: NOW)
    store.store_economic_data(usd_points)
    store.store_positioning([_positioning(Asset.EUR, NOW)])
    store.store_scores([AssetScore(Asset.USD, total_score=0.4, signal=Signal.BUY, last_updated=NOW)])

    reloaded = DataStore(persistence=db, clock=lambda: NOW)
    assert reloaded.record_counts()["economic"] == len(usd_points)
    assert reloaded.get_economic_data() == store.get_economic_data()
    assert reloaded.latest_positioning(Asset.EUR).commercial_net == 50
    assert reloaded.get_scores()[0].signal == Signal.BUY
    db.close()


def test_cleanup_reapplies_retention():
    current = [NOW]
    store = DataStore(clock=lambda: current[0])
    store.store_sentiment([SentimentData(Asset.EUR, 60, 40, "SENTIMENT", timestamp=NOW)])
    current[0] = NOW + timedelta(days=31)
    assert store.cleanup() >= 1
    assert store.get_sentiment() == []


def test_cache_stats_include_record_counts(store, usd_points):
    store.store_economic_data(usd_points)
    stats = store.get_cache_stats()
    assert stats["records"]["economic"] == len(usd_points)
    assert "economic" in stats["last_update"]
