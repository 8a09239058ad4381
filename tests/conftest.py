"""Shared test fixtures."""
import os
import sys
import pytest
import tempfile
from datetime import datetime, timedelta, timezone

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.data import DataPoint
from models.database import Database
from models.enums import Asset, Indicator
from config import load_config
from models.settings import AdapterSettings, Settings
from models.store import DataStore
from monitor.api.base import SourceAdapter
from monitor.freshness import FreshnessMonitor
from monitor.manager import SourceManager
from monitor.monitor import BiasMonitor
from monitor.scheduler import TaskScheduler
from scoring.engine import ScoringEngine
from scoring.rate_decision import RateDecisionEstimator
from utils.constants import utcnow
from utils.http_client import APIError

NOW = datetime(2025, 3, 12, 15, 0, tzinfo=timezone.utc)  # a Wednesday, FX market open


class FakeClock:
    """Manually advanced clock usable as both `clock` and `sleep`."""

    def __init__(self, start=0.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds):
        self.now += seconds


def make_point(asset=Asset.USD, indicator=Indicator.UNEMPLOYMENT, actual=4.0, previous=None,
               forecast=None, source="FRED", timestamp=None, release_date=None, valid=True, **kwargs):
    ts = timestamp or NOW
    return DataPoint(
        asset=asset,
        indicator=indicator,
        source=source,
        actual=actual,
        previous=previous,
        forecast=forecast,
        release_date=release_date or ts,
        timestamp=ts,
        validation_passed=valid,
        **kwargs,
    )


class StubAdapter(SourceAdapter):
    """Adapter that replays scripted outcomes: a list of points, or an exception to raise."""
    uses_http = False
    supported_assets = (Asset.USD, Asset.EUR)

    def __init__(self, name="STUB", outcomes=None, max_errors=3, enabled=True, batches=1):
        self.name = name
        super().__init__(AdapterSettings(name=name, rate_limit_ms=0, max_errors=max_errors, enabled=enabled))
        self.outcomes = list(outcomes or [])
        self.batches = batches
        self.calls = 0

    def _items(self, assets):
        return [f"batch{i}" for i in range(self.batches)]

    def _collect_item(self, item, result):
        self.calls += 1
        outcome = self.outcomes.pop(0) if self.outcomes else []
        if isinstance(outcome, Exception):
            raise outcome
        result.points.extend(outcome)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    db = Database(db_path)
    db.connect()
    yield db
    db.close()
    os.unlink(db_path)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def usd_points():
    """A realistic set of US macro readings."""
    return [
        make_point(indicator=Indicator.UNEMPLOYMENT, actual=3.7, previous=3.9),
        make_point(indicator=Indicator.INFLATION_CPI, actual=3.4, previous=3.1),
        make_point(indicator=Indicator.GDP_GROWTH, actual=3.3, previous=2.9),
        make_point(indicator=Indicator.INTEREST_RATE, actual=5.5, previous=5.25),
    ]


def api_error(message="HTTP 500"):
    return APIError(message, status_code=500)


def days_ago(n, base=NOW):
    return base - timedelta(days=n)


def fresh_usd_points():
    """US macro readings stamped now, so they survive age filters."""
    ts = utcnow()
    return [
        make_point(indicator=Indicator.UNEMPLOYMENT, actual=3.7, previous=3.9, timestamp=ts),
        make_point(indicator=Indicator.INFLATION_CPI, actual=3.4, previous=3.1, timestamp=ts),
        make_point(indicator=Indicator.GDP_GROWTH, actual=3.3, previous=2.9, timestamp=ts),
        make_point(indicator=Indicator.INTEREST_RATE, actual=5.5, previous=5.25, timestamp=ts),
    ]


def make_monitor(*adapters):
    """A BiasMonitor on the default config with the given adapters instead of the real ones."""
    settings = Settings.from_config(load_config())
    store = DataStore(settings.store)
    freshness = FreshnessMonitor(settings.freshness)
    manager = SourceManager(store, freshness)
    for adapter in adapters:
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
