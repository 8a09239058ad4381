"""FRED (St. Louis Fed) adapter: macro series, metal fixings and the US release calendar."""
import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from models.data import DataPoint, CalendarEvent
from models.enums import Asset, Indicator, Frequency, Impact
from monitor.api.base import SourceAdapter, AdapterError
from utils.constants import utcnow

logger = logging.getLogger("fxbias.fred")


@dataclass(frozen=True)
class FredSeries:
    asset: Asset
    indicator: Indicator
    series_id: str
    frequency: Frequency
    unit: str
    units: Optional[str] = None  # FRED transformation, e.g. pc1 = % change from a year ago
    importance: int = 3

    def __str__(self):
        return self.series_id


SERIES = (
    FredSeries(Asset.USD, Indicator.UNEMPLOYMENT, "UNRATE", Frequency.MONTHLY, "%", importance=5),
    FredSeries(Asset.USD, Indicator.INFLATION_CPI, "CPIAUCSL", Frequency.MONTHLY, "% y/y", "pc1", 5),
    FredSeries(Asset.USD, Indicator.GDP_GROWTH, "GDPC1", Frequency.QUARTERLY, "% saar", "pca", 5),
    FredSeries(Asset.USD, Indicator.INTEREST_RATE, "FEDFUNDS", Frequency.MONTHLY, "%", importance=5),
    FredSeries(Asset.USD, Indicator.INDUSTRIAL_PRODUCTION, "INDPRO", Frequency.MONTHLY, "% y/y", "pc1", 3),
    FredSeries(Asset.USD, Indicator.RETAIL_SALES, "RSAFS", Frequency.MONTHLY, "% y/y", "pc1", 4),
    FredSeries(Asset.USD, Indicator.CONSUMER_CONFIDENCE, "UMCSENT", Frequency.MONTHLY, "index", importance=3),
    FredSeries(Asset.EUR, Indicator.UNEMPLOYMENT, "LRHUTTTTEZM156S", Frequency.MONTHLY, "%", importance=5),
    FredSeries(Asset.GBP, Indicator.UNEMPLOYMENT, "LRHUTTTTGBM156S", Frequency.MONTHLY, "%", importance=5),
    FredSeries(Asset.JPY, Indicator.UNEMPLOYMENT, "LRHUTTTTJPM156S", Frequency.MONTHLY, "%", importance=5),
    FredSeries(Asset.XAU, Indicator.PRECIOUS_METAL_PRICE, "GOLDPMGBD228NLBM", Frequency.DAILY, "USD/oz"),
    FredSeries(Asset.XAG, Indicator.PRECIOUS_METAL_PRICE, "SILVERPRICE", Frequency.DAILY, "USD/oz"),
)

CALENDAR_ITEM = "release-calendar"


@dataclass(frozen=True)
class FredRelease:
    release_id: int
    indicator: Indicator
    name: str
    release_time: time = time(13, 30)  # UTC; FRED publishes dates only

    def event_time(self, day):
        return datetime.combine(day, self.release_time, tzinfo=timezone.utc)


RELEASES = (
    FredRelease(10, Indicator.INFLATION_CPI, "Consumer Price Index"),
    FredRelease(50, Indicator.UNEMPLOYMENT, "Employment Situation"),
    FredRelease(53, Indicator.GDP_GROWTH, "Gross Domestic Product"),
    FredRelease(9, Indicator.RETAIL_SALES, "Advance Monthly Sales for Retail and Food Services"),
    FredRelease(13, Indicator.INDUSTRIAL_PRODUCTION, "Industrial Production and Capacity Utilization",
                time(14, 15)),
    FredRelease(91, Indicator.CONSUMER_CONFIDENCE, "Surveys of Consumers", time(15, 0)),
)

HIGH_IMPACT_KEYWORDS = (
    "interest rate", "consumer price", "gross domestic product", "employment", "fomc", "payroll",
)


def release_impact(name):
    """HIGH for the releases that move rate expectations, MEDIUM for the rest."""
    lowered = name.lower()
    return Impact.HIGH if any(k in lowered for k in HIGH_IMPACT_KEYWORDS) else Impact.MEDIUM


class FredAdapter(SourceAdapter):
    name = "FRED"
    base_url = "https://api.stlouisfed.org/fred"
    supported_assets = tuple(dict.fromkeys(s.asset for s in SERIES))

    def __init__(self, settings=None, client=None, rate_limiter=None, api_key=None):
        super().__init__(settings, client, rate_limiter)
        self.api_key = api_key or os.environ.get(self.settings.options.get("api_key_env", "FRED_API_KEY"))
        self.observations = int(self.settings.options.get("observations", 13))
        self.calendar_days = int(self.settings.options.get("calendar_days", 30))

    def _preflight(self):
        if not self.api_key:
            raise AdapterError("FRED API key not configured")

    def _items(self, assets):
        wanted = set(assets)
        items = [s for s in SERIES if s.asset in wanted]
        if Asset.USD in wanted and self.calendar_days > 0:
            items.append(CALENDAR_ITEM)
        return items

    def _collect_item(self, item, result):
        if item == CALENDAR_ITEM:
            self._collect_calendar(result)
        else:
            self._collect_series(item, result)

    def _collect_series(self, series, result):
        params = {
            "series_id": series.series_id,
            "api_key": self.api_key,
            "file_type": "json",
            "sort_order": "desc",
            "limit": self.observations,
        }
        if series.units:
            params["units"] = series.units
        data = self._get_json("/series/observations", params=params)
        result.points.append(self.parse_observations(series, data))

    def parse_observations(self, series, data):
        """Latest numeric observation, with the one before it as `previous`."""
        if not isinstance(data, dict) or "observations" not in data:
            raise AdapterError(f"unexpected payload for {series.series_id}")
        values = []
        for obs in data["observations"]:
            raw = obs.get("value")
            if raw in (None, "", "."):
                continue
            try:
                values.append((obs["date"], float(raw)))
            except (KeyError, ValueError):
                continue
        if not values:
            raise AdapterError(f"no observations for {series.series_id}")

        values.sort(key=lambda v: v[0], reverse=True)
        latest_date, latest = values[0]
        previous = values[1][1] if len(values) > 1 else None
        return DataPoint(
            asset=series.asset,
            indicator=series.indicator,
            source=self.name,
            actual=latest,
            previous=previous,
            unit=series.unit,
            frequency=series.frequency,
            release_date=datetime.strptime(latest_date, "%Y-%m-%d").replace(tzinfo=timezone.utc),
            importance_weight=series.importance,
            confidence_level=0.95,
        )

    # ── Release calendar ─────────────────────────────────

    def _collect_calendar(self, result):
        today = utcnow().date()
        params = {
            "api_key": self.api_key,
            "file_type": "json",
            "realtime_start": (today - timedelta(days=7)).isoformat(),
            "realtime_end": (today + timedelta(days=self.calendar_days)).isoformat(),
            "include_release_dates_with_no_data": "true",
            "sort_order": "asc",
            "limit": 1000,
        }
        events = self.parse_release_dates(self._get_json("/releases/dates", params=params))
        result.events.extend(events)
        result.points = self.link_next_releases(result.points, events)

    def parse_release_dates(self, data):
        """Calendar events for the tracked releases; other releases are dropped."""
        if not isinstance(data, dict) or "release_dates" not in data:
            raise AdapterError("unexpected payload for release dates")
        by_id = {r.release_id: r for r in RELEASES}
        events = {}
        for row in data["release_dates"]:
            release = by_id.get(row.get("release_id"))
            if release is None:
                continue
            try:
                day = datetime.strptime(row["date"], "%Y-%m-%d").date()
            except (KeyError, ValueError):
                continue
            name = row.get("release_name") or release.name
            event_id = f"USD_{release.release_id}_{row['date']}"
            events[event_id] = CalendarEvent(
                id=event_id,
                asset=Asset.USD,
                name=name,
                event_time=release.event_time(day),
                indicator=release.indicator,
                impact=release_impact(name),
                source=self.name,
            )
        return sorted(events.values(), key=lambda e: e.event_time)

    @staticmethod
    def link_next_releases(points, events, now=None):
        """Stamp each point with the next scheduled release of its indicator."""
        now = now or utcnow()
        upcoming = {}
        for event in sorted(events, key=lambda e: e.event_time):
            key = (event.asset, event.indicator)
            if event.event_time > now and key not in upcoming:
                upcoming[key] = event.event_time
        return [replace(p, next_release=upcoming[(p.asset, p.indicator)])
                if (p.asset, p.indicator) in upcoming else p
                for p in points]
