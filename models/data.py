"""Dataclasses for collected observations: macro points, COT positioning, retail sentiment, calendar."""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from models.enums import Asset, Indicator, Frequency, Bias, ContrarianSignal, Impact
from utils.constants import ensure_utc

# Net position / open interest beyond this fraction reads as a directional bias
POSITIONING_BIAS_RATIO = 0.10
POSITIONING_BIAS_CONTRACTS = 1000
RETAIL_EXTREME_PCT = 75.0
RETAIL_BIAS_NET = 10.0


def _now():
    return datetime.now(timezone.utc)


def _iso(dt):
    return dt.isoformat() if dt is not None else None


@dataclass(frozen=True)
class DataPoint:
    """One observation of one indicator for one asset."""
    asset: Asset
    indicator: Indicator
    source: str
    actual: float
    forecast: Optional[float] = None
    previous: Optional[float] = None
    unit: str = ""
    frequency: Frequency = Frequency.MONTHLY
    release_date: datetime = field(default_factory=_now)
    importance_weight: int = 3
    confidence_level: float = 1.0
    timestamp: datetime = field(default_factory=_now)
    validation_passed: bool = False
    next_release: Optional[datetime] = None

    @property
    def key(self):
        return (self.asset, self.indicator, self.release_date, self.source)

    @property
    def surprise(self):
        """Relative beat/miss against forecast, None when there is no usable forecast."""
        if self.forecast is None or self.forecast == 0:
            return None
        return (self.actual - self.forecast) / abs(self.forecast)

    def with_validation(self, passed):
        return replace(self, validation_passed=bool(passed))

    def to_dict(self):
        return {
            "asset": self.asset.value,
            "indicator": self.indicator.value,
            "source": self.source,
            "actual": self.actual,
            "forecast": self.forecast,
            "previous": self.previous,
            "unit": self.unit,
            "frequency": self.frequency.value,
            "release_date": _iso(self.release_date),
            "importance_weight": self.importance_weight,
            "confidence_level": self.confidence_level,
            "timestamp": _iso(self.timestamp),
            "validation_passed": self.validation_passed,
            "next_release": _iso(self.next_release),
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            asset=Asset(d["asset"]),
            indicator=Indicator(d["indicator"]),
            source=d["source"],
            actual=d["actual"],
            forecast=d.get("forecast"),
            previous=d.get("previous"),
            unit=d.get("unit", ""),
            frequency=Frequency(d.get("frequency", "monthly")),
            release_date=ensure_utc(d["release_date"]),
            importance_weight=d.get("importance_weight", 3),
            confidence_level=d.get("confidence_level", 1.0),
            timestamp=ensure_utc(d["timestamp"]),
            validation_passed=d.get("validation_passed", False),
            next_release=ensure_utc(d.get("next_release")),
        )


def bias_from_net(net, open_interest=None, threshold=POSITIONING_BIAS_CONTRACTS):
    """Directional bias of a net position, relative to open interest when known."""
    if open_interest:
        ratio = net / open_interest
        if ratio > POSITIONING_BIAS_RATIO:
            return Bias.BULLISH
        if ratio < -POSITIONING_BIAS_RATIO:
            return Bias.BEARISH
        return Bias.NEUTRAL
    if net > threshold:
        return Bias.BULLISH
    if net < -threshold:
        return Bias.BEARISH
    return Bias.NEUTRAL


def contrarian_of(retail_bias):
    if retail_bias == Bias.BULLISH:
        return ContrarianSignal.SELL
    if retail_bias == Bias.BEARISH:
        return ContrarianSignal.BUY
    return ContrarianSignal.HOLD


@dataclass
class PositioningData:
    """Weekly futures positioning for one asset (Commitments of Traders)."""
    asset: Asset
    report_date: datetime
    commercial_long: float = 0.0
    commercial_short: float = 0.0
    non_commercial_long: float = 0.0
    non_commercial_short: float = 0.0
    retail_long: float = 0.0
    retail_short: float = 0.0
    open_interest: Optional[float] = None
    commercial_sentiment: Bias = Bias.NEUTRAL
    speculative_sentiment: Bias = Bias.NEUTRAL
    retail_sentiment: Bias = Bias.NEUTRAL
    contrarian_signal: ContrarianSignal = ContrarianSignal.HOLD
    source: str = "CFTC"
    timestamp: datetime = field(default_factory=_now)

    @property
    def commercial_net(self):
        return self.commercial_long - self.commercial_short

    @property
    def non_commercial_net(self):
        return self.non_commercial_long - self.non_commercial_short

    @property
    def retail_net(self):
        return self.retail_long - self.retail_short

    @property
    def key(self):
        return (self.asset, self.report_date.date())

    def to_dict(self):
        return {
            "asset": self.asset.value,
            "report_date": _iso(self.report_date),
            "commercial_long": self.commercial_long,
            "commercial_short": self.commercial_short,
            "commercial_net": self.commercial_net,
            "non_commercial_long": self.non_commercial_long,
            "non_commercial_short": self.non_commercial_short,
            "non_commercial_net": self.non_commercial_net,
            "retail_long": self.retail_long,
            "retail_short": self.retail_short,
            "retail_net": self.retail_net,
            "open_interest": self.open_interest,
            "commercial_sentiment": self.commercial_sentiment.value,
            "speculative_sentiment": self.speculative_sentiment.value,
            "retail_sentiment": self.retail_sentiment.value,
            "contrarian_signal": self.contrarian_signal.value,
            "source": self.source,
            "timestamp": _iso(self.timestamp),
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            asset=Asset(d["asset"]),
            report_date=ensure_utc(d["report_date"]),
            commercial_long=d.get("commercial_long", 0.0),
            commercial_short=d.get("commercial_short", 0.0),
            non_commercial_long=d.get("non_commercial_long", 0.0),
            non_commercial_short=d.get("non_commercial_short", 0.0),
            retail_long=d.get("retail_long", 0.0),
            retail_short=d.get("retail_short", 0.0),
            open_interest=d.get("open_interest"),
            commercial_sentiment=Bias(d.get("commercial_sentiment", "NEUTRAL")),
            speculative_sentiment=Bias(d.get("speculative_sentiment", "NEUTRAL")),
            retail_sentiment=Bias(d.get("retail_sentiment", "NEUTRAL")),
            contrarian_signal=ContrarianSignal(d.get("contrarian_signal", "HOLD")),
            source=d.get("source", "CFTC"),
            timestamp=ensure_utc(d["timestamp"]),
        )


def derive_positioning(asset, report_date, commercial_long, commercial_short,
                       non_commercial_long, non_commercial_short, retail_long=0.0, retail_short=0.0,
                       open_interest=None, source="CFTC", timestamp=None):
    """Build a PositioningData with sentiments derived from the net positions."""
    record = PositioningData(
        asset=asset,
        report_date=ensure_utc(report_date),
        commercial_long=commercial_long,
        commercial_short=commercial_short,
        non_commercial_long=non_commercial_long,
        non_commercial_short=non_commercial_short,
        retail_long=retail_long,
        retail_short=retail_short,
        open_interest=open_interest,
        source=source,
        timestamp=timestamp or _now(),
    )
    record.commercial_sentiment = bias_from_net(record.commercial_net, open_interest)
    record.speculative_sentiment = bias_from_net(record.non_commercial_net, open_interest)
    record.retail_sentiment = bias_from_net(record.retail_net, open_interest)
    record.contrarian_signal = contrarian_of(record.retail_sentiment)
    return record


@dataclass
class SentimentData:
    """Retail long/short split for one asset from one provider."""
    asset: Asset
    long_percentage: float
    short_percentage: float
    source: str
    reliability: float = 0.8
    timestamp: datetime = field(default_factory=_now)

    @property
    def net_sentiment(self):
        return self.long_percentage - self.short_percentage

    @property
    def retail_sentiment(self):
        if self.net_sentiment > RETAIL_BIAS_NET:
            return Bias.BULLISH
        if self.net_sentiment < -RETAIL_BIAS_NET:
            return Bias.BEARISH
        return Bias.NEUTRAL

    @property
    def contrarian_signal(self):
        if self.long_percentage > RETAIL_EXTREME_PCT:
            return ContrarianSignal.SELL
        if self.long_percentage < 100 - RETAIL_EXTREME_PCT:
            return ContrarianSignal.BUY
        return ContrarianSignal.HOLD

    @property
    def key(self):
        return (self.asset, self.source, self.timestamp.date())

    def to_dict(self):
        return {
            "asset": self.asset.value,
            "long_percentage": self.long_percentage,
            "short_percentage": self.short_percentage,
            "net_sentiment": self.net_sentiment,
            "retail_sentiment": self.retail_sentiment.value,
            "contrarian_signal": self.contrarian_signal.value,
            "source": self.source,
            "reliability": self.reliability,
            "timestamp": _iso(self.timestamp),
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            asset=Asset(d["asset"]),
            long_percentage=d["long_percentage"],
            short_percentage=d["short_percentage"],
            source=d["source"],
            reliability=d.get("reliability", 0.8),
            timestamp=ensure_utc(d["timestamp"]),
        )


@dataclass
class CalendarEvent:
    """Scheduled economic release."""
    id: str
    asset: Asset
    name: str
    event_time: datetime
    indicator: Optional[Indicator] = None
    impact: Impact = Impact.MEDIUM
    forecast: Optional[float] = None
    previous: Optional[float] = None
    actual: Optional[float] = None
    source: str = ""

    @property
    def key(self):
        return self.id

    def to_dict(self):
        return {
            "id": self.id,
            "asset": self.asset.value,
            "name": self.name,
            "event_time": _iso(self.event_time),
            "indicator": self.indicator.value if self.indicator else None,
            "impact": self.impact.value,
            "forecast": self.forecast,
            "previous": self.previous,
            "actual": self.actual,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            id=d["id"],
            asset=Asset(d["asset"]),
            name=d["name"],
            event_time=ensure_utc(d["event_time"]),
            indicator=Indicator(d["indicator"]) if d.get("indicator") else None,
            impact=Impact(d.get("impact", "MEDIUM")),
            forecast=d.get("forecast"),
            previous=d.get("previous"),
            actual=d.get("actual"),
            source=d.get("source", ""),
        )


@dataclass
class CollectionResult:
    """Outcome of one adapter run."""
    source: str
    points: list = field(default_factory=list)
    errors: list = field(default_factory=list)
    elapsed_ms: int = 0
    timestamp: datetime = field(default_factory=_now)
    positioning: list = field(default_factory=list)
    sentiment: list = field(default_factory=list)
    events: list = field(default_factory=list)
    changed_assets: list = field(default_factory=list)
    from_cache: Optional[datetime] = None

    @property
    def record_count(self):
        return len(self.points) + len(self.positioning) + len(self.sentiment) + len(self.events)

    @property
    def success(self):
        return not self.errors

    @property
    def partial(self):
        return bool(self.errors) and self.record_count > 0

    def to_dict(self):
        return {
            "source": self.source,
            "points": [p.to_dict() for p in self.points],
            "positioning": [p.to_dict() for p in self.positioning],
            "sentiment": [s.to_dict() for s in self.sentiment],
            "events": [e.to_dict() for e in self.events],
            "errors": list(self.errors),
            "elapsed_ms": self.elapsed_ms,
            "timestamp": _iso(self.timestamp),
            "success": self.success,
            "changed_assets": [a.value for a in self.changed_assets],
            "from_cache": _iso(self.from_cache),
        }
