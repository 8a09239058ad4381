"""Derived per-asset outputs: bias scores and rate-decision estimates."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from models.enums import Asset, Signal, DataQuality
from utils.constants import ensure_utc


@dataclass
class AssetScore:
    asset: Asset
    economic_score: float = 0.0
    sentiment_score: float = 0.0
    positioning_score: float = 0.0
    technical_score: float = 0.0
    central_bank_score: float = 0.0
    total_score: float = 0.0
    normalized_score: float = 0.0
    signal: Signal = Signal.HOLD
    confidence: float = 0.0
    bullish_factors: list = field(default_factory=list)
    bearish_factors: list = field(default_factory=list)
    data_quality: DataQuality = DataQuality.NO_DATA
    sources: list = field(default_factory=list)
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def components(self):
        return {
            "economic": self.economic_score,
            "sentiment": self.sentiment_score,
            "positioning": self.positioning_score,
            "technical": self.technical_score,
            "central_bank": self.central_bank_score,
        }

    def to_dict(self):
        return {
            "asset": self.asset.value,
            "components": {k: round(v, 4) for k, v in self.components.items()},
            "total_score": round(self.total_score, 4),
            "normalized_score": round(self.normalized_score, 4),
            "signal": self.signal.value,
            "confidence": round(self.confidence, 4),
            "bullish_factors": list(self.bullish_factors),
            "bearish_factors": list(self.bearish_factors),
            "data_quality": self.data_quality.value,
            "sources": list(self.sources),
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, d):
        comps = d.get("components", {})
        return cls(
            asset=Asset(d["asset"]),
            economic_score=comps.get("economic", 0.0),
            sentiment_score=comps.get("sentiment", 0.0),
            positioning_score=comps.get("positioning", 0.0),
            technical_score=comps.get("technical", 0.0),
            central_bank_score=comps.get("central_bank", 0.0),
            total_score=d.get("total_score", 0.0),
            normalized_score=d.get("normalized_score", 0.0),
            signal=Signal(d.get("signal", "HOLD")),
            confidence=d.get("confidence", 0.0),
            bullish_factors=d.get("bullish_factors", []),
            bearish_factors=d.get("bearish_factors", []),
            data_quality=DataQuality(d.get("data_quality", "NO_DATA")),
            sources=d.get("sources", []),
            last_updated=ensure_utc(d["last_updated"]),
        )


@dataclass
class RateDecisionEstimate:
    asset: Asset
    bank_name: str
    cut_probability: float
    hold_probability: float
    hike_probability: float
    expected_change_bps: float = 0.0
    confidence: float = 0.0
    current_rate: Optional[float] = None
    next_meeting_date: Optional[datetime] = None
    key_factors: list = field(default_factory=list)
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def most_likely(self):
        probs = {"CUT": self.cut_probability, "HOLD": self.hold_probability, "HIKE": self.hike_probability}
        return max(probs, key=probs.get)

    def to_dict(self):
        return {
            "asset": self.asset.value,
            "bank_name": self.bank_name,
            "current_rate": self.current_rate,
            "next_meeting_date": self.next_meeting_date.isoformat() if self.next_meeting_date else None,
            "cut_probability": self.cut_probability,
            "hold_probability": self.hold_probability,
            "hike_probability": self.hike_probability,
            "most_likely": self.most_likely,
            "expected_change_bps": round(self.expected_change_bps, 2),
            "confidence": round(self.confidence, 4),
            "key_factors": list(self.key_factors),
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            asset=Asset(d["asset"]),
            bank_name=d["bank_name"],
            cut_probability=d["cut_probability"],
            hold_probability=d["hold_probability"],
            hike_probability=d["hike_probability"],
            expected_change_bps=d.get("expected_change_bps", 0.0),
            confidence=d.get("confidence", 0.0),
            current_rate=d.get("current_rate"),
            next_meeting_date=ensure_utc(d.get("next_meeting_date")),
            key_factors=d.get("key_factors", []),
            last_updated=ensure_utc(d["last_updated"]),
        )
