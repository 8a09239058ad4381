"""Multi-factor bias scoring per asset."""
import logging

from models.enums import Bias, ContrarianSignal, DataQuality, Indicator, Signal
from models.scores import AssetScore
from models.settings import ScoringSettings
from scoring.indicators import INDICATOR_CONFIGS, MACRO_INDICATORS
from utils.constants import utcnow, ensure_utc, age_hours

logger = logging.getLogger("fxbias.scoring")

COMPONENT_LIMITS = {
    "economic": 4.0,
    "sentiment": 1.0,
    "positioning": 1.0,
    "central_bank": 1.5,
    "technical": 1.0,
}

COMMERCIAL_WEIGHT = 0.4
SPECULATIVE_WEIGHT = 0.2
CONTRARIAN_WEIGHT = 0.3
DEFAULT_INFLATION_TARGET = 2.0


def clamp(value, limit):
    return max(-limit, min(limit, value))


def latest_by_indicator(points):
    """Newest valid point per indicator."""
    latest = {}
    for p in points:
        if not p.validation_passed:
            continue
        current = latest.get(p.indicator)
        if current is None or (p.timestamp, p.release_date) > (current.timestamp, current.release_date):
            latest[p.indicator] = p
    return latest


def neutral_technical(asset, points):
    return 0.0, [], []


class ScoringEngine:
    """Turns an asset's points, positioning and sentiment into an AssetScore.

    Each component is computed and clamped on its own, combined with fixed
    weights, and normalised by the largest total the weights allow. Every
    component also reports the human-readable reasons behind its sign.
    """

    def __init__(self, settings=None, profiles=None, technical=neutral_technical):
        self.settings = settings or ScoringSettings()
        self.weights = dict(self.settings.weights)
        self.profiles = {p.asset: p for p in (profiles or [])}
        self.technical = technical
        self.max_possible = sum(self.weights.get(k, 0) * lim for k, lim in COMPONENT_LIMITS.items())

    # ── Components ───────────────────────────────────────

    def economic_score(self, points, now=None):
        """Importance-weighted average of surprise, trend and level terms, decayed by age."""
        now = ensure_utc(now) or utcnow()
        bullish, bearish = [], []
        latest = {k: v for k, v in latest_by_indicator(points).items() if k in MACRO_INDICATORS}

        weighted = 0.0
        total_weight = 0.0
        for indicator, p in latest.items():
            cfg = INDICATOR_CONFIGS[indicator]
            direction = 1 if cfg.positive else -1
            raw = 0.0

            surprise = p.surprise
            if surprise is not None and abs(surprise) > self.settings.surprise_threshold:
                term = 2 * direction * (1 if surprise > 0 else -1)
                raw += term
                side = "above" if surprise > 0 else "below"
                (bullish if term > 0 else bearish).append(
                    f"{cfg.description} came in {side} forecast ({surprise:+.1%})")

            if p.previous is not None and p.actual != p.previous:
                term = direction * (1 if p.actual > p.previous else -1)
                raw += term
                trend = "rising" if p.actual > p.previous else "falling"
                (bullish if term > 0 else bearish).append(
                    f"{cfg.description} {trend} ({p.previous:g} -> {p.actual:g})")

            if cfg.critical_level is not None and p.actual != cfg.critical_level:
                above = p.actual > cfg.critical_level
                term = direction * (1 if above else -1)
                raw += term
                side = "above" if above else "below"
                (bullish if term > 0 else bearish).append(
                    f"{cfg.description} {side} {cfg.critical_level:g}")

            decay = max(0.0, 1.0 - age_hours(p.timestamp, now) / self.settings.freshness_decay_hours)
            weighted += raw * p.importance_weight * decay
            total_weight += p.importance_weight

        score = weighted / total_weight if total_weight else 0.0
        return clamp(score, COMPONENT_LIMITS["economic"]), bullish, bearish

    def positioning_score(self, record):
        """Follow commercials, lean with speculators, fade extreme retail."""
        if record is None:
            return 0.0, [], []
        bullish, bearish = [], []
        score = 0.0

        if record.commercial_sentiment == Bias.BULLISH:
            score += COMMERCIAL_WEIGHT
            bullish.append("Smart money (commercial traders) positioned bullish")
        elif record.commercial_sentiment == Bias.BEARISH:
            score -= COMMERCIAL_WEIGHT
            bearish.append("Smart money (commercial traders) positioned bearish")

        if record.speculative_sentiment == Bias.BULLISH:
            score += SPECULATIVE_WEIGHT
            bullish.append("Large speculators positioned bullish")
        elif record.speculative_sentiment == Bias.BEARISH:
            score -= SPECULATIVE_WEIGHT
            bearish.append("Large speculators positioned bearish")

        if record.contrarian_signal == ContrarianSignal.SELL:
            score -= CONTRARIAN_WEIGHT
            bearish.append("Retail traders overly bullish (contrarian signal)")
        elif record.contrarian_signal == ContrarianSignal.BUY:
            score += CONTRARIAN_WEIGHT
            bullish.append("Retail traders overly bearish (contrarian signal)")

        return clamp(score, COMPONENT_LIMITS["positioning"]), bullish, bearish

    @staticmethod
    def aggregate_sentiment(records):
        """Reliability-weighted long/short split over the newest record per source."""
        latest = {}
        for r in records or []:
            if r.source not in latest or r.timestamp > latest[r.source].timestamp:
                latest[r.source] = r
        if not latest:
            return None

        weights = [max(0.0, r.reliability) for r in latest.values()]
        total = sum(weights)
        if total == 0:
            weights = [1.0] * len(latest)
            total = float(len(latest))
        long_pct = sum(r.long_percentage * w for r, w in zip(latest.values(), weights)) / total
        short_pct = sum(r.short_percentage * w for r, w in zip(latest.values(), weights)) / total
        return {"long_percentage": long_pct, "short_percentage": short_pct, "sources": sorted(latest)}

    def sentiment_score(self, records):
        """Contrarian beyond the extreme threshold, mild confirmation inside it."""
        agg = self.aggregate_sentiment(records)
        if agg is None:
            return 0.0, [], []
        extreme = self.settings.sentiment_extreme
        long_pct = agg["long_percentage"]
        span = max(1e-9, 100.0 - extreme)

        if long_pct >= extreme:
            score = -(0.5 + 0.5 * (long_pct - extreme) / span)
            return clamp(score, 1.0), [], [f"Retail crowd {long_pct:.0f}% long (contrarian bearish)"]
        if long_pct <= 100.0 - extreme:
            score = 0.5 + 0.5 * ((100.0 - extreme) - long_pct) / span
            return clamp(score, 1.0), [f"Retail crowd {100 - long_pct:.0f}% short (contrarian bullish)"], []

        net = long_pct - agg["short_percentage"]
        return clamp(net / 50.0 * 0.25, 1.0), [], []

    def central_bank_score(self, asset, points):
        """Policy-rate direction plus inflation distance from target."""
        bullish, bearish = [], []
        latest = latest_by_indicator(points)
        score = 0.0

        rate = latest.get(Indicator.INTEREST_RATE)
        if rate is not None and rate.previous is not None and rate.actual != rate.previous:
            if rate.actual > rate.previous:
                score += 0.5
                bullish.append(f"Policy rate raised ({rate.previous:g}% -> {rate.actual:g}%)")
            else:
                score -= 0.5
                bearish.append(f"Policy rate cut ({rate.previous:g}% -> {rate.actual:g}%)")

        cpi = latest.get(Indicator.INFLATION_CPI)
        if cpi is not None:
            profile = self.profiles.get(asset)
            target = profile.inflation_target if profile else DEFAULT_INFLATION_TARGET
            deviation = cpi.actual - target
            if deviation > 1.0:
                score += 0.5
                bullish.append(f"Inflation well above {target:g}% target (hawkish pressure)")
            elif deviation > 0.5:
                score += 0.25
                bullish.append(f"Inflation above {target:g}% target")
            elif deviation < -1.0:
                score -= 0.5
                bearish.append(f"Inflation well below {target:g}% target (dovish pressure)")
            elif deviation < -0.5:
                score -= 0.25
                bearish.append(f"Inflation below {target:g}% target")

        return clamp(score, COMPONENT_LIMITS["central_bank"]), bullish, bearish

    # ── Aggregation ──────────────────────────────────────

    def classify(self, normalized):
        if normalized >= self.settings.strong_threshold:
            return Signal.STRONG_BUY
        if normalized >= self.settings.moderate_threshold:
            return Signal.BUY
        if normalized <= -self.settings.strong_threshold:
            return Signal.STRONG_SELL
        if normalized <= -self.settings.moderate_threshold:
            return Signal.SELL
        return Signal.HOLD

    def calculate_asset_score(self, asset, points, positioning=None, sentiment=None, now=None):
        now = ensure_utc(now) or utcnow()
        asset_points = [p for p in points if p.asset == asset]
        sentiment = [s for s in (sentiment or []) if s.asset == asset]

        econ, econ_bull, econ_bear = self.economic_score(asset_points, now)
        pos, pos_bull, pos_bear = self.positioning_score(positioning)
        sent, sent_bull, sent_bear = self.sentiment_score(sentiment)
        cb, cb_bull, cb_bear = self.central_bank_score(asset, asset_points)
        tech, tech_bull, tech_bear = self.technical(asset, asset_points)
        tech = clamp(tech, COMPONENT_LIMITS["technical"])

        components = {
            "economic": econ,
            "sentiment": sent,
            "positioning": pos,
            "central_bank": cb,
            "technical": tech,
        }
        total = sum(components[k] * self.weights.get(k, 0) for k in components)
        normalized = max(-1.0, min(1.0, total / self.max_possible)) if self.max_possible else 0.0

        scored_macro = list(latest_by_indicator(asset_points).values())
        sources = {p.source for p in scored_macro}
        if positioning is not None:
            sources.add(positioning.source)
        sources.update(s.source for s in sentiment)

        inputs = sum([bool(scored_macro), positioning is not None, bool(sentiment)])
        if inputs == 0:
            quality, confidence = DataQuality.NO_DATA, 0.1
        else:
            quality = DataQuality.GOOD if inputs >= 2 else DataQuality.DEGRADED
            confidence = self._confidence(len(sources), scored_macro, normalized, now)

        return AssetScore(
            asset=asset,
            economic_score=econ,
            sentiment_score=sent,
            positioning_score=pos,
            technical_score=tech,
            central_bank_score=cb,
            total_score=total,
            normalized_score=normalized,
            signal=self.classify(normalized),
            confidence=confidence,
            bullish_factors=_unique(econ_bull + cb_bull + pos_bull + sent_bull + tech_bull),
            bearish_factors=_unique(econ_bear + cb_bear + pos_bear + sent_bear + tech_bear),
            data_quality=quality,
            sources=sorted(sources),
            last_updated=now,
        )

    def _confidence(self, source_count, points, normalized, now):
        confidence = self.settings.confidence_base
        confidence += min(0.3, source_count * 0.1)
        if points:
            avg_age = sum(age_hours(p.timestamp, now) for p in points) / len(points)
            confidence += max(0.0, 0.2 - avg_age / self.settings.freshness_decay_hours)
        confidence += min(0.2, abs(normalized) * 0.2)
        return max(0.0, min(1.0, confidence))

    def calculate_all(self, points, positioning_map=None, sentiment_map=None, assets=None, now=None):
        """Score every asset with any input, highest total first."""
        positioning_map = positioning_map or {}
        sentiment_map = sentiment_map or {}
        if assets is None:
            assets = {p.asset for p in points} | set(positioning_map) | set(sentiment_map)
        scores = [
            self.calculate_asset_score(
                asset, points,
                positioning=positioning_map.get(asset),
                sentiment=sentiment_map.get(asset),
                now=now,
            )
            for asset in assets
        ]
        scores.sort(key=lambda s: s.total_score, reverse=True)
        logger.debug(f"Scored {len(scores)} assets")
        return scores

    @staticmethod
    def explain(score):
        lines = [
            f"{score.asset.value}: {score.signal.value} "
            f"(normalized {score.normalized_score:+.2f}, confidence {score.confidence:.0%}, "
            f"data {score.data_quality.value})",
        ]
        for name, value in score.components.items():
            lines.append(f"  {name:<13}{value:+.2f}")
        if score.bullish_factors:
            lines.append("Bullish:")
            lines.extend(f"  + {f}" for f in score.bullish_factors)
        if score.bearish_factors:
            lines.append("Bearish:")
            lines.extend(f"  - {f}" for f in score.bearish_factors)
        if not score.bullish_factors and not score.bearish_factors:
            lines.append("No significant drivers")
        return "\n".join(lines)


def _unique(items):
    return list(dict.fromkeys(items))
