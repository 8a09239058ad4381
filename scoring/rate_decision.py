"""Central-bank rate-decision probabilities from macro data and bank profiles."""
import logging
import math
from datetime import timedelta

from models.enums import Indicator
from models.scores import RateDecisionEstimate
from scoring.engine import latest_by_indicator
from utils.constants import utcnow, ensure_utc, RATE_STEP_BPS

logger = logging.getLogger("fxbias.rates")

INFLATION_WEIGHT = 0.4
UNEMPLOYMENT_WEIGHT = 0.3
GROWTH_WEIGHT = 0.2
TREND_WEIGHT = 0.1
LOGISTIC_STEEPNESS = 3.0

LIKELY_MOVE = 0.4
LIKELY_HOLD = 0.5

# Does a rising reading push the bank toward hiking (+1) or cutting (-1)?
TREND_DIRECTION = {
    Indicator.INFLATION_CPI: 1,
    Indicator.UNEMPLOYMENT: -1,
    Indicator.GDP_GROWTH: 1,
    Indicator.PMI_MANUFACTURING: 1,
    Indicator.PMI_SERVICES: 1,
}

INPUT_INDICATORS = (
    Indicator.INFLATION_CPI, Indicator.UNEMPLOYMENT, Indicator.GDP_GROWTH,
    Indicator.PMI_MANUFACTURING, Indicator.PMI_SERVICES, Indicator.INTEREST_RATE,
)


class UnknownCentralBankError(KeyError):
    """No central-bank profile for the asset."""


def inflation_score(deviation):
    if abs(deviation) < 0.2:
        return 0.0
    if deviation > 1.0:
        return 1.0
    if deviation > 0.5:
        return 0.5
    if deviation < -1.0:
        return -1.0
    if deviation < -0.5:
        return -0.5
    return 0.3 if deviation > 0 else -0.3


def unemployment_score(deviation):
    if deviation > 2.0:
        return -1.0
    if deviation > 1.0:
        return -0.5
    if abs(deviation) < 0.5:
        return 0.0
    if deviation < -1.0:
        return 0.5
    if deviation < -0.5:
        return 0.3
    return -0.2


def growth_score(gdp=None, pmis=()):
    scores = []
    if gdp is not None:
        if gdp < 0:
            scores.append(-1.0)
        elif gdp < 1.0:
            scores.append(-0.5)
        elif gdp > 3.0:
            scores.append(0.5)
        else:
            scores.append(0.0)
    for pmi in pmis:
        if pmi < 45:
            scores.append(-0.5)
        elif pmi > 55:
            scores.append(0.5)
        else:
            scores.append(0.0)
    return sum(scores) / len(scores) if scores else 0.0


def trend_score(latest):
    directions = []
    for indicator, sign in TREND_DIRECTION.items():
        p = latest.get(indicator)
        if p is None or p.previous is None or p.actual == p.previous:
            continue
        directions.append(sign * (1 if p.actual > p.previous else -1))
    return (sum(directions) / len(directions)) * 0.5 if directions else 0.0


def decision_probabilities(score):
    """Map a combined score to normalised (cut, hold, hike) probabilities."""
    cut = max(0.05, 1.0 / (1.0 + math.exp(LOGISTIC_STEEPNESS * score)))
    hike = max(0.05, 1.0 / (1.0 + math.exp(-LOGISTIC_STEEPNESS * score)))
    hold = max(0.1, 1.0 - 0.8 * abs(score))
    total = cut + hold + hike
    return cut / total, hold / total, hike / total


class RateDecisionEstimator:
    def __init__(self, profiles, settings=None):
        self.profiles = {p.asset: p for p in profiles}
        self.settings = settings

    def estimate(self, asset, points, current_rate=None, now=None):
        profile = self.profiles.get(asset)
        if profile is None:
            raise UnknownCentralBankError(asset)
        now = ensure_utc(now) or utcnow()
        latest = latest_by_indicator(p for p in points if p.asset == asset)
        factors = []

        weighted = 0.0
        weight_sum = 0.0

        cpi = latest.get(Indicator.INFLATION_CPI)
        infl = 0.0
        if cpi is not None:
            deviation = cpi.actual - profile.inflation_target
            infl = inflation_score(deviation)
            if deviation > 0.5:
                factors.append(f"Inflation {cpi.actual:.1f}% above {profile.inflation_target:g}% target")
            elif deviation < -0.5:
                factors.append(f"Inflation {cpi.actual:.1f}% below {profile.inflation_target:g}% target")
            elif abs(deviation) >= 0.2:
                side = "above" if deviation > 0 else "below"
                factors.append(f"Inflation {cpi.actual:.1f}% slightly {side} {profile.inflation_target:g}% target")
        weighted += INFLATION_WEIGHT * infl
        weight_sum += INFLATION_WEIGHT

        if profile.dual_mandate:
            unemp = latest.get(Indicator.UNEMPLOYMENT)
            u_score = 0.0
            if unemp is not None and profile.unemployment_target is not None:
                deviation = unemp.actual - profile.unemployment_target
                u_score = unemployment_score(deviation)
                if deviation > 1.0:
                    factors.append(f"Unemployment {unemp.actual:.1f}% well above "
                                   f"{profile.unemployment_target:g}% target")
                elif deviation < -0.5:
                    factors.append(f"Tight labor market (unemployment {unemp.actual:.1f}%)")
            weighted += UNEMPLOYMENT_WEIGHT * u_score
            weight_sum += UNEMPLOYMENT_WEIGHT

        gdp = latest.get(Indicator.GDP_GROWTH)
        pmis = []
        for indicator, label in ((Indicator.PMI_MANUFACTURING, "Manufacturing"),
                                 (Indicator.PMI_SERVICES, "Services")):
            p = latest.get(indicator)
            if p is None:
                continue
            pmis.append(p.actual)
            if p.actual < 45:
                factors.append(f"{label} PMI in contraction ({p.actual:.1f})")
            elif p.actual > 55:
                factors.append(f"{label} PMI strongly expanding ({p.actual:.1f})")
        if gdp is not None:
            if gdp.actual < 0:
                factors.append(f"GDP contracting ({gdp.actual:.1f}%)")
            elif gdp.actual < 1.0:
                factors.append(f"Weak GDP growth ({gdp.actual:.1f}%)")
            elif gdp.actual > 3.0:
                factors.append(f"Strong GDP growth ({gdp.actual:.1f}%)")
        weighted += GROWTH_WEIGHT * growth_score(gdp.actual if gdp else None, pmis)
        weight_sum += GROWTH_WEIGHT

        weighted += TREND_WEIGHT * trend_score(latest)
        weight_sum += TREND_WEIGHT

        combined = (weighted + profile.hawkish_bias) / weight_sum
        cut, hold, hike = decision_probabilities(combined)

        if not factors:
            factors.append("No indicators breaching policy thresholds")

        rate = latest.get(Indicator.INTEREST_RATE)
        if current_rate is None and rate is not None:
            current_rate = rate.actual

        available = sum(1 for i in INPUT_INDICATORS if i in latest)
        days_to_meeting = 365.0 / profile.meetings_per_year / 2

        return RateDecisionEstimate(
            asset=profile.asset,
            bank_name=profile.bank_name,
            cut_probability=cut,
            hold_probability=hold,
            hike_probability=hike,
            expected_change_bps=RATE_STEP_BPS * (hike - cut),
            confidence=min(0.9, 0.3 + 0.1 * available),
            current_rate=current_rate,
            next_meeting_date=now + timedelta(days=days_to_meeting),
            key_factors=factors,
            last_updated=now,
        )

    def estimate_all(self, points_by_asset, now=None):
        """Estimate every asset with a profile, most likely cuts first."""
        estimates = []
        for asset, points in points_by_asset.items():
            try:
                estimates.append(self.estimate(asset, points, now=now))
            except UnknownCentralBankError:
                logger.debug(f"No central bank profile for {asset}, skipping")
        estimates.sort(key=lambda e: e.cut_probability, reverse=True)
        return estimates

    @staticmethod
    def summarize(estimates):
        return {
            "most_likely_cuts": [e.asset.value for e in estimates if e.cut_probability > LIKELY_MOVE],
            "most_likely_hikes": [e.asset.value for e in estimates if e.hike_probability > LIKELY_MOVE],
            "neutral_stance": [e.asset.value for e in estimates if e.hold_probability > LIKELY_HOLD],
        }
