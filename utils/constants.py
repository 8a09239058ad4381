"""Market calendar constants and helpers."""
from datetime import datetime, timezone

SECONDS_PER_HOUR = 3600

# Spot FX trades 24/5: Sunday 22:00 UTC through Friday 22:00 UTC
FX_WEEK_OPEN = (6, 22)    # (weekday, hour UTC), Monday=0
FX_WEEK_CLOSE = (4, 22)

# CFTC publishes the COT report Fridays 15:30 US/Eastern (~20:00 UTC in winter)
COT_RELEASE_WEEKDAY = 4
COT_RELEASE_HOUR_UTC = 20

RATE_STEP_BPS = 25


def utcnow():
    return datetime.now(timezone.utc)


def ensure_utc(dt):
    """Attach UTC to naive datetimes, parse ISO strings."""
    if dt is None:
        return None
    if isinstance(dt, str):
        dt = datetime.fromisoformat(dt.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def age_hours(ts, now=None):
    """Hours elapsed since ts (never negative)."""
    now = ensure_utc(now) or utcnow()
    return max(0.0, (now - ensure_utc(ts)).total_seconds() / SECONDS_PER_HOUR)


def is_fx_market_open(now=None):
    """True while the spot FX market is trading."""
    now = ensure_utc(now) or utcnow()
    day, hour = now.weekday(), now.hour
    if day == 5:
        return False
    if day == FX_WEEK_OPEN[0] and hour < FX_WEEK_OPEN[1]:
        return False
    if day == FX_WEEK_CLOSE[0] and hour >= FX_WEEK_CLOSE[1]:
        return False
    return True


def is_cot_release_window(now=None):
    """True on Fridays after the COT report is published."""
    now = ensure_utc(now) or utcnow()
    return now.weekday() == COT_RELEASE_WEEKDAY and now.hour >= COT_RELEASE_HOUR_UTC
