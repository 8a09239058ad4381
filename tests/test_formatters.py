"""Tests for display formatters and calendar helpers."""
from datetime import datetime, timedelta, timezone

from utils.constants import age_hours, ensure_utc, is_cot_release_window, is_fx_market_open
from utils.formatters import (
    format_bps, format_pct, format_probability, format_score, format_timestamp, format_value, time_ago,
)


def test_format_pct():
    assert format_pct(5.4) == "+5.4%"
    assert format_pct(-12.5, decimals=2) == "-12.50%"
    assert format_pct(None) == "N/A"
    assert "green" in format_pct(1.0, with_color=True)
    assert "red" in format_pct(-1.0, with_color=True)


def test_format_probability():
    assert format_probability(0.4213) == "42.1%"
    assert format_probability(None) == "N/A"


def test_format_score():
    assert format_score(0.42) == "+0.42"
    assert format_score(-0.1) == "-0.10"
    assert format_score(0.0, with_color=True) == "[white]+0.00[/white]"
    assert format_score(0.3, with_color=True) == "[green]+0.30[/green]"


def test_format_bps():
    assert format_bps(-7.5) == "-7.5 bps"
    assert format_bps(None) == "N/A"


def test_format_value():
    assert format_value(1.08734, "EURUSD=X") == "1.0873 EURUSD=X"
    assert format_value(2934.5, "USD/oz") == "2,934.50 USD/oz"
    assert format_value(None) == "N/A"


def test_format_timestamp():
    ts = datetime(2025, 3, 12, 15, 30, tzinfo=timezone.utc)
    assert format_timestamp(ts) == "2025-03-12 15:30 UTC"
    assert format_timestamp(None) == "N/A"


def test_time_ago():
    now = datetime.now(timezone.utc)
    assert time_ago(now - timedelta(hours=3)) == "3h ago"
    assert time_ago(now - timedelta(days=2, minutes=5)) == "2d ago"
    assert time_ago(None) == "N/A"


def test_ensure_utc():
    assert ensure_utc("2025-03-12T10:00:00Z") == datetime(2025, 3, 12, 10, tzinfo=timezone.utc)
    assert ensure_utc(datetime(2025, 3, 12)).tzinfo == timezone.utc
    assert ensure_utc(None) is None


def test_age_hours_never_negative():
    now = datetime(2025, 3, 12, 12, tzinfo=timezone.utc)
    assert age_hours(now - timedelta(hours=6), now) == 6.0
    assert age_hours(now + timedelta(hours=1), now) == 0.0


def test_fx_market_hours():
    assert is_fx_market_open(datetime(2025, 3, 12, 15, tzinfo=timezone.utc))      # Wednesday
    assert not is_fx_market_open(datetime(2025, 3, 15, 12, tzinfo=timezone.utc))  # Saturday
    assert not is_fx_market_open(datetime(2025, 3, 16, 21, tzinfo=timezone.utc))  # Sunday before open
    assert is_fx_market_open(datetime(2025, 3, 16, 22, tzinfo=timezone.utc))
    assert is_fx_market_open(datetime(2025, 3, 14, 21, tzinfo=timezone.utc))      # Friday before close
    assert not is_fx_market_open(datetime(2025, 3, 14, 22, tzinfo=timezone.utc))


def test_cot_release_window():
    assert is_cot_release_window(datetime(2025, 3, 14, 20, 30, tzinfo=timezone.utc))
    assert not is_cot_release_window(datetime(2025, 3, 14, 19, tzinfo=timezone.utc))
    assert not is_cot_release_window(datetime(2025, 3, 13, 21, tzinfo=timezone.utc))
