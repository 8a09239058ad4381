"""Formatting utilities for display."""
from datetime import datetime, timezone


def format_pct(value, decimals=1, with_color=False):
    """Format percentage with sign. Optionally include rich color markup."""
    if value is None:
        return "N/A"
    value = float(value)
    sign = "+" if value >= 0 else ""
    formatted = f"{sign}{value:.{decimals}f}%"
    if with_color:
        color = "green" if value >= 0 else "red"
        return f"[{color}]{formatted}[/{color}]"
    return formatted


def format_probability(value):
    """0.4213 → '42.1%'."""
    if value is None:
        return "N/A"
    return f"{float(value) * 100:.1f}%"


def format_score(value, decimals=2, with_color=False):
    """Signed score, e.g. '+0.42'."""
    if value is None:
        return "N/A"
    value = float(value)
    formatted = f"{value:+.{decimals}f}"
    if with_color:
        color = "green" if value > 0 else "red" if value < 0 else "white"
        return f"[{color}]{formatted}[/{color}]"
    return formatted


def format_bps(value):
    """Expected rate change in basis points, e.g. '-7.5 bps'."""
    if value is None:
        return "N/A"
    return f"{float(value):+.1f} bps"


def format_value(value, unit=""):
    if value is None:
        return "N/A"
    value = float(value)
    text = f"{value:,.4f}" if abs(value) < 10 else f"{value:,.2f}"
    return f"{text} {unit}".strip()


def format_timestamp(ts):
    """Format a datetime to human-readable string."""
    if ts is None:
        return "N/A"
    if isinstance(ts, str):
        return ts
    return ts.strftime("%Y-%m-%d %H:%M UTC")


def time_ago(dt):
    """Return human-readable time since dt. E.g., '3h ago', '2d ago'."""
    if dt is None:
        return "N/A"
    if isinstance(dt, str):
        dt = datetime.fromisoformat(dt.replace("Z", "+00:00"))
    now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = now - dt
    seconds = int(delta.total_seconds())

    if seconds < 60:
        return f"{seconds}s ago"
    elif seconds < 3600:
        return f"{seconds // 60}m ago"
    elif seconds < 86400:
        return f"{seconds // 3600}h ago"
    else:
        return f"{seconds // 86400}d ago"
