"""Utility modules for FX Bias Monitor."""
from utils.logger import setup_logging
from utils.formatters import format_pct, format_score, format_probability, format_bps, time_ago
from utils.rate_limiter import RateLimiter
from utils.cache import TTLCache
from utils.http_client import HTTPClient, APIError
