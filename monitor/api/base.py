"""Source adapter contract shared by every provider."""
import logging
import time
from abc import ABC, abstractmethod

from models.data import CollectionResult
from models.settings import AdapterSettings
from monitor.api.validation import DEFAULT_RULES, validate_point
from utils.constants import utcnow
from utils.http_client import HTTPClient, APIError
from utils.rate_limiter import RateLimiter

logger = logging.getLogger("fxbias.adapter")


class AdapterError(Exception):
    """A provider response could not be turned into records."""


class SourceAdapter(ABC):
    """Collects records from one external provider.

    `collect` is the template: it spaces runs by the configured rate limit,
    walks the adapter's items, isolates per-item transport/parse failures
    into `errors`, and stamps every point with its validation result.
    Network calls go through an HTTPClient that shares the adapter's
    rate limiter, so every attempt (retries included) is spaced too.
    """

    name = "BASE"
    base_url = ""
    supported_assets = ()
    category = "economic"  # store category used for refresh decisions
    validation_rules = DEFAULT_RULES
    uses_http = True

    def __init__(self, settings=None, client=None, rate_limiter=None):
        self.settings = settings or AdapterSettings(name=self.name)
        self.rate_limiter = rate_limiter or RateLimiter(self.settings.rate_limit_ms)
        self.collect_limiter = RateLimiter(self.settings.rate_limit_ms)
        self.client = client
        if self.client is None and self.uses_http:
            self.client = HTTPClient(
                base_url=self.settings.options.get("base_url", self.base_url),
                rate_limiter=self.rate_limiter,
                timeout=self.settings.timeout_seconds,
                retry_attempts=self.settings.retry_attempts,
                backoff_base_ms=self.settings.backoff_base_ms,
                backoff_max_ms=self.settings.backoff_max_ms,
                user_agent=self.settings.user_agent,
                source=self.name,
            )
        self.error_count = 0
        self.last_request = None

    # ── Subclass hooks ───────────────────────────────────

    def _preflight(self):
        """Raise AdapterError when the adapter cannot run at all (missing key, etc.)."""

    @abstractmethod
    def _items(self, assets):
        """Units of work for one run, e.g. one per series or per asset."""

    @abstractmethod
    def _collect_item(self, item, result):
        """Fetch one item and append its records to `result`."""

    # ── Template ─────────────────────────────────────────

    def collect(self, assets=None):
        self.collect_limiter.wait()
        start = time.monotonic()
        result = CollectionResult(source=self.name)
        wanted = self._resolve_assets(assets)

        try:
            self._preflight()
        except AdapterError as e:
            self._record_error(result, "preflight", e)
            return self._finish(result, start)

        for item in self._items(wanted):
            try:
                self._collect_item(item, result)
            except (APIError, AdapterError) as e:
                self._record_error(result, item, e)

        result.points = [self.validate_point(p) for p in result.points]
        return self._finish(result, start)

    def _finish(self, result, start):
        result.elapsed_ms = int((time.monotonic() - start) * 1000)
        result.timestamp = utcnow()
        self.last_request = result.timestamp
        level = logging.INFO if not result.errors else logging.WARNING
        logger.log(level, f"[{self.name}] collected {result.record_count} records, "
                          f"{len(result.errors)} errors in {result.elapsed_ms}ms")
        return result

    def _resolve_assets(self, assets):
        if not assets:
            return list(self.supported_assets)
        wanted = set(assets)
        return [a for a in self.supported_assets if a in wanted]

    def _record_error(self, result, item, error):
        self.error_count += 1
        label = getattr(item, "value", item)
        message = f"{label}: {error}"
        result.errors.append(message)
        logger.warning(f"[{self.name}] {message}")

    def validate_point(self, point):
        passed, failures = validate_point(point, self.validation_rules)
        if not passed:
            logger.debug(f"[{self.name}] {point.asset}/{point.indicator} failed validation: {failures}")
        return point.with_validation(passed)

    # ── Network helpers ──────────────────────────────────

    def _get_json(self, path="", params=None):
        return self.client.get(path, params=params)

    def _get_text(self, path="", params=None):
        return self.client.get_text(path, params=params)

    # ── Introspection ────────────────────────────────────

    def get_stats(self):
        return {
            "requests": self.rate_limiter.calls,
            "errors": self.error_count,
            "last_request": self.last_request.isoformat() if self.last_request else None,
        }

    def reset(self):
        self.rate_limiter.reset()
        self.error_count = 0
        self.last_request = None

    def close(self):
        if self.client is not None:
            self.client.close()
