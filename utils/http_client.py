"""HTTP client with rate limiting, retries and exponential backoff."""
import time
import logging
import requests

logger = logging.getLogger("fxbias.http")

DEFAULT_USER_AGENT = "FXBiasMonitor/1.0"


class APIError(Exception):
    """API request error with status code and response body."""
    def __init__(self, message, status_code=None, response_body=None, source=None, retry_after=None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.source = source
        self.retry_after = retry_after


def backoff_delay(attempt, base_ms=1000, max_ms=10000):
    """Seconds to wait after failed attempt N (1-based): base * 2^(N-1), capped."""
    return min(base_ms * (2 ** (attempt - 1)), max_ms) / 1000.0


def call_with_retries(func, attempts=3, backoff_base_ms=1000, backoff_max_ms=10000,
                      rate_limiter=None, label="request", source=None):
    """Call `func` up to `attempts` times, waiting on the limiter before each try.

    Only APIError is retried; anything else propagates immediately. The last
    APIError is re-raised once attempts run out.
    """
    attempts = max(1, int(attempts))
    last_error = None
    for attempt in range(1, attempts + 1):
        if rate_limiter:
            rate_limiter.wait()
        try:
            logger.debug(f"[{source or '-'}] {label} attempt {attempt}/{attempts}")
            return func()
        except APIError as e:
            last_error = e
            if e.source is None:
                e.source = source
            if attempt >= attempts:
                break
            wait = backoff_delay(attempt, backoff_base_ms, backoff_max_ms)
            if e.retry_after is not None:
                wait = min(float(e.retry_after), backoff_max_ms / 1000.0)
            logger.warning(f"[{source or '-'}] {label} failed: {e} (attempt {attempt}/{attempts}), "
                           f"retrying in {wait:.1f}s")
            time.sleep(wait)

    logger.warning(f"[{source or '-'}] {label} failed after {attempts} attempts: {last_error}")
    raise last_error


class HTTPClient:
    """HTTP client owned by one source adapter.

    Every network attempt passes through the adapter's rate limiter, failed
    attempts (transport error, timeout, non-2xx, unparseable JSON) are retried
    with exponential backoff, and each call has its own timeout.
    """

    def __init__(self, base_url, rate_limiter=None, timeout=30, retry_attempts=3,
                 backoff_base_ms=1000, backoff_max_ms=10000, headers=None,
                 user_agent=DEFAULT_USER_AGENT, source=None):
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.backoff_base_ms = backoff_base_ms
        self.backoff_max_ms = backoff_max_ms
        self.source = source
        self.request_count = 0
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "application/json, text/html, */*",
            "Accept-Language": "en-US,en;q=0.9",
            "Cache-Control": "no-cache",
        })
        if headers:
            self.session.headers.update(headers)

    def get(self, path="", params=None):
        """GET and decode a JSON body."""
        return self._request("GET", path, params, as_json=True)

    def get_text(self, path="", params=None):
        """GET and return the raw body text."""
        return self._request("GET", path, params, as_json=False)

    def _url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url

    def _request(self, method, path, params=None, as_json=True):
        url = self._url(path)

        def attempt():
            self.request_count += 1
            start = time.time()
            try:
                resp = self.session.request(method, url, params=params, timeout=self.timeout)
            except requests.exceptions.Timeout as e:
                raise APIError(f"Timeout after {self.timeout}s for {url}", source=self.source) from e
            except requests.exceptions.RequestException as e:
                raise APIError(f"Request error for {url}: {e}", source=self.source) from e

            latency = int((time.time() - start) * 1000)
            logger.debug(f"{method} {url} → {resp.status_code} ({latency}ms)")

            if not 200 <= resp.status_code < 300:
                retry_after = resp.headers.get("Retry-After") if resp.status_code == 429 else None
                raise APIError(
                    f"HTTP {resp.status_code} from {url}",
                    status_code=resp.status_code,
                    response_body=resp.text,
                    source=self.source,
                    retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                )

            if not as_json:
                return resp.text
            try:
                return resp.json()
            except ValueError as e:
                raise APIError(f"Malformed JSON from {url}", status_code=resp.status_code,
                               response_body=resp.text[:500], source=self.source) from e

        return call_with_retries(
            attempt,
            attempts=self.retry_attempts,
            backoff_base_ms=self.backoff_base_ms,
            backoff_max_ms=self.backoff_max_ms,
            rate_limiter=self.rate_limiter,
            label=f"{method} {url}",
            source=self.source,
        )

    def close(self):
        self.session.close()
