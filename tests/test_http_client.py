"""Tests for the retrying HTTP client."""
import pytest
import requests
from unittest.mock import MagicMock, patch

from utils.http_client import APIError, HTTPClient, backoff_delay, call_with_retries
from utils.rate_limiter import RateLimiter
from conftest import FakeClock


def _response(status=200, payload=None, text="", headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.text = text
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


def test_backoff_delay_doubles_and_caps():
    assert backoff_delay(1) == 1.0
    assert backoff_delay(2) == 2.0
    assert backoff_delay(3) == 4.0
    assert backoff_delay(5, base_ms=1000, max_ms=10000) == 10.0
    assert backoff_delay(1, base_ms=250) == 0.25


@patch("utils.http_client.time.sleep")
def test_call_with_retries_recovers(mock_sleep):
    func = MagicMock(side_effect=[APIError("HTTP 500"), APIError("HTTP 502"), {"ok": True}])
    assert call_with_retries(func, attempts=3) == {"ok": True}
    assert func.call_count == 3
    assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]


@patch("utils.http_client.time.sleep")
def test_call_with_retries_raises_last_error(mock_sleep):
    errors = [APIError("first"), APIError("second"), APIError("third")]
    func = MagicMock(side_effect=errors)
    with pytest.raises(APIError, match="third") as exc:
        call_with_retries(func, attempts=3, source="FRED")
    assert exc.value.source == "FRED"
    assert func.call_count == 3
    # No sleep after the final attempt
    assert mock_sleep.call_count == 2


@patch("utils.http_client.time.sleep")
def test_non_api_errors_are_not_retried(mock_sleep):
    func = MagicMock(side_effect=ValueError("bug"))
    with pytest.raises(ValueError):
        call_with_retries(func, attempts=5)
    assert func.call_count == 1
    mock_sleep.assert_not_called()


@patch("utils.http_client.time.sleep")
def test_retry_after_is_honored_but_capped(mock_sleep):
    func = MagicMock(side_effect=[APIError("429", status_code=429, retry_after=3), "ok"])
    assert call_with_retries(func, attempts=2, backoff_max_ms=10000) == "ok"
    mock_sleep.assert_called_once_with(3.0)

    mock_sleep.reset_mock()
    func = MagicMock(side_effect=[APIError("429", status_code=429, retry_after=120), "ok"])
    call_with_retries(func, attempts=2, backoff_max_ms=5000)
    mock_sleep.assert_called_once_with(5.0)


@patch("utils.http_client.time.sleep")
def test_every_attempt_passes_the_rate_limiter(mock_sleep):
    clock = FakeClock()
    limiter = RateLimiter(500, clock=clock, sleep=clock.sleep)
    func = MagicMock(side_effect=[APIError("x"), APIError("y"), "ok"])
    call_with_retries(func, attempts=3, rate_limiter=limiter)
    assert limiter.calls == 3


@patch("utils.http_client.time.sleep")
def test_attempts_floor_is_one(mock_sleep):
    func = MagicMock(return_value="ok")
    assert call_with_retries(func, attempts=0) == "ok"
    assert func.call_count == 1


class TestHTTPClient:
    def _client(self, **kwargs):
        kwargs.setdefault("retry_attempts", 2)
        return HTTPClient("https://example.test/api/", source="TEST", **kwargs)

    def test_get_returns_json(self):
        client = self._client()
        client.session.request = MagicMock(return_value=_response(payload={"value": 1}))
        assert client.get("/series", params={"id": "X"}) == {"value": 1}
        method, url = client.session.request.call_args.args
        assert method == "GET"
        assert url == "https://example.test/api/series"
        assert client.session.request.call_args.kwargs["params"] == {"id": "X"}
        assert client.request_count == 1

    def test_get_text(self):
        client = self._client()
        client.session.request = MagicMock(return_value=_response(text="<html/>"))
        assert client.get_text() == "<html/>"
        assert client.session.request.call_args.args[1] == "https://example.test/api"

    @patch("utils.http_client.time.sleep")
    def test_non_2xx_is_retried_then_raised(self, mock_sleep):
        client = self._client(retry_attempts=3)
        client.session.request = MagicMock(return_value=_response(status=503, text="down"))
        with pytest.raises(APIError) as exc:
            client.get("/x")
        assert exc.value.status_code == 503
        assert exc.value.response_body == "down"
        assert exc.value.source == "TEST"
        assert client.request_count == 3

    @patch("utils.http_client.time.sleep")
    def test_malformed_json_is_an_api_error(self, mock_sleep):
        client = self._client(retry_attempts=1)
        client.session.request = MagicMock(return_value=_response(payload=ValueError("bad json"), text="{"))
        with pytest.raises(APIError, match="Malformed JSON"):
            client.get("/x")

    @patch("utils.http_client.time.sleep")
    def test_timeout_is_an_api_error(self, mock_sleep):
        client = self._client(retry_attempts=2, timeout=5)
        client.session.request = MagicMock(side_effect=requests.exceptions.Timeout())
        with pytest.raises(APIError, match="Timeout after 5s"):
            client.get("/x")
        assert client.session.request.call_args.kwargs["timeout"] == 5
        assert mock_sleep.call_count == 1

    @patch("utils.http_client.time.sleep")
    def test_retry_after_header_on_429(self, mock_sleep):
        client = self._client(retry_attempts=2)
        client.session.request = MagicMock(side_effect=[
            _response(status=429, headers={"Retry-After": "2"}),
            _response(payload=[]),
        ])
        assert client.get("/x") == []
        mock_sleep.assert_called_once_with(2.0)

    def test_custom_headers_and_user_agent(self):
        client = self._client(headers={"X-Key": "abc"}, user_agent="Test/2.0")
        assert client.session.headers["X-Key"] == "abc"
        assert client.session.headers["User-Agent"] == "Test/2.0"
