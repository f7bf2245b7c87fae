# tests/packwarden/http/test_http_client.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx
import pytest

from packwarden.core.errors import RateLimitedError, RemoteError, isRateLimitError
from packwarden.http.client import HttpClient, parseRetryAfter


def _client(handler) -> HttpClient:
    return HttpClient("https://catalog.test/v2/", headers={"User-Agent": "tests"}, transport=httpx.MockTransport(handler))


def test_parseRetryAfter_seconds() -> None:
    assert parseRetryAfter("120") == pytest.approx(120.0)


def test_parseRetryAfter_httpDate() -> None:
    future = datetime.now(timezone.utc) + timedelta(seconds=5)
    parsed = parseRetryAfter(format_datetime(future))
    assert parsed is not None
    assert parsed == pytest.approx(5.0, abs=1.5)


def test_parseRetryAfter_invalidValue() -> None:
    assert parseRetryAfter("not-a-date") is None
    assert parseRetryAfter("-1") is None
    assert parseRetryAfter(None) is None


def test_getJson_sendsHeadersAndParams() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    with _client(handler) as client:
        assert client.getJson("/projects", params={"ids": '["a"]'}) == {"ok": True}

    assert seen[0].url.path == "/v2/projects"
    assert seen[0].url.params["ids"] == '["a"]'
    assert seen[0].headers["User-Agent"] == "tests"


def test_postJson_sendsBody() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert b'"algorithm"' in request.content
        return httpx.Response(200, json={})

    with _client(handler) as client:
        assert client.postJson("/version_files", {"hashes": [], "algorithm": "sha512"}) == {}


def test_non2xx_raisesRemoteError() -> None:
    with _client(lambda request: httpx.Response(404, text="not found")) as client:
        with pytest.raises(RemoteError) as info:
            client.getJson("/project/missing")

    assert info.value.statusCode == 404
    assert not isinstance(info.value, RateLimitedError)
    assert "not found" in str(info.value)


def test_429_raisesRateLimitedWithHint() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="slow down", headers={"Retry-After": "30"})

    with _client(handler) as client:
        with pytest.raises(RateLimitedError) as info:
            client.getJson("/project/x")

    assert info.value.statusCode == 429
    assert info.value.retryAfter == pytest.approx(30.0)
    assert isRateLimitError(info.value)


def test_transportError_becomesRemoteErrorWithoutStatus() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with _client(handler) as client:
        with pytest.raises(RemoteError) as info:
            client.getJson("/project/x")

    assert info.value.statusCode is None
    assert "boom" in str(info.value)


def test_invalidJson_isRemoteError() -> None:
    with _client(lambda request: httpx.Response(200, text="<html>")) as client:
        with pytest.raises(RemoteError):
            client.getJson("/project/x")


def test_emptyBody_returnsNone() -> None:
    with _client(lambda request: httpx.Response(204)) as client:
        assert client.getJson("/ping") is None
