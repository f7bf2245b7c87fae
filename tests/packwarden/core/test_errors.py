# tests/packwarden/core/test_errors.py
from __future__ import annotations

import pytest

from packwarden.core.errors import (
    PackIOError,
    PackwardenError,
    RateLimitedError,
    RemoteError,
    isRateLimitError,
)


def test_remoteError_messageCarriesStatus() -> None:
    err = RemoteError(503, "upstream down")
    assert str(err) == "HTTP 503: upstream down"
    assert err.statusCode == 503
    assert err.message == "upstream down"


def test_remoteError_transportFailureHasNoStatus() -> None:
    err = RemoteError(None, "connect timeout")
    assert str(err) == "connect timeout"
    assert err.statusCode is None


def test_packIOError_isAnOSError() -> None:
    err = PackIOError("cannot write", path="index.json5")
    assert isinstance(err, OSError)
    assert isinstance(err, PackwardenError)
    assert err.path == "index.json5"


@pytest.mark.parametrize(
    "message",
    ["HTTP 429: slow down", "rate limit exceeded", "Rate limit", "too many requests", "Too Many Requests"],
)
def test_isRateLimitError_matchesMarkers(message: str) -> None:
    assert isRateLimitError(RuntimeError(message))


def test_isRateLimitError_byType() -> None:
    assert isRateLimitError(RateLimitedError(429, "whatever"))


@pytest.mark.parametrize("message", ["HTTP 404: not found", "connection reset", ""])
def test_isRateLimitError_ignoresOtherFailures(message: str) -> None:
    assert not isRateLimitError(RemoteError(None, message))
