# packwarden/http/client.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from packwarden.core.errors import RateLimitedError, RemoteError

logger = logging.getLogger(__name__)

__all__ = ["HttpClient", "parseRetryAfter"]



def parseRetryAfter(value: str | None) -> float | None:
    """Return seconds suggested by Retry-After header, if parsable."""
    if not value:
        return None
    try:
        secondsF = float(value)
        if secondsF >= 0:
            return secondsF
    except ValueError:
        pass
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    now = datetime.now(timezone.utc).timestamp()
    return max(0.0, dt.timestamp() - now)



class HttpClient:
    """
    Thin JSON client over a synchronous httpx.Client.

    Every call either returns parsed JSON or raises:
      - RateLimitedError for HTTP 429 (retryAfter set from the header when present)
      - RemoteError(status, body) for any other non-2xx
      - RemoteError(None, reason) for transport failures (connect, DNS, timeout)

    No retries happen here; the rate-limit loop lives with the callers that need it.
    """
    def __init__(
        self,
        baseUrl: str,
        *,
        headers: dict[str, str] | None = None,
        timeoutMs: int = 30_000,
        transport: httpx.BaseTransport | None = None,
    ):
        if timeoutMs <= 0:
            timeoutMs = 1
        self.baseUrl = baseUrl.rstrip("/")
        self._client = httpx.Client(
            base_url=self.baseUrl,
            headers=headers or {},
            timeout=httpx.Timeout(timeoutMs / 1_000),
            transport=transport,
            follow_redirects=True,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def getJson(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return self.requestJson("GET", path, params=params)

    def postJson(self, path: str, payload: Any) -> Any:
        return self.requestJson("POST", path, json=payload)

    def requestJson(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> Any:
        method = str(method).upper()
        try:
            resp = self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as err:
            raise RemoteError(None, f"{method} {path} failed: {err}") from err

        status = resp.status_code
        logger.debug("%s %s -> %d (%d bytes)", method, path, status, len(resp.content))

        if status == 429:
            err = RateLimitedError(status, f"Too Many Requests: {resp.text}")
            err.retryAfter = parseRetryAfter(resp.headers.get("Retry-After"))
            raise err
        if status < 200 or status >= 300:
            raise RemoteError(status, resp.text or resp.reason_phrase)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as err:
            raise RemoteError(status, f"Response of {method} {path} is not JSON: {err}") from err
