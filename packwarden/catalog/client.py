# packwarden/catalog/client.py
from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from typing import Any, Protocol, TypeVar

import httpx
from pydantic import ValidationError as PydanticValidationError

from packwarden.core.errors import RemoteError, isRateLimitError
from packwarden.http.client import HttpClient
from .models import HashMatch, ProjectRecord, VersionRecord

logger = logging.getLogger(__name__)

__all__ = ["CatalogService", "CatalogClient", "fetchWithRateLimit", "catalogFromSettings"]

T = TypeVar("T")



class CatalogService(Protocol):
    """The four catalog queries the engine needs. All raise RemoteError on failure."""
    def lookupByHashes(self, hashes: Sequence[str], algorithm: str = "sha512") -> dict[str, HashMatch]: ...
    def getProject(self, projectId: str) -> ProjectRecord: ...
    def getProjects(self, projectIds: Sequence[str]) -> list[ProjectRecord]: ...
    def getVersion(self, versionId: str) -> VersionRecord: ...



def _parse(model: type[T], payload: Any, what: str) -> T:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as err:
        raise RemoteError(None, f"Unexpected {what} payload: {err}") from err



class CatalogClient:
    """Modrinth-compatible catalog over HTTP."""
    def __init__(
        self,
        baseUrl: str,
        *,
        userAgent: str,
        token: str | None = None,
        timeoutMs: int = 30_000,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {"User-Agent": userAgent, "Accept": "application/json"}
        if token:
            headers["Authorization"] = token
        self._http = HttpClient(baseUrl, headers=headers, timeoutMs=timeoutMs, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> CatalogClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def lookupByHashes(self, hashes: Sequence[str], algorithm: str = "sha512") -> dict[str, HashMatch]:
        """One round trip for the whole batch. Unknown hashes are simply absent from the result."""
        if not hashes:
            return {}
        payload = self._http.postJson("/version_files", {"hashes": list(hashes), "algorithm": algorithm})
        if not isinstance(payload, dict):
            raise RemoteError(None, "Unexpected hash lookup payload")
        return {digest: _parse(HashMatch, item, "hash lookup") for digest, item in payload.items()}

    def getProject(self, projectId: str) -> ProjectRecord:
        return _parse(ProjectRecord, self._http.getJson(f"/project/{projectId}"), "project")

    def getProjects(self, projectIds: Sequence[str]) -> list[ProjectRecord]:
        if not projectIds:
            return []
        payload = self._http.getJson("/projects", params={"ids": json.dumps(list(projectIds))})
        if not isinstance(payload, list):
            raise RemoteError(None, "Unexpected projects payload")
        return [_parse(ProjectRecord, item, "project") for item in payload]

    def getVersion(self, versionId: str) -> VersionRecord:
        return _parse(VersionRecord, self._http.getJson(f"/version/{versionId}"), "version")



def fetchWithRateLimit(
    fn: Callable[[], T],
    *,
    maxAttempts: int = 3,
    waitSeconds: float = 60,
    sleep: Callable[[float], None] = time.sleep,
    what: str = "catalog request",
) -> T:
    """
    Calls `fn` up to `maxAttempts` times, sleeping a fixed `waitSeconds` between attempts,
    but only while the failure looks like a rate limit. Anything else is raised at once.
    """
    maxAttempts = max(1, int(maxAttempts))
    for attempt in range(1, maxAttempts + 1):
        try:
            return fn()
        except Exception as err:
            if not isRateLimitError(err) or attempt >= maxAttempts:
                raise
            logger.warning(
                "Rate limited on %s, waiting %ss before retry %d/%d",
                what, waitSeconds, attempt + 1, maxAttempts,
            )
            sleep(waitSeconds)
    raise AssertionError("unreachable")



def catalogFromSettings(settings, *, transport: httpx.BaseTransport | None = None) -> CatalogClient:
    return CatalogClient(
        str(settings.get("catalog.baseUrl")),
        userAgent=str(settings.get("catalog.userAgent")),
        token=settings.get("catalog.token"),
        timeoutMs=settings.getInt("catalog.timeoutMs", 30_000),
        transport=transport,
    )
