# tests/packwarden/conftest.py
from __future__ import annotations

import zipfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import json5
import pytest

from packwarden.catalog.models import FileRecord, HashMatch, ProjectRecord, VersionRecord
from packwarden.core.errors import RemoteError
from packwarden.pack.index import Index
from packwarden.pack.pack import Pack, initPack


# ----------------------------
# Fake catalog
# ----------------------------

class FakeCatalog:
    """
    In-memory CatalogService. Records every call; failures can be queued per project.
    """
    def __init__(self) -> None:
        self.projects: dict[str, ProjectRecord] = {}
        self.versions: dict[str, VersionRecord] = {}
        self.matches: dict[str, HashMatch] = {}
        self.calls: list[tuple[str, Any]] = []
        self.projectErrors: dict[str, list[Exception]] = {}
        self.batchError: Exception | None = None
        self.lookupError: Exception | None = None
        self.onGetVersion: Callable[[str], None] | None = None

    def addArtifact(
        self,
        projectId: str,
        *,
        versionId: str | None = None,
        title: str | None = None,
        slug: str | None = "",
        projectType: str = "mod",
        clientSupport: str | None = "required",
        serverSupport: str | None = "required",
        files: Sequence[FileRecord] | None = None,
        loaders: Sequence[str] = ("fabric",),
    ) -> str:
        """Registers project + version and returns the digest that resolves to them."""
        versionId = versionId or f"{projectId}-v1"
        if projectId not in self.projects:
            self.projects[projectId] = ProjectRecord(
                id=projectId,
                slug=(projectId.lower() if slug == "" else slug),
                title=title or f"Project {projectId}",
                projectType=projectType,
                clientSupport=clientSupport,
                serverSupport=serverSupport,
            )
        if files is None:
            files = [FileRecord(
                filename=f"{projectId.lower()}-{versionId}.jar",
                url=f"https://cdn.example.org/{projectId}/{versionId}.jar",
                hashes={"sha1": f"sha1-{versionId}", "sha512": f"sha512-{versionId}"},
                isPrimary=True,
            )]
        self.versions[versionId] = VersionRecord(id=versionId, projectId=projectId, files=list(files), loaders=list(loaders))
        digest = f"digest-{projectId}-{versionId}"
        self.matches[digest] = HashMatch(versionId=versionId, projectId=projectId)
        return digest

    def lookupByHashes(self, hashes: Sequence[str], algorithm: str = "sha512") -> dict[str, HashMatch]:
        self.calls.append(("lookupByHashes", list(hashes)))
        if self.lookupError is not None:
            raise self.lookupError
        return {digest: self.matches[digest] for digest in hashes if digest in self.matches}

    def getProject(self, projectId: str) -> ProjectRecord:
        self.calls.append(("getProject", projectId))
        queued = self.projectErrors.get(projectId)
        if queued:
            raise queued.pop(0)
        if projectId not in self.projects:
            raise RemoteError(404, f"project {projectId} not found")
        return self.projects[projectId]

    def getProjects(self, projectIds: Sequence[str]) -> list[ProjectRecord]:
        self.calls.append(("getProjects", list(projectIds)))
        if self.batchError is not None:
            raise self.batchError
        return [self.projects[projectId] for projectId in projectIds if projectId in self.projects]

    def getVersion(self, versionId: str) -> VersionRecord:
        self.calls.append(("getVersion", versionId))
        if self.onGetVersion is not None:
            self.onGetVersion(versionId)
        if versionId not in self.versions:
            raise RemoteError(404, f"version {versionId} not found")
        return self.versions[versionId]

    def callsTo(self, name: str) -> list[Any]:
        return [args for callName, args in self.calls if callName == name]



# ----------------------------
# Fixtures
# ----------------------------

@pytest.fixture(autouse=True)
def isolatedUserConfig(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's real ~/.config out of every test."""
    missing = tmp_path_factory.mktemp("userconfig") / "config.json5"
    monkeypatch.setenv("PACKWARDEN_CONFIG", str(missing))


@pytest.fixture
def fakeCatalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def packIndex(tmp_path: Path) -> tuple[Pack, Index]:
    pack, index = initPack(tmp_path / "pack.json5", name="Test Pack", gameVersion="1.20.1", loaders={"fabric": "0.15.7"})
    return pack, index


@pytest.fixture
def bundleFactory(tmp_path: Path) -> Callable[..., Path]:
    counter = {"n": 0}

    def build(
        files: Sequence[dict[str, Any]],
        *,
        overrides: dict[str, bytes] | None = None,
        name: str = "Test Bundle",
        manifest: Any = None,
    ) -> Path:
        counter["n"] += 1
        path = tmp_path / f"bundle-{counter['n']}.mrpack"
        doc = manifest if manifest is not None else {
            "formatVersion": 1,
            "game": "minecraft",
            "versionId": "1.0.0",
            "name": name,
            "files": list(files),
            "dependencies": {"minecraft": "1.20.1"},
        }
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("modrinth.index.json", doc if isinstance(doc, str) else json5.dumps(doc))
            for relPath, data in (overrides or {}).items():
                zf.writestr(f"overrides/{relPath}", data)
        return path

    return build


def bundleFile(digest: str, path: str | None = None, env: dict[str, str] | None = None) -> dict[str, Any]:
    ref: dict[str, Any] = {
        "path": path or f"mods/{digest}.jar",
        "hashes": {"sha1": "0" * 40, "sha512": digest},
        "downloads": [f"https://cdn.example.org/{digest}.jar"],
        "fileSize": 1024,
    }
    if env is not None:
        ref["env"] = env
    return ref


@pytest.fixture
def makeBundleFile() -> Callable[..., dict[str, Any]]:
    return bundleFile
