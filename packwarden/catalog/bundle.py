# packwarden/catalog/bundle.py
from __future__ import annotations

import logging
import os
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import json5
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from packwarden.core.errors import PackIOError, ParseError
from packwarden.pack.index import Index

logger = logging.getLogger(__name__)

__all__ = [
    "MANIFEST_NAME", "OVERRIDES_PREFIX",
    "FileEnv", "BundleFileRef", "BundleManifest", "BundleEntry", "BundleArchive", "OverrideStats", "copyOverrides",
]

MANIFEST_NAME = "modrinth.index.json"
OVERRIDES_PREFIX = "overrides/"



class FileEnv(BaseModel):
    model_config = ConfigDict(extra="ignore")

    client: str | None = None
    server: str | None = None



class BundleFileRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str
    hashes: dict[str, str] = Field(default_factory=dict)
    env: FileEnv | None = None
    downloads: list[str] = Field(default_factory=list)
    fileSize: int = 0



class BundleManifest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    formatVersion: int = 1
    game: str = "minecraft"
    versionId: str = ""
    name: str = ""
    summary: str | None = None
    files: list[BundleFileRef] = Field(default_factory=list)
    dependencies: dict[str, str] = Field(default_factory=dict)

    def filesByHash(self, algorithm: str = "sha512") -> dict[str, BundleFileRef]:
        """First file wins when two entries share a digest."""
        out: dict[str, BundleFileRef] = {}
        for ref in self.files:
            digest = ref.hashes.get(algorithm)
            if digest and digest not in out:
                out[digest] = ref
        return out



@dataclass(frozen=True, slots=True)
class BundleEntry:
    path: str
    data: bytes
    isDirectory: bool
    mode: int | None = None



class BundleArchive:
    """
    Read-only view of a bundle zip.

        with BundleArchive(path) as archive:
            manifest = archive.readManifest()
    """
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._zip: zipfile.ZipFile | None = None

    def __enter__(self) -> BundleArchive:
        try:
            self._zip = zipfile.ZipFile(self.path)
        except (OSError, zipfile.BadZipFile) as err:
            raise PackIOError(f"Cannot open bundle '{self.path}': {err}", path=self.path) from err
        return self

    def __exit__(self, *exc) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    @property
    def zip(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise PackIOError(f"Bundle '{self.path}' is not open", path=self.path)
        return self._zip

    def entries(self) -> list[BundleEntry]:
        out: list[BundleEntry] = []
        for info in self.zip.infolist():
            mode = (info.external_attr >> 16) & 0o777
            try:
                data = b"" if info.is_dir() else self.zip.read(info)
            except (OSError, zipfile.BadZipFile) as err:
                raise PackIOError(f"Cannot read '{info.filename}' from bundle: {err}", path=self.path) from err
            out.append(BundleEntry(info.filename, data, info.is_dir(), mode or None))
        return out

    def readManifest(self) -> BundleManifest:
        try:
            raw = self.zip.read(MANIFEST_NAME)
        except KeyError as err:
            raise ParseError(f"{MANIFEST_NAME} not found in '{self.path}'", kind="missing manifest", path=self.path) from err
        except (OSError, zipfile.BadZipFile) as err:
            raise PackIOError(f"Cannot read {MANIFEST_NAME}: {err}", path=self.path) from err
        try:
            return BundleManifest.model_validate(json5.loads(raw.decode("utf-8")))
        except (ValueError, PydanticValidationError) as err:
            raise ParseError(f"Malformed {MANIFEST_NAME} in '{self.path}': {err}", path=self.path) from err



def _safeRelative(name: str) -> str | None:
    rel = PurePosixPath(name[len(OVERRIDES_PREFIX):])
    if not rel.parts or rel.is_absolute() or ".." in rel.parts:
        return None
    return rel.as_posix()



@dataclass
class OverrideStats:
    copied: int = 0
    failed: list[str] = field(default_factory=list)



def copyOverrides(archive: BundleArchive, index: Index) -> OverrideStats:
    """
    Copies every `overrides/` entry into the pack root, keeping directory layout and
    mode bits, and refreshes the index entry of each copied file. An entry that cannot
    be written is logged and listed in `failed`; the rest are still copied.
    """
    stats = OverrideStats()
    for entry in archive.entries():
        if not entry.path.startswith(OVERRIDES_PREFIX):
            continue
        rel = _safeRelative(entry.path)
        if rel is None:
            if entry.path.rstrip("/") != OVERRIDES_PREFIX.rstrip("/"):
                logger.warning("Skipping override with unsafe path '%s'", entry.path)
            continue

        dest = index.resolvePath(rel)
        try:
            if entry.isDirectory:
                dest.mkdir(parents=True, exist_ok=True)
                continue
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(entry.data)
            if entry.mode:
                os.chmod(dest, entry.mode)
            index.refreshFile(rel)
        except OSError as err:
            # PackIOError from refreshFile is an OSError too
            logger.warning("Cannot copy override '%s': %s", rel, err)
            stats.failed.append(rel)
            continue
        stats.copied += 1

    if stats.copied:
        logger.info("Copied %d override file(s)", stats.copied)
    if stats.failed:
        logger.warning("%d override file(s) could not be copied", len(stats.failed))
    return stats
