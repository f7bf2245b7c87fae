# packwarden/pack/index.py
from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

from packwarden.core.documents import readDocument, writeDocumentAtomic
from packwarden.core.errors import PackIOError, PackwardenError, ParseError
from packwarden.core.hashing import getHashProvider, hashBytes, hashFile
from packwarden.core.slugs import slugifyName
from .record import META_EXTENSION, MetaRecord, isMetaPath, loadMetaRecord

logger = logging.getLogger(__name__)

__all__ = [
    "CONTENT_FOLDERS", "IndexEntry", "LoadedRecord", "HashMismatch", "RefreshStats",
    "Index", "normalizeRelPath",
]

# Folders scanned for metadata files that exist on disk but are not in the index
CONTENT_FOLDERS: tuple[str, ...] = ("mods", "resourcepacks", "shaderpacks", "datapacks", "plugins")



def normalizeRelPath(path: str | os.PathLike[str]) -> str:
    """Index keys are forward-slash relative paths without a leading './'."""
    text = os.fspath(path).replace("\\", "/")
    normalized = PurePosixPath(text).as_posix()
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized



@dataclass(slots=True)
class IndexEntry:
    hashFormat: str
    hash: str
    metaFile: bool = False
    preserve: bool = False



@dataclass(frozen=True, slots=True)
class LoadedRecord:
    """One item of Index.loadAllMetaRecords(): either a record or the error that prevented loading it."""
    path: str
    record: MetaRecord | None = None
    error: PackwardenError | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None



@dataclass(frozen=True, slots=True)
class HashMismatch:
    path: str
    hashFormat: str
    expected: str
    actual: str | None   # None when the file is missing
    preserve: bool = False

    @property
    def missing(self) -> bool:
        return self.actual is None



@dataclass(slots=True)
class RefreshStats:
    updated: int = 0
    added: int = 0
    removed: int = 0



class Index:
    """
    Relative path -> {hashFormat, hash, metaFile, preserve}.

    Every entry's hash must describe the file currently on disk. Refresh operations
    restore that; verify() reports where it does not hold. Only write() touches disk.
    """
    def __init__(self, root: str | Path, *, path: str | Path | None = None, hashFormat: str = "sha256"):
        getHashProvider(hashFormat)
        self.root = Path(root)
        self.path = Path(path) if path is not None else self.root / "index.json5"
        self.hashFormat = hashFormat
        self._entries: dict[str, IndexEntry] = {}

    # ----- Loading -----

    @classmethod
    def load(cls, path: str | Path, *, root: str | Path | None = None, hashFormat: str = "sha256") -> Index:
        """
        Loads the persisted index. The pack root defaults to the index file's directory.

        Raises:
            PackIOError: file missing or unreadable
            ParseError: malformed document or entries
        """
        path = Path(path)
        doc = readDocument(path)
        index = cls(root if root is not None else path.parent, path=path, hashFormat=str(doc.get("hashFormat") or hashFormat))

        files = doc.get("files") or []
        if not isinstance(files, list):
            raise ParseError(f"'files' of {path} must be a list", path=path)
        for item in files:
            if not isinstance(item, dict) or not item.get("file") or "hash" not in item:
                raise ParseError(f"Malformed index entry in {path}: {item!r}", path=path)
            rel = normalizeRelPath(item["file"])
            index._entries[rel] = IndexEntry(
                hashFormat=str(item.get("hashFormat") or index.hashFormat),
                hash=str(item["hash"]),
                metaFile=bool(item.get("metafile", False)),
                preserve=bool(item.get("preserve", False)),
            )
        return index

    # ----- Paths -----

    def resolvePath(self, relPath: str) -> Path:
        return self.root / normalizeRelPath(relPath)

    def relativePath(self, absPath: str | Path) -> str:
        return normalizeRelPath(os.path.relpath(Path(absPath), self.root))

    # ----- Entries -----

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, relPath: object) -> bool:
        return isinstance(relPath, str) and normalizeRelPath(relPath) in self._entries

    def paths(self) -> list[str]:
        return sorted(self._entries)

    def entry(self, relPath: str) -> IndexEntry | None:
        return self._entries.get(normalizeRelPath(relPath))

    def metaPaths(self) -> list[str]:
        return sorted(path for path, item in self._entries.items() if item.metaFile)

    def refreshEntry(self, relPath: str, hashFormat: str, hashValue: str, isMetaFile: bool) -> None:
        """Insert or overwrite one entry. An existing preserve flag is kept."""
        key = normalizeRelPath(relPath)
        previous = self._entries.get(key)
        self._entries[key] = IndexEntry(
            hashFormat=hashFormat,
            hash=hashValue,
            metaFile=isMetaFile,
            preserve=previous.preserve if previous else False,
        )

    def removeEntry(self, relPath: str) -> bool:
        return self._entries.pop(normalizeRelPath(relPath), None) is not None

    def refreshFile(self, relPath: str) -> None:
        """Rehash one file from disk under the index hash format."""
        key = normalizeRelPath(relPath)
        absPath = self.resolvePath(key)
        try:
            digest = hashFile(absPath, self.hashFormat)
        except OSError as err:
            raise PackIOError(f"Cannot hash '{key}': {err}", path=absPath) from err
        self.refreshEntry(key, self.hashFormat, digest, isMetaPath(key))

    def refresh(self) -> RefreshStats:
        """
        Rehash every entry, drop entries whose file is gone, and pick up metadata
        files under the content folders that nothing tracks yet.
        """
        stats = RefreshStats()
        for key in list(self._entries):
            item = self._entries[key]
            absPath = self.resolvePath(key)
            if not absPath.is_file():
                logger.info("Dropping index entry for missing file '%s'", key)
                del self._entries[key]
                stats.removed += 1
                continue
            try:
                digest = hashFile(absPath, item.hashFormat)
            except OSError as err:
                raise PackIOError(f"Cannot hash '{key}': {err}", path=absPath) from err
            if digest != item.hash or item.metaFile != isMetaPath(key):
                item.hash = digest
                item.metaFile = isMetaPath(key)
                stats.updated += 1

        for key in self.untrackedMetaFiles():
            self.refreshFile(key)
            stats.added += 1
        return stats

    def untrackedMetaFiles(self) -> list[str]:
        found: list[str] = []
        for folder in CONTENT_FOLDERS:
            base = self.root / folder
            if not base.is_dir():
                continue
            for candidate in sorted(base.rglob(f"*{META_EXTENSION}")):
                if not candidate.is_file():
                    continue
                key = self.relativePath(candidate)
                if not self.isTracked(key):
                    found.append(key)
        return found

    def isTracked(self, relPath: str) -> bool:
        """Preserved paths count as tracked whatever their state."""
        return normalizeRelPath(relPath) in self._entries

    def verify(self) -> list[HashMismatch]:
        mismatches: list[HashMismatch] = []
        for key in self.paths():
            item = self._entries[key]
            absPath = self.resolvePath(key)
            actual: str | None
            try:
                actual = hashFile(absPath, item.hashFormat)
            except OSError:
                actual = None
            if actual != item.hash:
                mismatches.append(HashMismatch(key, item.hashFormat, item.hash, actual, item.preserve))
        return mismatches

    # ----- Metadata records -----

    def loadAllMetaRecords(self) -> Iterator[LoadedRecord]:
        """
        Lazily loads every metadata record. A broken record is yielded as an error item
        and iteration continues. Each call starts a fresh pass over a snapshot of paths.
        """
        for key in self.metaPaths():
            try:
                record = loadMetaRecord(self.resolvePath(key))
            except (PackIOError, ParseError) as err:
                logger.warning("Skipping unreadable record '%s': %s", key, err)
                yield LoadedRecord(key, error=err)
                continue
            yield LoadedRecord(key, record=record)

    def findMetaRecord(self, nameOrSlug: str) -> tuple[str, MetaRecord] | None:
        """Matches file stem, slugified name or display name, case-insensitively."""
        needle = nameOrSlug.strip().lower()
        if not needle:
            return None
        needleSlug = slugifyName(nameOrSlug)
        for loaded in self.loadAllMetaRecords():
            if not loaded.ok:
                continue
            stem = PurePosixPath(loaded.path).name[: -len(META_EXTENSION)].lower()
            if needle == stem or needleSlug == stem:
                return loaded.path, loaded.record
            name = loaded.record.name
            if name.lower() == needle or (needleSlug and slugifyName(name) == needleSlug):
                return loaded.path, loaded.record
        return None

    def installedProjectIds(self, source: str = "modrinth") -> set[str]:
        ids: set[str] = set()
        for loaded in self.loadAllMetaRecords():
            if not loaded.ok:
                continue
            payload = loaded.record.update.get(source)
            projectId = getattr(payload, "projectId", None)
            if projectId:
                ids.add(str(projectId))
        return ids

    # ----- Persistence -----

    def toDocument(self) -> dict[str, Any]:
        files: list[dict[str, Any]] = []
        for key in self.paths():
            item = self._entries[key]
            row: dict[str, Any] = {"file": key, "hash": item.hash}
            if item.hashFormat != self.hashFormat:
                row["hashFormat"] = item.hashFormat
            if item.metaFile:
                row["metafile"] = True
            if item.preserve:
                row["preserve"] = True
            files.append(row)
        return {"hashFormat": self.hashFormat, "files": files}

    def write(self) -> tuple[str, str]:
        """Full atomic rewrite, sorted by path. Returns (hashFormat, hash) of the written file."""
        payload = writeDocumentAtomic(self.path, self.toDocument())
        return self.hashFormat, hashBytes(payload, self.hashFormat)
