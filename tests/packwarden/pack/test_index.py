# tests/packwarden/pack/test_index.py
from __future__ import annotations

import hashlib
from pathlib import Path

import json5
import pytest

from packwarden.core.errors import PackIOError, ParseError
from packwarden.pack.index import Index, normalizeRelPath
from packwarden.pack.record import DownloadDescriptor, MetaRecord, ModrinthSource, writeMetaRecord


def _sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _addRecord(index: Index, relPath: str, name: str, projectId: str = "", version: str = "v1") -> MetaRecord:
    record = MetaRecord(
        name=name,
        fileName=f"{name.lower()}.jar",
        download=DownloadDescriptor(url="https://x/y.jar", hashFormat="sha512", hash="h"),
        update={"modrinth": ModrinthSource(projectId=projectId, version=version)} if projectId else {},
    )
    fmt, digest = writeMetaRecord(record, index.resolvePath(relPath))
    index.refreshEntry(relPath, fmt, digest, True)
    return record


# ----------------------------
# Paths
# ----------------------------

@pytest.mark.parametrize(
    ("raw", "expected"),
    [("./mods/a.jar", "mods/a.jar"), ("mods\\a.jar", "mods/a.jar"), ("mods//a.jar", "mods/a.jar")],
)
def test_normalizeRelPath(raw: str, expected: str) -> None:
    assert normalizeRelPath(raw) == expected


def test_resolveAndRelativePath(tmp_path: Path) -> None:
    index = Index(tmp_path)
    absPath = index.resolvePath("mods/a.jar")
    assert absPath == tmp_path / "mods" / "a.jar"
    assert index.relativePath(absPath) == "mods/a.jar"


# ----------------------------
# Entries
# ----------------------------

def test_refreshEntry_insertsAndOverwritesKeepingPreserve(tmp_path: Path) -> None:
    index = Index(tmp_path)
    index.refreshEntry("config/a.txt", "sha256", "one", False)
    index.entry("config/a.txt").preserve = True
    index.refreshEntry("./config/a.txt", "sha256", "two", False)

    entry = index.entry("config/a.txt")
    assert entry is not None
    assert entry.hash == "two"
    assert entry.preserve is True
    assert len(index) == 1


def test_refreshFile_hashesFromDisk(tmp_path: Path) -> None:
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "a.txt").write_bytes(b"hello")
    index = Index(tmp_path)

    index.refreshFile("config/a.txt")

    entry = index.entry("config/a.txt")
    assert entry.hash == _sha256(b"hello")
    assert entry.metaFile is False


def test_refreshFile_missingFileIsPackIOError(tmp_path: Path) -> None:
    with pytest.raises(PackIOError):
        Index(tmp_path).refreshFile("nope.txt")


def test_removeEntry(tmp_path: Path) -> None:
    index = Index(tmp_path)
    index.refreshEntry("a", "sha256", "x", False)
    assert index.removeEntry("a") is True
    assert index.removeEntry("a") is False


# ----------------------------
# Persistence
# ----------------------------

def test_write_isSortedAndCompact(tmp_path: Path) -> None:
    index = Index(tmp_path)
    index.refreshEntry("mods/b.pw.json5", "sha256", "bb", True)
    index.refreshEntry("config/a.txt", "sha1", "aa", False)
    index.entry("config/a.txt").preserve = True

    fmt, digest = index.write()

    raw = (tmp_path / "index.json5").read_bytes()
    assert (fmt, digest) == ("sha256", _sha256(raw))
    doc = json5.loads(raw.decode("utf-8"))
    assert doc == {
        "hashFormat": "sha256",
        "files": [
            {"file": "config/a.txt", "hash": "aa", "hashFormat": "sha1", "preserve": True},
            {"file": "mods/b.pw.json5", "hash": "bb", "metafile": True},
        ],
    }


def test_load_roundTrip(tmp_path: Path) -> None:
    index = Index(tmp_path)
    index.refreshEntry("mods/b.pw.json5", "sha256", "bb", True)
    index.refreshEntry("config/a.txt", "sha1", "aa", False)
    index.write()

    loaded = Index.load(tmp_path / "index.json5")
    assert loaded.paths() == ["config/a.txt", "mods/b.pw.json5"]
    assert loaded.entry("config/a.txt").hashFormat == "sha1"
    assert loaded.entry("mods/b.pw.json5").metaFile is True
    assert loaded.metaPaths() == ["mods/b.pw.json5"]


def test_load_missingFileIsPackIOError(tmp_path: Path) -> None:
    with pytest.raises(PackIOError):
        Index.load(tmp_path / "index.json5")


def test_load_malformedEntryIsParseError(tmp_path: Path) -> None:
    (tmp_path / "index.json5").write_text('{"hashFormat": "sha256", "files": [{"hash": "x"}]}', encoding="utf-8")
    with pytest.raises(ParseError):
        Index.load(tmp_path / "index.json5")


# ----------------------------
# Refresh / verify
# ----------------------------

def test_verify_reportsMismatchAndMissing(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_bytes(b"changed")
    index = Index(tmp_path)
    index.refreshEntry("a.txt", "sha256", _sha256(b"original"), False)
    index.refreshEntry("gone.txt", "sha256", "whatever", False)

    mismatches = {m.path: m for m in index.verify()}
    assert mismatches["a.txt"].actual == _sha256(b"changed")
    assert mismatches["gone.txt"].missing


def test_refresh_rehashesDropsAndAdds(tmp_path: Path) -> None:
    index = Index(tmp_path)
    (tmp_path / "a.txt").write_bytes(b"new")
    index.refreshEntry("a.txt", "sha256", "stale", False)
    index.refreshEntry("gone.txt", "sha256", "x", False)
    # A record on disk that nothing tracks
    untracked = Index(tmp_path)
    _addRecord(untracked, "mods/lonely.pw.json5", "Lonely")

    stats = index.refresh()

    assert (stats.updated, stats.added, stats.removed) == (1, 1, 1)
    assert index.entry("a.txt").hash == _sha256(b"new")
    assert index.entry("gone.txt") is None
    assert index.entry("mods/lonely.pw.json5").metaFile is True
    assert index.verify() == []


def test_refresh_unreadableFileIsPackIOError(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    index = Index(tmp_path)
    (tmp_path / "a.txt").write_bytes(b"data")
    index.refreshEntry("a.txt", "sha256", "stale", False)

    def _denied(path, fmt):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr("packwarden.pack.index.hashFile", _denied)

    with pytest.raises(PackIOError, match="a.txt") as excInfo:
        index.refresh()
    assert excInfo.value.path == tmp_path / "a.txt"


def test_isTracked_preservedEntriesCount(tmp_path: Path) -> None:
    index = Index(tmp_path)
    index.refreshEntry("mods/kept.pw.json5", "sha256", "x", True)
    index.entry("mods/kept.pw.json5").preserve = True

    assert index.isTracked("mods/kept.pw.json5")
    assert not index.isTracked("mods/other.pw.json5")


# ----------------------------
# Metadata records
# ----------------------------

def test_loadAllMetaRecords_skipsBrokenAndIsRestartable(tmp_path: Path) -> None:
    index = Index(tmp_path)
    _addRecord(index, "mods/a.pw.json5", "Alpha", "P1")
    _addRecord(index, "mods/c.pw.json5", "Gamma", "P3")
    broken = index.resolvePath("mods/b.pw.json5")
    broken.write_text("{ broken", encoding="utf-8")
    index.refreshFile("mods/b.pw.json5")

    first = list(index.loadAllMetaRecords())
    second = list(index.loadAllMetaRecords())

    assert [item.path for item in first] == ["mods/a.pw.json5", "mods/b.pw.json5", "mods/c.pw.json5"]
    assert [item.ok for item in first] == [True, False, True]
    assert isinstance(first[1].error, ParseError)
    assert [item.path for item in second] == [item.path for item in first]


def test_loadAllMetaRecords_isLazy(tmp_path: Path) -> None:
    index = Index(tmp_path)
    _addRecord(index, "mods/a.pw.json5", "Alpha", "P1")
    index.refreshEntry("mods/missing.pw.json5", "sha256", "x", True)

    iterator = index.loadAllMetaRecords()
    assert next(iterator).ok
    assert not next(iterator).ok


def test_findMetaRecord_byStemNameOrSlug(tmp_path: Path) -> None:
    index = Index(tmp_path)
    _addRecord(index, "mods/jei.pw.json5", "Just Enough Items", "P1")

    assert index.findMetaRecord("jei")[0] == "mods/jei.pw.json5"
    assert index.findMetaRecord("JEI")[0] == "mods/jei.pw.json5"
    assert index.findMetaRecord("just enough items")[0] == "mods/jei.pw.json5"
    assert index.findMetaRecord("Just-Enough-Items")[0] == "mods/jei.pw.json5"
    assert index.findMetaRecord("sodium") is None
    assert index.findMetaRecord("  ") is None


def test_installedProjectIds(tmp_path: Path) -> None:
    index = Index(tmp_path)
    _addRecord(index, "mods/a.pw.json5", "Alpha", "P1")
    _addRecord(index, "mods/b.pw.json5", "Beta", "P2")
    _addRecord(index, "mods/url.pw.json5", "Bare")

    assert index.installedProjectIds() == {"P1", "P2"}


def test_loadAllMetaRecords_invalidUtf8IsSkipped(tmp_path: Path) -> None:
    index = Index(tmp_path)
    _addRecord(index, "mods/good.pw.json5", "Good", "P1")
    index.resolvePath("mods/bad.pw.json5").write_bytes(b'{"name": "\xff\xfe"}')
    index.refreshFile("mods/bad.pw.json5")

    loaded = list(index.loadAllMetaRecords())

    assert [item.path for item in loaded] == ["mods/bad.pw.json5", "mods/good.pw.json5"]
    assert [item.ok for item in loaded] == [False, True]
    assert isinstance(loaded[0].error, ParseError)
    assert loaded[0].error.kind == "encoding"
    assert index.findMetaRecord("good")[0] == "mods/good.pw.json5"
