# tests/packwarden/pack/test_modify.py
from __future__ import annotations

import hashlib

import json5
import pytest

from packwarden.core.errors import ValidationError
from packwarden.pack.modify import modifyRecord
from packwarden.pack.pack import loadPack
from packwarden.pack.record import DownloadDescriptor, MetaRecord, ModrinthSource, OptionDescriptor, loadMetaRecord, writeMetaRecord


@pytest.fixture
def withRecord(packIndex):
    pack, index = packIndex
    record = MetaRecord(
        name="Just Enough Items",
        fileName="jei.jar",
        download=DownloadDescriptor(url="https://x/jei.jar", hashFormat="sha512", hash="h"),
        update={"modrinth": ModrinthSource(projectId="u6dRKJwZ", version="v1")},
    )
    relPath = "mods/jei.pw.json5"
    fmt, digest = writeMetaRecord(record, index.resolvePath(relPath))
    index.refreshEntry(relPath, fmt, digest, True)
    index.write()
    pack.updateIndexHash(index)
    pack.write()
    return pack, index, relPath


def test_modify_sideAndPinAreWrittenAndIndexed(withRecord) -> None:
    pack, index, relPath = withRecord

    result = modifyRecord(pack, index, "jei", side=" Client ", pin=True)

    assert result.changed
    stored = loadMetaRecord(index.resolvePath(relPath))
    assert stored.side == "client"
    assert stored.pin is True
    # Index entry and pack hash follow the rewritten files
    raw = index.resolvePath(relPath).read_bytes()
    assert index.entry(relPath).hash == hashlib.sha256(raw).hexdigest()
    reloaded = loadPack(pack.path)
    assert reloaded.index.hash == hashlib.sha256(index.path.read_bytes()).hexdigest()
    assert reloaded.loadIndex().entry(relPath).hash == index.entry(relPath).hash


def test_modify_bothIsUniversal(withRecord) -> None:
    pack, index, relPath = withRecord
    modifyRecord(pack, index, "Just Enough Items", side="universal")
    assert loadMetaRecord(index.resolvePath(relPath)).side == "both"


def test_modify_invalidSideWritesNothing(withRecord) -> None:
    pack, index, relPath = withRecord
    before = index.resolvePath(relPath).read_bytes()

    with pytest.raises(ValidationError):
        modifyRecord(pack, index, "jei", side="sideways", pin=True)

    assert index.resolvePath(relPath).read_bytes() == before


def test_modify_platformsNormalizedAndCleared(withRecord) -> None:
    pack, index, relPath = withRecord

    modifyRecord(pack, index, "jei", disabledClientPlatforms=["MacOS", " linux", "macos", ""])
    assert loadMetaRecord(index.resolvePath(relPath)).download.disabledClientPlatforms == ["macos", "linux"]

    modifyRecord(pack, index, "jei", disabledClientPlatforms=[""])
    assert loadMetaRecord(index.resolvePath(relPath)).download.disabledClientPlatforms == []

    with pytest.raises(ValidationError):
        modifyRecord(pack, index, "jei", disabledClientPlatforms=["beos"])


def test_modify_optionLifecycle(withRecord) -> None:
    pack, index, relPath = withRecord
    path = index.resolvePath(relPath)

    modifyRecord(pack, index, "jei", optional=True, optionalDescription="Recipe viewer")
    assert loadMetaRecord(path).option == OptionDescriptor(optional=True, description="Recipe viewer", default=False)

    result = modifyRecord(pack, index, "jei", optional=False, optionalDescription="")
    assert any("removed optional settings" in change for change in result.changes)
    assert "option" not in json5.loads(path.read_text(encoding="utf-8"))


def test_modify_noChangesWritesNothing(withRecord) -> None:
    pack, index, relPath = withRecord
    before = index.path.read_bytes()

    result = modifyRecord(pack, index, "jei")

    assert not result.changed
    assert index.path.read_bytes() == before


def test_modify_unknownRecord(withRecord) -> None:
    pack, index, _relPath = withRecord
    with pytest.raises(LookupError):
        modifyRecord(pack, index, "sodium", pin=True)
