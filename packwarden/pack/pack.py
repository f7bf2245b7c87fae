# packwarden/pack/pack.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic import ValidationError as PydanticValidationError

from packwarden.core.documents import readDocument, writeDocumentAtomic
from packwarden.core.errors import PackIOError, ParseError
from packwarden.core.hashing import hashFile
from .index import Index

logger = logging.getLogger(__name__)

__all__ = ["PACK_FORMAT", "GAME_KEY", "KNOWN_LOADERS", "IndexRef", "Pack", "loadPack", "initPack"]

PACK_FORMAT = "packwarden:1.0.0"
GAME_KEY = "minecraft"
KNOWN_LOADERS: tuple[str, ...] = ("fabric", "forge", "liteloader", "neoforge", "quilt")



class IndexRef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    file: str = "index.json5"
    hashFormat: str = "sha256"
    hash: str = ""



class Pack(BaseModel):
    """
    The pack file. `index.hash` is the aggregate hash of the whole pack: it changes
    whenever the index file changes.
    """
    model_config = ConfigDict(extra="forbid")

    name: str = ""
    author: str | None = None
    version: str | None = None
    description: str | None = None
    packFormat: str = PACK_FORMAT
    index: IndexRef = Field(default_factory=IndexRef)
    versions: dict[str, str] = Field(default_factory=dict)
    options: dict[str, Any] = Field(default_factory=dict)

    _path: Path | None = PrivateAttr(default=None)

    @property
    def path(self) -> Path:
        if self._path is None:
            raise PackIOError("Pack has no file path")
        return self._path

    @property
    def root(self) -> Path:
        return self.path.parent

    def bindPath(self, path: str | Path) -> Pack:
        self._path = Path(path)
        return self

    def indexPath(self) -> Path:
        return self.root / self.index.file

    def loadIndex(self) -> Index:
        return Index.load(self.indexPath(), root=self.root, hashFormat=self.index.hashFormat)

    def newIndex(self) -> Index:
        return Index(self.root, path=self.indexPath(), hashFormat=self.index.hashFormat)

    def updateIndexHash(self, index: Index | None = None) -> str:
        """Rehash the index file as it is on disk now."""
        indexPath = index.path if index is not None else self.indexPath()
        try:
            self.index.hash = hashFile(indexPath, self.index.hashFormat)
        except OSError as err:
            raise PackIOError(f"Cannot hash index '{indexPath}': {err}", path=indexPath) from err
        return self.index.hash

    def gameVersion(self) -> str:
        return self.versions.get(GAME_KEY, "")

    def compatibleLoaders(self) -> list[str]:
        """Loaders the pack declares a version for; "quilt" also accepts fabric content."""
        loaders = [name for name in self.versions if name != GAME_KEY]
        if "quilt" in loaders and "fabric" not in loaders:
            loaders.append("fabric")
        return loaders

    def toDocument(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def write(self) -> None:
        writeDocumentAtomic(self.path, self.toDocument())



def loadPack(path: str | Path) -> Pack:
    """
    Raises:
        PackIOError: missing or unreadable pack file
        ParseError: malformed pack file
    """
    path = Path(path)
    doc = readDocument(path)
    try:
        pack = Pack.model_validate(doc)
    except PydanticValidationError as err:
        raise ParseError(f"Invalid pack file {path}: {err}", path=path) from err
    return pack.bindPath(path)



def initPack(path: str | Path, *, name: str, gameVersion: str = "", loaders: dict[str, str] | None = None) -> tuple[Pack, Index]:
    """Creates a pack file and an empty index next to it. Existing files are not overwritten."""
    path = Path(path)
    if path.exists():
        raise PackIOError(f"Pack file '{path}' already exists", path=path)

    versions: dict[str, str] = {}
    if gameVersion:
        versions[GAME_KEY] = gameVersion
    versions.update(loaders or {})

    pack = Pack(name=name, versions=versions).bindPath(path)
    index = pack.newIndex()
    if index.path.exists():
        index = pack.loadIndex()
    else:
        index.write()
    pack.updateIndexHash(index)
    pack.write()
    logger.info("Created pack '%s' at %s", name, path)
    return pack, index
