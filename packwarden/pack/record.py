# packwarden/pack/record.py
from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from packwarden.core.documents import readDocument, writeDocumentAtomic
from packwarden.core.errors import ParseError, ValidationError
from packwarden.core.hashing import hashBytes
from packwarden.core.slugs import slugifyName

__all__ = [
    "META_EXTENSION", "RECORD_HASH_FORMAT",
    "SIDE_CLIENT", "SIDE_SERVER", "SIDE_BOTH", "SIDE_UNSET", "VALID_SIDES", "VALID_PLATFORMS",
    "DownloadDescriptor", "OptionDescriptor",
    "ModrinthSource", "CurseForgeSource", "GitHubSource", "UpdateSource", "UPDATE_SOURCE_TYPES",
    "MetaRecord", "loadMetaRecord", "writeMetaRecord",
    "validateSide", "normalizeSide", "validateClientPlatforms", "normalizeClientPlatforms",
    "isMetaPath", "metaRecordPath",
]

META_EXTENSION = ".pw.json5"
# Records are hashed with this format when their index entry is refreshed after a write
RECORD_HASH_FORMAT = "sha256"

SIDE_CLIENT = "client"
SIDE_SERVER = "server"
SIDE_BOTH = "both"
SIDE_UNSET = ""
VALID_SIDES: tuple[str, ...] = (SIDE_CLIENT, SIDE_SERVER, SIDE_BOTH, SIDE_UNSET)

VALID_PLATFORMS: tuple[str, ...] = ("macos", "linux", "windows")



# ----- Sides and platforms -----

def normalizeSide(side: str | None) -> str:
    """Lowercases and trims; "universal" is accepted as an alias of "both"."""
    value = str(side or "").strip().lower()
    if value == "universal":
        return SIDE_BOTH
    return value


def validateSide(side: str) -> None:
    if side not in VALID_SIDES:
        raise ValidationError(
            f"Invalid side '{side}'; expected one of: client, server, both",
            field="side",
        )


def normalizeClientPlatforms(platforms: Iterable[str] | None) -> list[str]:
    out: list[str] = []
    for platform in platforms or []:
        value = str(platform).strip().lower()
        if value and value not in out:
            out.append(value)
    return out


def validateClientPlatforms(platforms: Iterable[str]) -> None:
    for platform in platforms:
        if platform not in VALID_PLATFORMS:
            raise ValidationError(
                f"Invalid platform '{platform}'; expected any of: {', '.join(VALID_PLATFORMS)}",
                field="disabledClientPlatforms",
            )



# ----- Models -----

class DownloadDescriptor(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = ""
    hashFormat: str = ""
    hash: str = ""
    mode: str = "url"
    disabledClientPlatforms: list[str] = Field(default_factory=list)



class OptionDescriptor(BaseModel):
    """Optional-install flag shown to the player by launchers."""
    model_config = ConfigDict(extra="forbid")

    optional: bool = False
    description: str = ""
    default: bool = False

    def isDefault(self) -> bool:
        return not self.optional and not self.description and not self.default



class ModrinthSource(BaseModel):
    model_config = ConfigDict(extra="forbid")

    projectId: str = ""
    version: str = ""



class CurseForgeSource(BaseModel):
    model_config = ConfigDict(extra="forbid")

    projectId: int
    fileId: int



class GitHubSource(BaseModel):
    model_config = ConfigDict(extra="forbid")

    slug: str
    tag: str
    branch: str | None = None
    regex: str | None = None



UpdateSource = ModrinthSource | CurseForgeSource | GitHubSource

# Persisted source name -> payload model
UPDATE_SOURCE_TYPES: dict[str, type[BaseModel]] = {
    "modrinth": ModrinthSource,
    "curseforge": CurseForgeSource,
    "github": GitHubSource,
}



class MetaRecord(BaseModel):
    """
    One installed artifact. The path the record is stored at is its identity;
    nothing inside the document identifies it.

    `side` is kept verbatim so that invalid values survive a load and are reported by validation.
    """
    model_config = ConfigDict(extra="forbid")

    name: str = ""
    fileName: str = ""
    side: str = SIDE_UNSET
    pin: bool = False
    download: DownloadDescriptor = Field(default_factory=DownloadDescriptor)
    update: dict[str, UpdateSource] = Field(default_factory=dict)
    option: OptionDescriptor | None = None

    @field_validator("option")
    @classmethod
    def _dropDefaultOption(cls, value: OptionDescriptor | None) -> OptionDescriptor | None:
        if value is not None and value.isDefault():
            return None
        return value

    @property
    def modrinth(self) -> ModrinthSource | None:
        source = self.update.get("modrinth")
        return source if isinstance(source, ModrinthSource) else None

    @property
    def projectId(self) -> str:
        """Catalog project ID, or "" when the record was not installed from the catalog."""
        source = self.modrinth
        return source.projectId if source else ""

    @property
    def versionId(self) -> str:
        source = self.modrinth
        return source.version if source else ""

    @property
    def effectiveSide(self) -> str:
        return self.side or SIDE_BOTH

    @classmethod
    def fromDocument(cls, data: Mapping[str, Any], *, path: object = None) -> MetaRecord:
        raw = dict(data)
        updates = raw.pop("update", None) or {}
        if not isinstance(updates, Mapping):
            raise ParseError(f"'update' of {path} must be an object", path=path)

        sources: dict[str, BaseModel] = {}
        for sourceName, payload in updates.items():
            model = UPDATE_SOURCE_TYPES.get(sourceName)
            if model is None:
                raise ParseError(
                    f"Unknown update source '{sourceName}' in {path}",
                    kind="unknown update source",
                    path=path,
                )
            try:
                sources[sourceName] = model.model_validate(payload)
            except PydanticValidationError as err:
                raise ParseError(f"Invalid '{sourceName}' update source in {path}: {err}", path=path) from err

        try:
            return cls.model_validate({**raw, "update": sources})
        except PydanticValidationError as err:
            raise ParseError(f"Invalid meta record {path}: {err}", path=path) from err

    def toDocument(self) -> dict[str, Any]:
        """Persisted form. Unset side, a false pin and an all-default option are left out."""
        doc: dict[str, Any] = {
            "name": self.name,
            "fileName": self.fileName,
        }
        if self.side:
            doc["side"] = self.side
        if self.pin:
            doc["pin"] = True

        download = self.download.model_dump()
        if not download["disabledClientPlatforms"]:
            del download["disabledClientPlatforms"]
        doc["download"] = download

        if self.update:
            doc["update"] = {
                sourceName: source.model_dump(exclude_none=True)
                for sourceName, source in sorted(self.update.items())
            }
        if self.option is not None and not self.option.isDefault():
            doc["option"] = self.option.model_dump()
        return doc



# ----- Persistence -----

def loadMetaRecord(path: str | Path) -> MetaRecord:
    """Raises PackIOError when unreadable, ParseError when malformed."""
    return MetaRecord.fromDocument(readDocument(path), path=Path(path))



def writeMetaRecord(record: MetaRecord, path: str | Path) -> tuple[str, str]:
    """Writes the record atomically and returns (hashFormat, hash) of the exact bytes written."""
    payload = writeDocumentAtomic(path, record.toDocument())
    return RECORD_HASH_FORMAT, hashBytes(payload, RECORD_HASH_FORMAT)



# ----- Paths -----

def isMetaPath(path: str | PurePosixPath | Path) -> bool:
    return str(path).replace("\\", "/").endswith(META_EXTENSION)



def metaRecordPath(metaFolderBase: str, folder: str, slug: str | None, name: str) -> str:
    """
    Relative path of a new record: <base>/<folder>/<slug><ext>.
    Falls back to the slugified display name when the catalog has no slug.
    """
    stem = (slug or "").strip() or slugifyName(name)
    if not stem:
        raise ValidationError(f"Cannot derive a file name for '{name}'", field="name")
    parts = [part for part in (metaFolderBase, folder) if part and part != "."]
    return str(PurePosixPath(*parts, stem + META_EXTENSION))
