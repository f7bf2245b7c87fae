# packwarden/catalog/models.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["FileRecord", "VersionRecord", "ProjectRecord", "HashMatch"]



class _CatalogModel(BaseModel):
    # Catalog payloads carry many fields we never read
    model_config = ConfigDict(extra="ignore", populate_by_name=True)



class FileRecord(_CatalogModel):
    filename: str
    url: str
    hashes: dict[str, str] = Field(default_factory=dict)
    isPrimary: bool = Field(default=False, alias="primary")
    size: int | None = None



class VersionRecord(_CatalogModel):
    id: str
    projectId: str = Field(alias="project_id")
    name: str | None = None
    versionNumber: str | None = Field(default=None, alias="version_number")
    files: list[FileRecord] = Field(default_factory=list)
    loaders: list[str] = Field(default_factory=list)
    gameVersions: list[str] = Field(default_factory=list, alias="game_versions")



class ProjectRecord(_CatalogModel):
    id: str
    slug: str | None = None
    title: str = ""
    projectType: str = Field(default="mod", alias="project_type")
    clientSupport: str | None = Field(default=None, alias="client_side")
    serverSupport: str | None = Field(default=None, alias="server_side")



class HashMatch(_CatalogModel):
    """What one digest resolves to."""
    versionId: str = Field(alias="id")
    projectId: str = Field(alias="project_id")
