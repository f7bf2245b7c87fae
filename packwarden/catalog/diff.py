# packwarden/catalog/diff.py
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from packwarden.core.errors import PackwardenError
from packwarden.pack.index import Index
from .bundle import BundleArchive, BundleFileRef, BundleManifest
from .client import CatalogService, fetchWithRateLimit
from .install import CATALOG_SOURCE, HASH_ALGORITHM, sideFor
from .models import ProjectRecord

logger = logging.getLogger(__name__)

__all__ = ["DiffItem", "SourceCounts", "DiffResult", "localCatalogEntries", "remoteCatalogEntries", "diffManifest", "diffBundle"]



@dataclass(frozen=True)
class DiffItem:
    projectId: str
    name: str
    version: str   # version ID, or "old → new" for changed items
    side: str
    path: str = ""



@dataclass
class SourceCounts:
    modrinth: int = 0
    curseforge: int = 0
    url: int = 0
    other: int = 0
    noProjectId: int = 0   # catalog source without a project ID
    unreadable: int = 0

    @property
    def total(self) -> int:
        return self.modrinth + self.curseforge + self.url + self.other + self.noProjectId

    @property
    def notCompared(self) -> int:
        return self.curseforge + self.url + self.other + self.noProjectId



@dataclass
class DiffResult:
    missing: list[DiffItem] = field(default_factory=list)
    extra: list[DiffItem] = field(default_factory=list)
    changed: list[DiffItem] = field(default_factory=list)
    localSources: SourceCounts = field(default_factory=SourceCounts)
    remoteCount: int = 0
    unresolvedFiles: int = 0

    @property
    def totalDifferences(self) -> int:
        return len(self.missing) + len(self.extra) + len(self.changed)

    @property
    def identical(self) -> bool:
        return self.totalDifferences == 0



def _byName(items: list[DiffItem]) -> list[DiffItem]:
    return sorted(items, key=lambda item: (item.name, item.projectId))



def localCatalogEntries(index: Index) -> tuple[dict[str, DiffItem], SourceCounts]:
    """Catalog-sourced records keyed by project ID, plus a tally of every record by source."""
    entries: dict[str, DiffItem] = {}
    counts = SourceCounts()
    for loaded in index.loadAllMetaRecords():
        if not loaded.ok:
            counts.unreadable += 1
            continue
        record = loaded.record
        if CATALOG_SOURCE in record.update and record.projectId:
            counts.modrinth += 1
            entries[record.projectId] = DiffItem(
                record.projectId, record.name, record.versionId, record.effectiveSide, loaded.path,
            )
        elif "curseforge" in record.update:
            counts.curseforge += 1
        elif set(record.update) - {CATALOG_SOURCE}:
            counts.other += 1
        elif record.update:
            logger.warning("Record '%s' has an empty catalog project ID; not compared", loaded.path)
            counts.noProjectId += 1
        else:
            counts.url += 1
    return entries, counts



def remoteCatalogEntries(
    manifest: BundleManifest,
    catalog: CatalogService,
    *,
    maxAttempts: int = 3,
    waitSeconds: float = 60,
    sleep: Callable[[float], None] = time.sleep,
    algorithm: str = HASH_ALGORITHM,
) -> tuple[dict[str, DiffItem], int]:
    """
    Resolves manifest files to catalog projects with one hash lookup and one batched
    project fetch. Returns entries keyed by project ID and the number of files that
    could not be resolved.
    """
    fileRefs: dict[str, BundleFileRef] = manifest.filesByHash(algorithm)
    unresolved = sum(1 for ref in manifest.files if not ref.hashes.get(algorithm))
    if not fileRefs:
        return {}, unresolved

    try:
        matches = catalog.lookupByHashes(list(fileRefs), algorithm)
    except PackwardenError as err:
        raise LookupError(f"Hash lookup failed: {err}") from err
    unresolved += sum(1 for digest in fileRefs if digest not in matches)

    resolved = [(digest, matches[digest]) for digest in fileRefs if digest in matches]
    projectIds = list(dict.fromkeys(match.projectId for _digest, match in resolved))
    batch = fetchWithRateLimit(
        lambda: catalog.getProjects(projectIds),
        maxAttempts=maxAttempts,
        waitSeconds=waitSeconds,
        sleep=sleep,
        what="project batch",
    )
    projects: dict[str, ProjectRecord] = {project.id: project for project in batch}

    entries: dict[str, DiffItem] = {}
    for digest, match in resolved:
        if match.projectId in entries:
            continue
        ref = fileRefs[digest]
        project = projects.get(match.projectId)
        if project is None:
            logger.warning("Catalog returned no project %s for '%s'", match.projectId, ref.path)
            name = Path(ref.path).name
            side = "both"
        else:
            name = project.title or project.slug or project.id
            side = sideFor(ref, project).side.recordSide()
        entries[match.projectId] = DiffItem(match.projectId, name, match.versionId, side, ref.path)
    return entries, unresolved



def diffManifest(index: Index, manifest: BundleManifest, catalog: CatalogService, **options) -> DiffResult:
    """Read-only comparison of local catalog records against a bundle manifest."""
    local, counts = localCatalogEntries(index)
    remote, unresolved = remoteCatalogEntries(manifest, catalog, **options)

    result = DiffResult(localSources=counts, remoteCount=len(remote), unresolvedFiles=unresolved)
    missing = [item for projectId, item in remote.items() if projectId not in local]
    extra = [item for projectId, item in local.items() if projectId not in remote]
    changed = [
        DiffItem(projectId, item.name, f"{item.version} → {remote[projectId].version}", item.side, item.path)
        for projectId, item in local.items()
        if projectId in remote and item.version != remote[projectId].version
    ]
    result.missing, result.extra, result.changed = _byName(missing), _byName(extra), _byName(changed)
    return result



def diffBundle(bundlePath: str | Path, index: Index, catalog: CatalogService, settings=None) -> tuple[BundleManifest, DiffResult]:
    with BundleArchive(bundlePath) as archive:
        manifest = archive.readManifest()
    options = {}
    if settings is not None:
        options = {
            "maxAttempts": settings.getInt("install.rateLimit.maxAttempts", 3),
            "waitSeconds": float(settings.get("install.rateLimit.waitSeconds", 60)),
            "algorithm": str(settings.get("catalog.hashAlgorithm", HASH_ALGORITHM)),
        }
    return manifest, diffManifest(index, manifest, catalog, **options)
