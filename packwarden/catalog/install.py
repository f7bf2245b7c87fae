# packwarden/catalog/install.py
from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from packwarden.core.errors import (
    InstallInterrupted,
    MissingHashError,
    NoCompatibleFileError,
    PackwardenError,
    ValidationError,
)
from packwarden.core.hashing import preferredHash
from packwarden.core.logging import logContext
from packwarden.pack.index import Index
from packwarden.pack.pack import Pack
from packwarden.pack.record import DownloadDescriptor, MetaRecord, ModrinthSource, metaRecordPath, writeMetaRecord
from .bundle import BundleArchive, BundleFileRef, copyOverrides
from .client import CatalogService, fetchWithRateLimit
from .models import FileRecord, HashMatch, ProjectRecord, VersionRecord
from .side import Side, SideResolution, resolveProjectSide, resolveSide

logger = logging.getLogger(__name__)

__all__ = [
    "CATALOG_SOURCE", "HASH_ALGORITHM", "PLUGIN_LOADERS",
    "FinishReason", "InstallSummary", "ImportResult",
    "selectFile", "projectTypeFolder", "sideFor",
    "InstallationReconciler", "importBundle",
]

CATALOG_SOURCE = "modrinth"
HASH_ALGORITHM = "sha512"

PLUGIN_LOADERS: frozenset[str] = frozenset({
    "bukkit", "spigot", "paper", "purpur", "folia", "sponge", "bungeecord", "waterfall", "velocity",
})



class FinishReason(str, Enum):
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    FAULT = "fault"



@dataclass
class InstallSummary:
    installed: int = 0
    skipped: int = 0
    total: int = 0
    reason: FinishReason = FinishReason.COMPLETED
    failures: list[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.total - self.installed - self.skipped

    def __str__(self) -> str:
        return f"{self.installed} installed, {self.skipped} skipped (already installed), {self.failed} failed"



@dataclass
class ImportResult:
    name: str
    summary: InstallSummary
    overridesCopied: int = 0
    overridesFailed: list[str] = field(default_factory=list)



# ----- Pure helpers -----

def selectFile(version: VersionRecord) -> FileRecord:
    """The primary file, else the first one."""
    if not version.files:
        raise NoCompatibleFileError(f"Version {version.id} has no files")
    for candidate in version.files:
        if candidate.isPrimary:
            return candidate
    return version.files[0]



def projectTypeFolder(projectType: str, versionLoaders: Sequence[str]) -> str:
    loaders = {loader.lower() for loader in versionLoaders}
    if projectType == "mod":
        if loaders and loaders <= {"datapack"}:
            return "datapacks"
        if loaders and loaders <= PLUGIN_LOADERS:
            return "plugins"
        return "mods"
    if projectType == "plugin":
        return "plugins"
    if projectType == "datapack":
        return "datapacks"
    if projectType == "resourcepack":
        return "resourcepacks"
    if projectType == "shader":
        return "shaderpacks"
    if projectType == "modpack":
        raise ValidationError("Modpacks cannot be installed as a single artifact", field="projectType")
    raise ValidationError(f"Unknown project type '{projectType}'", field="projectType")



def sideFor(fileRef: BundleFileRef | None, project: ProjectRecord) -> SideResolution:
    """
    The bundle's per-file environment wins. When it is absent or says "neither side",
    the project-level support fields decide, and those never yield SKIP.
    """
    if fileRef is not None and fileRef.env is not None:
        resolution = resolveSide(fileRef.env.client, fileRef.env.server)
        if resolution.side is not Side.SKIP:
            return resolution
        logger.debug("Bundle env of '%s' resolves to neither side; using project support", fileRef.path)
    return resolveProjectSide(project.clientSupport, project.serverSupport)



# ----- Reconciler -----

class InstallationReconciler:
    """
    Installs a batch of catalog artifacts into one pack.

    Per artifact: write the record file, then refresh its index entry. That pair is
    never split by an interruption; a signal arriving in between is delivered right after.
    The index is persisted every `checkpointEvery` successes and once more when the batch
    ends, whether it completed, was interrupted or hit an unexpected fault.
    """
    def __init__(
        self,
        pack: Pack,
        index: Index,
        catalog: CatalogService,
        *,
        checkpointEvery: int = 10,
        maxAttempts: int = 3,
        waitSeconds: float = 60,
        sleep: Callable[[float], None] = time.sleep,
        metaFolderBase: str = ".",
        metaFolder: str = "",
        handleSignals: bool = True,
        hashAlgorithm: str = HASH_ALGORITHM,
    ):
        self.pack = pack
        self.index = index
        self.catalog = catalog
        self.checkpointEvery = max(1, int(checkpointEvery))
        self.maxAttempts = maxAttempts
        self.waitSeconds = waitSeconds
        self.sleep = sleep
        self.metaFolderBase = metaFolderBase
        self.metaFolder = metaFolder
        self.handleSignals = handleSignals
        self.hashAlgorithm = hashAlgorithm

        self.summary = InstallSummary()
        self._dirty = False
        self._inCritical = False
        self._pendingSignal: int | None = None
        self._finalized = False

    # ----- Interruption -----

    def requestStop(self, signum: int = signal.SIGINT) -> None:
        """Signal handler body. Raises into the loop unless a record write is in progress."""
        self._pendingSignal = signum
        if not self._inCritical:
            raise InstallInterrupted(signum)

    def _onSignal(self, signum, _frame) -> None:
        logger.warning("Received signal %d, saving progress", signum)
        self.requestStop(signum)

    @contextmanager
    def _signalHandlers(self) -> Iterator[None]:
        if not self.handleSignals or threading.current_thread() is not threading.main_thread():
            yield
            return
        previous = {signum: signal.getsignal(signum) for signum in (signal.SIGINT, signal.SIGTERM)}
        for signum in previous:
            signal.signal(signum, self._onSignal)
        try:
            yield
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)

    @contextmanager
    def _critical(self) -> Iterator[None]:
        self._inCritical = True
        try:
            yield
        finally:
            self._inCritical = False

    # ----- Persistence -----

    def checkpoint(self) -> bool:
        """Persist index and pack hash if anything changed since the last checkpoint."""
        if not self._dirty:
            return False
        logger.info("Saving progress (%d installed)", self.summary.installed)
        self.index.write()
        self.pack.updateIndexHash(self.index)
        self.pack.write()
        self._dirty = False
        return True

    def finalize(self, reason: FinishReason) -> InstallSummary:
        """Shared end of every run: one checkpoint, then the summary."""
        self.summary.reason = reason
        if not self._finalized:
            self._finalized = True
            if reason is FinishReason.FAULT:
                try:
                    self.checkpoint()
                except PackwardenError as err:
                    logger.error("Could not save progress after fault: %s", err)
            else:
                self.checkpoint()
        logger.info("Install %s: %s", reason.value, self.summary)
        return self.summary

    # ----- Batch -----

    def run(self, hashes: Sequence[str], *, fileRefs: Mapping[str, BundleFileRef] | None = None) -> InstallSummary:
        """
        Raises:
            LookupError: the batched hash lookup failed
            BaseException: any unexpected fault, after progress has been saved
        """
        fileRefs = fileRefs or {}
        uniqueHashes = list(dict.fromkeys(hashes))
        try:
            matches = self.catalog.lookupByHashes(uniqueHashes, self.hashAlgorithm)
        except PackwardenError as err:
            raise LookupError(f"Hash lookup failed: {err}") from err

        ordered = [(digest, matches[digest]) for digest in uniqueHashes if digest in matches]
        self.summary = InstallSummary(total=len(ordered))
        self._finalized = False
        self._pendingSignal = None
        logger.info("Resolved %d of %d file(s) in the catalog", len(ordered), len(uniqueHashes))

        try:
            with self._signalHandlers():
                self._installAll(ordered, fileRefs)
        except InstallInterrupted as err:
            logger.warning("%s", err)
            return self.finalize(FinishReason.INTERRUPTED)
        except BaseException:
            self.finalize(FinishReason.FAULT)
            raise
        return self.finalize(FinishReason.COMPLETED)

    def _installAll(self, ordered: list[tuple[str, HashMatch]], fileRefs: Mapping[str, BundleFileRef]) -> None:
        installed = self.index.installedProjectIds(CATALOG_SOURCE)
        logger.info("Found %d already installed catalog project(s)", len(installed))

        wanted = list(dict.fromkeys(match.projectId for _digest, match in ordered if match.projectId not in installed))
        projects = self._prefetchProjects(wanted)

        for position, (digest, match) in enumerate(ordered, start=1):
            if self._pendingSignal is not None:
                raise InstallInterrupted(self._pendingSignal)

            if match.projectId in installed:
                logger.info("Skipping already installed project %s", match.projectId)
                self.summary.skipped += 1
                continue

            with logContext(file=match.projectId):
                try:
                    relPath = self._installOne(match, fileRefs.get(digest), projects, position)
                except InstallInterrupted:
                    raise
                except Exception as err:
                    logger.error("Failed to install version %s: %s", match.versionId, err)
                    self.summary.failures.append(f"{match.projectId}: {err}")
                    continue

            installed.add(match.projectId)
            self.summary.installed += 1
            logger.debug("Installed %s", relPath)
            if self.summary.installed % self.checkpointEvery == 0:
                self.checkpoint()

        if self._pendingSignal is not None:
            raise InstallInterrupted(self._pendingSignal)

    def _prefetchProjects(self, projectIds: list[str]) -> dict[str, ProjectRecord]:
        if not projectIds:
            return {}
        try:
            records = fetchWithRateLimit(
                lambda: self.catalog.getProjects(projectIds),
                maxAttempts=self.maxAttempts,
                waitSeconds=self.waitSeconds,
                sleep=self.sleep,
                what="project batch",
            )
        except InstallInterrupted:
            raise
        except PackwardenError as err:
            logger.warning("Batched project fetch failed, falling back to single fetches: %s", err)
            return {}
        return {record.id: record for record in records}

    def _project(self, projectId: str, projects: Mapping[str, ProjectRecord]) -> ProjectRecord:
        cached = projects.get(projectId)
        if cached is not None:
            return cached
        return fetchWithRateLimit(
            lambda: self.catalog.getProject(projectId),
            maxAttempts=self.maxAttempts,
            waitSeconds=self.waitSeconds,
            sleep=self.sleep,
            what=f"project {projectId}",
        )

    def _installOne(
        self,
        match: HashMatch,
        fileRef: BundleFileRef | None,
        projects: Mapping[str, ProjectRecord],
        position: int,
    ) -> str:
        project = self._project(match.projectId, projects)
        version = self.catalog.getVersion(match.versionId)

        resolution = sideFor(fileRef, project)
        for warning in resolution.warnings:
            logger.warning("%s: %s", project.title or project.id, warning)
        side = resolution.side.recordSide()

        chosen = selectFile(version)
        best = preferredHash(chosen.hashes)
        if best is None:
            raise MissingHashError(f"File '{chosen.filename}' of version {version.id} has no usable hash")
        hashFormat, digest = best

        record = MetaRecord(
            name=project.title or project.slug or project.id,
            fileName=chosen.filename,
            side=side,
            download=DownloadDescriptor(url=chosen.url, hashFormat=hashFormat, hash=digest),
            update={CATALOG_SOURCE: ModrinthSource(projectId=project.id, version=version.id)},
        )
        folder = self.metaFolder or projectTypeFolder(project.projectType, version.loaders)
        relPath = metaRecordPath(self.metaFolderBase, folder, project.slug, record.name)

        logger.info(
            "Installing %s (%d/%d) version %s, side %s",
            record.name, position, self.summary.total, version.id, side,
        )
        with self._critical():
            recordFormat, recordHash = writeMetaRecord(record, self.index.resolvePath(relPath))
            self.index.refreshEntry(relPath, recordFormat, recordHash, True)
            self._dirty = True
        return relPath



# ----- Import command flow -----

def importBundle(
    bundlePath: str | Path,
    pack: Pack,
    index: Index,
    catalog: CatalogService,
    settings,
    *,
    sleep: Callable[[float], None] = time.sleep,
    handleSignals: bool = True,
) -> ImportResult:
    """
    Installs every catalog-known file of a bundle, then copies its overrides and saves
    the index and pack. Overrides are skipped when the install did not complete.
    """
    with BundleArchive(bundlePath) as archive:
        manifest = archive.readManifest()
        logger.info("Importing bundle '%s'", manifest.name)
        algorithm = str(settings.get("catalog.hashAlgorithm", HASH_ALGORITHM))
        fileRefs = manifest.filesByHash(algorithm)

        reconciler = InstallationReconciler(
            pack,
            index,
            catalog,
            checkpointEvery=settings.getInt("install.checkpointEvery", 10),
            maxAttempts=settings.getInt("install.rateLimit.maxAttempts", 3),
            waitSeconds=float(settings.get("install.rateLimit.waitSeconds", 60)),
            sleep=sleep,
            metaFolderBase=str(settings.get("pack.metaFolderBase", ".")),
            metaFolder=str(settings.get("pack.metaFolder", "") or ""),
            handleSignals=handleSignals,
            hashAlgorithm=algorithm,
        )
        if fileRefs:
            summary = reconciler.run(list(fileRefs), fileRefs=fileRefs)
        else:
            logger.warning("No files with %s hashes in the bundle", algorithm)
            summary = InstallSummary()

        result = ImportResult(name=manifest.name, summary=summary)
        if summary.reason is not FinishReason.COMPLETED:
            return result

        overrides = copyOverrides(archive, index)
        result.overridesCopied = overrides.copied
        result.overridesFailed = overrides.failed

    index.write()
    pack.updateIndexHash(index)
    pack.write()
    return result
