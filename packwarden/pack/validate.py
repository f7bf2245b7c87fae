# packwarden/pack/validate.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from packwarden.core.errors import ValidationError
from packwarden.core.hashing import hashFile
from .index import Index
from .pack import Pack
from .record import MetaRecord, validateSide

logger = logging.getLogger(__name__)

__all__ = ["Finding", "ValidationReport", "validatePack", "validateRecord"]



@dataclass(frozen=True)
class Finding:
    level: Literal["error", "warning"]
    message: str
    path: str | None = None

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message



@dataclass
class ValidationReport:
    errors: list[Finding] = field(default_factory=list)
    warnings: list[Finding] = field(default_factory=list)
    filesChecked: int = 0
    metaFiles: int = 0
    validMetaFiles: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors

    def error(self, message: str, path: str | None = None) -> None:
        self.errors.append(Finding("error", message, path))

    def warn(self, message: str, path: str | None = None) -> None:
        self.warnings.append(Finding("warning", message, path))



def validateRecord(record: MetaRecord) -> list[ValidationError]:
    """Structural problems of one record. Nothing is corrected."""
    problems: list[ValidationError] = []
    if not record.name:
        problems.append(ValidationError("empty name", field="name"))
    if not record.fileName:
        problems.append(ValidationError("empty file name", field="fileName"))
    if not record.download.url:
        problems.append(ValidationError("empty download URL", field="download.url"))
    if not record.download.hashFormat or not record.download.hash:
        problems.append(ValidationError("missing hash information", field="download.hash"))
    try:
        validateSide(record.side)
    except ValidationError as err:
        problems.append(err)
    return problems



def validatePack(pack: Pack, index: Index, packDir: str | Path | None = None) -> ValidationReport:
    """
    Read-only integrity check of the pack file, the index, the metadata records
    and the files on disk. `packDir` defaults to the pack file's directory.
    """
    report = ValidationReport(filesChecked=len(index))
    root = Path(packDir) if packDir is not None else pack.root

    # ----- Pack file -----
    if not pack.name.strip():
        report.error("Pack name is empty")
    if not pack.gameVersion():
        report.warn("Game version is not set")
    if not pack.versions:
        report.warn("No versions specified")

    # ----- Index -----
    if len(index) == 0:
        report.warn("Index contains no files")

    missing: set[str] = set()
    for relPath in index.paths():
        if not index.resolvePath(relPath).is_file():
            missing.add(relPath)
            entry = index.entry(relPath)
            if entry is not None and entry.preserve:
                report.warn("Preserved file referenced in index is missing", relPath)
            else:
                report.error("File referenced in index is missing", relPath)

    # ----- Metadata records -----
    for loaded in index.loadAllMetaRecords():
        if loaded.path in missing:
            continue
        report.metaFiles += 1
        if not loaded.ok:
            report.error(f"Invalid metadata record: {loaded.error}", loaded.path)
            continue
        problems = validateRecord(loaded.record)
        for problem in problems:
            report.error(f"Invalid metadata record: {problem}", loaded.path)
        if not problems:
            report.validMetaFiles += 1

    # ----- Hashes -----
    for mismatch in index.verify():
        if mismatch.missing:
            continue
        message = f"Hash mismatch ({mismatch.hashFormat}): index has {mismatch.expected}, file has {mismatch.actual}"
        if mismatch.preserve:
            report.warn(message, mismatch.path)
        else:
            report.error(message, mismatch.path)

    for relPath in index.untrackedMetaFiles():
        report.warn("Untracked metadata file", relPath)

    # ----- Pack -> index hash -----
    if not pack.index.hash:
        report.warn("No index hash in pack file")
    else:
        indexPath = root / pack.index.file
        try:
            current = hashFile(indexPath, pack.index.hashFormat)
        except OSError as err:
            report.error(f"Cannot hash index file: {err}", pack.index.file)
        else:
            if current != pack.index.hash:
                report.error(f"Index hash mismatch: pack file has {pack.index.hash}, index file hashes to {current}", pack.index.file)

    logger.debug("Validation finished: %d error(s), %d warning(s)", len(report.errors), len(report.warnings))
    return report
