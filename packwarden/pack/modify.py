# packwarden/pack/modify.py
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from packwarden.core.errors import ValidationError
from .index import Index
from .pack import Pack
from .record import (
    SIDE_BOTH,
    MetaRecord,
    OptionDescriptor,
    normalizeClientPlatforms,
    normalizeSide,
    validateClientPlatforms,
    validateSide,
    writeMetaRecord,
)

logger = logging.getLogger(__name__)

__all__ = ["ModifyResult", "modifyRecord"]



@dataclass
class ModifyResult:
    path: str
    record: MetaRecord
    changes: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)



def modifyRecord(
    pack: Pack,
    index: Index,
    nameOrSlug: str,
    *,
    side: str | None = None,
    pin: bool | None = None,
    disabledClientPlatforms: Sequence[str] | None = None,
    optional: bool | None = None,
    optionalDescription: str | None = None,
    optionalDefault: bool | None = None,
) -> ModifyResult:
    """
    Changes the given fields of one record in place. None means "leave as is".

    All inputs are validated before anything is written. When at least one field was
    given, the record is rewritten, its index entry refreshed, and the index and pack saved.

    Raises:
        LookupError: no record matches `nameOrSlug`
        ValidationError: invalid side or platform
    """
    found = index.findMetaRecord(nameOrSlug)
    if found is None:
        raise LookupError(f"Cannot find a record matching '{nameOrSlug}'")
    relPath, record = found

    newSide: str | None = None
    if side is not None:
        newSide = normalizeSide(side)
        if not newSide:
            raise ValidationError("Side must not be empty; use one of: client, server, both", field="side")
        validateSide(newSide)

    newPlatforms: list[str] | None = None
    if disabledClientPlatforms is not None:
        newPlatforms = normalizeClientPlatforms(disabledClientPlatforms)
        validateClientPlatforms(newPlatforms)

    result = ModifyResult(path=relPath, record=record)
    changes = result.changes

    if newSide is not None:
        changes.append(f"side: '{record.side or SIDE_BOTH}' -> '{newSide}'")
        record.side = newSide

    if newPlatforms is not None:
        old = record.download.disabledClientPlatforms
        if newPlatforms:
            changes.append(f"disabled client platforms: {old} -> {newPlatforms}")
        else:
            changes.append(f"disabled client platforms cleared (was {old})")
        record.download.disabledClientPlatforms = newPlatforms

    if pin is not None:
        changes.append(f"{'pinned' if pin else 'unpinned'} (was {record.pin})")
        record.pin = pin

    if optional is not None or optionalDescription is not None or optionalDefault is not None:
        option = record.option.model_copy() if record.option is not None else OptionDescriptor()
        if optional is not None:
            changes.append(f"optional: {option.optional} -> {optional}")
            option.optional = optional
        if optionalDescription is not None:
            changes.append(f"optional description: '{option.description}' -> '{optionalDescription}'")
            option.description = optionalDescription
        if optionalDefault is not None:
            changes.append(f"optional default: {option.default} -> {optionalDefault}")
            option.default = optionalDefault
        if option.isDefault():
            if record.option is not None:
                changes.append("removed optional settings (all values were default)")
            record.option = None
        else:
            record.option = option

    if not changes:
        logger.info("No changes requested for '%s'", record.name)
        return result

    hashFormat, digest = writeMetaRecord(record, index.resolvePath(relPath))
    index.refreshEntry(relPath, hashFormat, digest, True)
    index.write()
    pack.updateIndexHash(index)
    pack.write()
    logger.info("Modified '%s' (%s)", record.name, Path(relPath).name)
    return result
