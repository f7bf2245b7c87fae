# packwarden/core/documents.py
from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import json5

from packwarden.core.errors import PackIOError, ParseError

__all__ = ["dumpDocument", "readDocument", "writeDocumentAtomic"]



def dumpDocument(data: Mapping[str, Any]) -> bytes:
    """Serializes a document the same way every time: JSON5, 2-space indent, quoted keys, trailing newline."""
    text = json5.dumps(data, indent=2, quote_keys=True, ensure_ascii=False)
    if not text.endswith("\n"):
        text += "\n"
    return text.encode("utf-8")



def readDocument(path: str | Path) -> dict[str, Any]:
    """
    Reads a JSON5 object from disk.

    Raises:
        PackIOError: the file cannot be read
        ParseError: the content is not a JSON5 object
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as err:
        raise PackIOError(f"Cannot read '{path}': {err}", path=path) from err

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as err:
        raise ParseError(f"'{path}' is not valid UTF-8: {err}", kind="encoding", path=path) from err

    try:
        parsed = json5.loads(text)
    except ValueError as err:
        raise ParseError(f"Cannot parse '{path}': {err}", path=path) from err

    if not isinstance(parsed, Mapping):
        raise ParseError(f"'{path}' must contain an object, not '{type(parsed).__name__}'", path=path)
    return dict(parsed)



def writeDocumentAtomic(path: str | Path, data: Mapping[str, Any]) -> bytes:
    """
    Writes the whole document to a sibling temp file and renames it over `path`,
    so readers see either the old or the new content. Returns the bytes written.
    """
    path = Path(path)
    payload = dumpDocument(data)
    tmpPath = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmpPath, "wb") as fl:
            fl.write(payload)
        os.replace(tmpPath, path)
    except OSError as err:
        raise PackIOError(f"Cannot write '{path}': {err}", path=path) from err
    return payload
