# packwarden/core/dictpath.py
from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Any

__all__ = ["getByPath", "setByPath", "hasPath"]



def _splitPath(path: str) -> list[str]:
    """
    Splits a dotted path. Empty segments (leading, trailing or doubled dots) are invalid.

      "catalog.rateLimit.waitSeconds" -> ["catalog", "rateLimit", "waitSeconds"]
    """
    if not isinstance(path, str) or not path:
        raise ValueError("Path must be a non-empty string")
    parts = path.split(".")
    if any(part == "" for part in parts):
        raise ValueError(f"Path '{path}' contains empty segment(s)")
    return parts



def getByPath(obj: Any, path: str, default: Any | None = None) -> Any:
    """
    Returns the value at `path` inside nested mappings, or `default` when any hop is missing.
    An invalid path is treated as "not found".
    """
    try:
        parts = _splitPath(path)
    except ValueError:
        return default

    current: Any = obj
    for part in parts:
        if isinstance(current, Mapping) and part in current:
            current = current[part]
            continue
        return default
    return current



def setByPath(obj: MutableMapping[str, Any], path: str, value: Any) -> None:
    """Sets the value at `path`, creating intermediate dicts as needed."""
    parts = _splitPath(path)
    current: Any = obj
    for part in parts[:-1]:
        child = current.get(part) if isinstance(current, Mapping) else None
        if not isinstance(child, MutableMapping):
            if part in current:
                raise TypeError(f"Path segment '{part}' of '{path}' is not an object")
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value



def hasPath(obj: Any, path: str) -> bool:
    needle = object()
    return getByPath(obj, path, needle) is not needle
