# packwarden/core/jsonutils.py
from __future__ import annotations

import json
import math
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel

__all__ = ["safeJsonDumps", "jsonFallback"]



def jsonFallback(obj: Any) -> Any:
    """
    `default=` hook for json.dumps: turns the objects that show up in log payloads
    (models, paths, enums, dates, dataclasses, exceptions, bytes, sets) into JSON values.
    Anything else becomes its repr().
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, PurePath):
        return obj.as_posix()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, BaseException):
        return {"type": type(obj).__name__, "message": str(obj)}
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return f"<{len(bytes(obj))} bytes>"
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return repr(obj)



def _finite(value: Any) -> Any:
    # json refuses NaN/inf with allow_nan=False; log lines keep them as strings
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _finite(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_finite(item) for item in value]
    return value



def safeJsonDumps(obj: object) -> str:
    """Compact one-line JSON, UTF-8 kept as-is. Non-finite floats are written as strings."""
    try:
        return json.dumps(obj, ensure_ascii=False, allow_nan=False, separators=(",", ":"), default=jsonFallback)
    except ValueError:
        # Non-finite floats: render once permissively, then stringify them
        cleaned = _finite(json.loads(json.dumps(obj, ensure_ascii=False, default=jsonFallback)))
        return json.dumps(cleaned, ensure_ascii=False, separators=(",", ":"))
