# packwarden/core/slugs.py
from __future__ import annotations

import re

__all__ = ["slugifyName"]

_PARENTHETICAL = re.compile(r"\(.*\)")
_DASH_SUFFIX = re.compile(r" - .+")
_NON_ALNUM = re.compile(r"[^a-z\d]")
_DASH_RUNS = re.compile(r"-+")
_EDGE_DASHES = re.compile(r"^-|-$")



def slugifyName(name: str) -> str:
    """
    Derives a file-system friendly slug from a display name.

      "Just Enough Items (Forge Edition) - Legacy" -> "just-enough-items"
    """
    slug = str(name or "").lower()
    slug = _PARENTHETICAL.sub("", slug)
    slug = _DASH_SUFFIX.sub("", slug)
    slug = _NON_ALNUM.sub("-", slug)
    slug = _DASH_RUNS.sub("-", slug)
    return _EDGE_DASHES.sub("", slug)
