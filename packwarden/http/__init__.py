# packwarden/http/__init__.py
from __future__ import annotations

from .client import HttpClient, parseRetryAfter

__all__ = ["HttpClient", "parseRetryAfter"]
