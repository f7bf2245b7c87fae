# packwarden/config/__init__.py
from __future__ import annotations

from .settings import DEFAULTS, Settings, loadSettings, userConfigPath

__all__ = ["DEFAULTS", "Settings", "loadSettings", "userConfigPath"]
